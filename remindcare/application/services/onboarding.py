"""Onboarding: a fixed ordered list of questions, one answer per inbound message."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from remindcare.application.services import messages
from remindcare.application.services.context import WorkflowContext
from remindcare.application.services.messaging import deliver_text
from remindcare.application.services.parsers import normalize_time_input, parse_calendar_date, parse_yes_no
from remindcare.core.clock import scheduled_today
from remindcare.domain.models.subject import Subject
from remindcare.domain.workflow import SubjectPhase

logger = structlog.get_logger(__name__)


class QuestionKind(str, Enum):
    TEXT = "text"
    YES_NO = "yes_no"
    DATE = "date"
    TIME = "time"


@dataclass(frozen=True)
class OnboardingQuestion:
    field: str
    text: str
    kind: QuestionKind = QuestionKind.TEXT


QUESTIONS = [
    OnboardingQuestion("name", "Halo, aku RemindCare. Boleh tau nama ibu? 😊"),
    OnboardingQuestion("age", "Usia berapa? 🎂"),
    OnboardingQuestion("pregnancy_number", "Kehamilan ke berapa? 🤰"),
    OnboardingQuestion(
        "hpht",
        "HPHT (Hari Pertama Haid Terakhir) kapan? Format tanggal-bulan-tahun, contoh: 31-01-2024 📅",
        QuestionKind.DATE,
    ),
    OnboardingQuestion("routine_meds", "Apakah rutin mengkonsumsi obat? (ya/tidak) 💊", QuestionKind.YES_NO),
    OnboardingQuestion("tea", "Masih mengkonsumsi teh? (ya/tidak) 🍵", QuestionKind.YES_NO),
    OnboardingQuestion("reminder_person", "Siapa yang biasanya ngingetin buat minum obat? 👥"),
    OnboardingQuestion(
        "allow_reminders", "Mau diingatkan RemindCare untuk minum obat? (ya/tidak) 🔔", QuestionKind.YES_NO
    ),
    OnboardingQuestion(
        "reminder_time",
        "RemindCare bakal mengingatkan tiap hari lewat WhatsApp. Mau diingatkan setiap jam berapa? "
        "(format 24 jam, contoh 17:00) ⏰",
        QuestionKind.TIME,
    ),
]


def question_for(step: int) -> Optional[OnboardingQuestion]:
    if 1 <= step <= len(QUESTIONS):
        return QUESTIONS[step - 1]
    return None


def step_of(field: str) -> int:
    for index, question in enumerate(QUESTIONS, 1):
        if question.field == field:
            return index
    raise KeyError(field)


async def ask(ctx: WorkflowContext, subject: Subject, step: int) -> None:
    question = question_for(step)
    if question is not None:
        await deliver_text(ctx.transport, subject.wa_id, question.text)


async def handle_onboarding_answer(ctx: WorkflowContext, subject: Subject, text: str) -> None:
    """Validate the answer for the current step; advance only when it is valid."""
    step = subject.onboarding_step or 1
    question = question_for(step)
    if question is None:
        ctx.subjects.update(subject, {"phase": SubjectPhase.ACTIVE.value, "onboarding_step": 0})
        return

    answer = (text or "").strip()
    if not answer:
        await deliver_text(ctx.transport, subject.wa_id, messages.ONBOARDING_UNCLEAR)
        return

    updates = {}
    if question.kind is QuestionKind.YES_NO:
        value = parse_yes_no(answer)
        if value is None:
            await deliver_text(ctx.transport, subject.wa_id, messages.ONBOARDING_YES_NO)
            return
        updates[question.field] = value
        if question.field == "allow_reminders" and not value:
            updates.update({"phase": SubjectPhase.ACTIVE.value, "onboarding_step": 0, "reminder_time": None})
            ctx.subjects.update(subject, updates)
            await deliver_text(ctx.transport, subject.wa_id, messages.ONBOARDING_DECLINED)
            logger.info("Onboarding finished without reminders", subject=subject.wa_id)
            return
    elif question.kind is QuestionKind.TIME:
        value = normalize_time_input(answer)
        if value is None:
            await deliver_text(ctx.transport, subject.wa_id, messages.ONBOARDING_TIME_INVALID)
            return
        updates[question.field] = value
    elif question.kind is QuestionKind.DATE:
        parsed = parse_calendar_date(answer)
        if parsed.iso is None:
            await deliver_text(ctx.transport, subject.wa_id, messages.ONBOARDING_DATE_INVALID)
            return
        updates[question.field] = parsed.raw
        updates[f"{question.field}_date"] = parsed.value
    else:
        updates[question.field] = answer

    next_step = step + 1
    if next_step <= len(QUESTIONS):
        updates["onboarding_step"] = next_step
        ctx.subjects.update(subject, updates)
        await ask(ctx, subject, next_step)
        return

    await complete_onboarding(ctx, subject, updates)


async def complete_onboarding(ctx: WorkflowContext, subject: Subject, updates: dict) -> None:
    """Activate the subject. A reminder time already behind us today waits for tomorrow."""
    reminder_time = updates.get("reminder_time") or subject.reminder_time
    scheduled = scheduled_today(reminder_time, ctx.now) if reminder_time else None

    updates = dict(updates, phase=SubjectPhase.ACTIVE.value, onboarding_step=0, allow_reminders=True)
    if scheduled is not None and scheduled <= ctx.now:
        updates["checkin_last_sent_day"] = ctx.today
    ctx.subjects.update(subject, updates)

    await deliver_text(ctx.transport, subject.wa_id, messages.ONBOARDING_DONE.format(time=reminder_time))
    logger.info("Onboarding completed", subject=subject.wa_id, reminder_time=reminder_time)
