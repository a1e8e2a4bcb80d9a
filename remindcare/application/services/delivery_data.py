"""Delivery data collection: date, time, place and attendant, asked in that order."""

from datetime import date, datetime, time
from typing import Optional, Tuple

import structlog

from remindcare.application.services import messages
from remindcare.application.services.context import WorkflowContext
from remindcare.application.services.messaging import deliver_text
from remindcare.application.services.parsers import normalize_time_input, parse_calendar_date
from remindcare.application.services.schedule_rules import delivered_at
from remindcare.core.clock import at_local, parse_clock
from remindcare.domain.models.subject import Subject

logger = structlog.get_logger(__name__)

STEP_DATE = 1
STEP_TIME = 2
STEP_PLACE = 3
STEP_ATTENDANT = 4
LAST_STEP = STEP_ATTENDANT

CLEARED_DELIVERY_FIELDS = {
    "delivery_date": None,
    "delivery_time": None,
    "delivery_place": None,
    "delivery_attendant": None,
    "delivery_completed_at": None,
    "pp_education_sent_at": None,
}


def validate_delivery_date(text: str, subject: Subject, now: datetime) -> Tuple[Optional[date], Optional[str]]:
    """Return (date, None) or (None, corrective message)."""
    parsed = parse_calendar_date(text)
    value = parsed.value
    if value is None:
        return None, messages.DELIVERY_DATE_INVALID
    if value > now.date():
        return None, messages.DELIVERY_DATE_IN_FUTURE
    if subject.hpht_date is not None and value < subject.hpht_date:
        return None, messages.DELIVERY_DATE_BEFORE_HPHT
    return value, None


def validate_delivery_time(text: str, subject: Subject, now: datetime) -> Tuple[Optional[str], Optional[str]]:
    """Return ("HH:MM", None) or (None, corrective message)."""
    value = normalize_time_input(text)
    clock = parse_clock(value)
    if value is None or clock is None:
        return None, messages.DELIVERY_TIME_INVALID
    if subject.delivery_date is None:
        return value, None

    instant = at_local(subject.delivery_date, clock)
    if instant > now:
        return None, messages.DELIVERY_TIME_IN_FUTURE
    if subject.hpht_date is not None and instant < at_local(subject.hpht_date, time(0, 0)):
        return None, messages.DELIVERY_DATE_BEFORE_HPHT
    return value, None


async def start_collection(ctx: WorkflowContext, subject: Subject) -> None:
    """Begin (or restart) collection, dropping any previously recorded delivery and its visits."""
    removed = ctx.visits.delete_for_subject(subject.wa_id)
    ctx.subjects.update(subject, dict(CLEARED_DELIVERY_FIELDS, delivery_step=STEP_DATE))
    await deliver_text(ctx.transport, subject.wa_id, messages.DELIVERY_DATA_QUESTIONS[STEP_DATE])
    logger.info("Delivery data collection started", subject=subject.wa_id, visits_removed=removed)


async def handle_delivery_answer(ctx: WorkflowContext, subject: Subject, text: str) -> None:
    step = subject.delivery_step or 0
    answer = (text or "").strip()

    if step == STEP_DATE:
        value, error = validate_delivery_date(answer, subject, ctx.now)
        field = "delivery_date"
    elif step == STEP_TIME:
        value, error = validate_delivery_time(answer, subject, ctx.now)
        field = "delivery_time"
    elif step in (STEP_PLACE, STEP_ATTENDANT):
        value, error = (answer, None) if answer else (None, messages.DELIVERY_TEXT_EMPTY)
        field = "delivery_place" if step == STEP_PLACE else "delivery_attendant"
    else:
        ctx.subjects.update(subject, {"delivery_step": 0})
        return

    if error:
        await deliver_text(ctx.transport, subject.wa_id, error)
        return

    if step < LAST_STEP:
        ctx.subjects.update(subject, {field: value, "delivery_step": step + 1})
        await deliver_text(ctx.transport, subject.wa_id, messages.DELIVERY_DATA_QUESTIONS[step + 1])
        return

    ctx.subjects.update(subject, {field: value, "delivery_step": 0, "delivery_completed_at": ctx.now})
    instant = delivered_at(subject.delivery_data)
    if instant is not None:
        ctx.visits.ensure_schedule(subject.wa_id, instant)

    summary = messages.build_delivery_summary(
        subject.delivery_date, subject.delivery_time, subject.delivery_place, subject.delivery_attendant
    )
    await deliver_text(ctx.transport, subject.wa_id, summary)
    logger.info("Delivery data recorded", subject=subject.wa_id, delivered_at=str(instant))
