"""Dispatch & bookkeeping for due scheduled events.

Each ``dispatch_*`` function handles one workflow for one subject:
consult the retry gate, send the explanatory text once, send the poll,
then persist either the poll id (success) or the failure counters.
All of them return True only when something was actually sent.
"""

from datetime import timedelta
from typing import List

import structlog

from remindcare.application.services import messages
from remindcare.application.services.context import WorkflowContext
from remindcare.application.services.messaging import deliver_poll, deliver_text
from remindcare.application.services.pregnancy import estimated_delivery_date, is_pregnancy_active
from remindcare.application.services.retry_policy import after_failure, after_success, can_attempt
from remindcare.application.services.schedule_rules import (
    delivered_at,
    delivery_validation_stage_due,
    is_daily_checkin_due,
    labor_education_week_due,
    needs_postpartum_education,
    next_due_visit,
)
from remindcare.core.clock import localize
from remindcare.domain.models.postpartum_visit_log import PostpartumVisitLog
from remindcare.domain.models.subject import Subject
from remindcare.domain.workflow import DeliveryStage, RetryState, SubjectPhase, VisitCode

logger = structlog.get_logger(__name__)

# Nifas: monitoring keeps a subject active this long after delivery
POSTPARTUM_PERIOD = timedelta(days=42)

STAGE_DAY_COLUMNS = {
    DeliveryStage.WEEK39_DAILY: "dv_week39_day",
    DeliveryStage.HPL: "dv_hpl_day",
    DeliveryStage.HPL_PLUS3: "dv_hpl3_day",
}


def _can_attempt(ctx: WorkflowContext, retry: RetryState) -> bool:
    return can_attempt(
        retry, ctx.now, ctx.settings.RETRY_BASE_DELAY_SECONDS, ctx.settings.RETRY_MAX_DELAY_SECONDS
    )


def _delivery_recorded(subject: Subject) -> bool:
    return subject.delivery_validation.confirmed or subject.delivery_date is not None


# ---------------------------------------------------------------------------
# Daily check-in
# ---------------------------------------------------------------------------

def _checkin_failed(ctx: WorkflowContext, subject: Subject) -> None:
    retry = after_failure(subject.daily_checkin.retry, ctx.now)
    ctx.subjects.update(
        subject, {"checkin_failures": retry.failures, "checkin_last_attempt_at": retry.last_attempt_at}
    )
    logger.warning("Daily check-in send failed", subject=subject.wa_id, failures=retry.failures)


async def dispatch_daily_checkin(ctx: WorkflowContext, subject: Subject) -> bool:
    state = subject.daily_checkin
    if not is_daily_checkin_due(subject.reminder_time, bool(subject.allow_reminders), state, ctx.now):
        return False

    today = ctx.today
    log = ctx.checkins.get(subject.wa_id, today)
    if log is not None and log.prompt_sent_at is not None:
        # Period already sent (subject row lagging behind the log)
        ctx.subjects.update(subject, {"checkin_last_sent_day": today})
        return False

    if not _can_attempt(ctx, state.retry):
        return False

    if state.intro_day != today:
        text = messages.build_reminder_message(subject.wa_id, subject.name, ctx.now, ctx.settings.WEBSITE_URL)
        if await deliver_text(ctx.transport, subject.wa_id, text, apply_rate_limit=True) is None:
            _checkin_failed(ctx, subject)
            return False
        ctx.subjects.update(subject, {"checkin_intro_day": today})

    poll_id = await deliver_poll(
        ctx.transport, subject.wa_id, messages.CHECKIN_POLL_QUESTION, messages.CHECKIN_POLL_OPTIONS
    )
    if poll_id is None:
        _checkin_failed(ctx, subject)
        return False

    retry = after_success(ctx.now)
    ctx.subjects.update(
        subject,
        {
            "checkin_last_sent_day": today,
            "checkin_poll_id": poll_id,
            "checkin_failures": retry.failures,
            "checkin_last_attempt_at": retry.last_attempt_at,
        },
    )
    ctx.checkins.mark_sent(ctx.checkins.ensure(subject.wa_id, today), ctx.now)
    logger.info("Daily check-in sent", subject=subject.wa_id, day=today)
    return True


# ---------------------------------------------------------------------------
# Labor-phase education
# ---------------------------------------------------------------------------

async def dispatch_labor_education(ctx: WorkflowContext, subject: Subject) -> bool:
    settings = ctx.settings
    week = labor_education_week_due(
        subject.hpht_date,
        subject.labor_education,
        _delivery_recorded(subject),
        ctx.now,
        start_week=settings.LABOR_EDUCATION_START_WEEK,
        end_week=settings.LABOR_EDUCATION_END_WEEK,
        send_time=settings.EDUCATION_SEND_TIME,
    )
    if week is None or week not in messages.LABOR_EDUCATION:
        return False

    # Marked on attempt; one try per day
    ctx.subjects.update(subject, {"labor_last_sent_day": ctx.today})
    text = messages.build_labor_education(week, estimated_delivery_date(subject.hpht_date))
    sent = await deliver_text(ctx.transport, subject.wa_id, text, apply_rate_limit=True) is not None
    logger.info("Labor education dispatched", subject=subject.wa_id, week=week, sent=sent)
    return sent


# ---------------------------------------------------------------------------
# Delivery validation
# ---------------------------------------------------------------------------

def _delivery_poll_failed(ctx: WorkflowContext, subject: Subject, stage: DeliveryStage) -> None:
    retry = after_failure(subject.delivery_validation.retry, ctx.now)
    ctx.subjects.update(subject, {"dv_failures": retry.failures, "dv_last_attempt_at": retry.last_attempt_at})
    logger.warning(
        "Delivery validation send failed", subject=subject.wa_id, stage=stage.value, failures=retry.failures
    )


async def dispatch_delivery_validation(ctx: WorkflowContext, subject: Subject) -> bool:
    settings = ctx.settings
    state = subject.delivery_validation
    stage = delivery_validation_stage_due(
        subject.hpht_date,
        state,
        ctx.now,
        start_week=settings.DELIVERY_VALIDATION_START_WEEK,
        send_time=settings.EDUCATION_SEND_TIME,
        delivery_recorded=subject.delivery_date is not None,
    )
    if stage is None:
        return False
    if not _can_attempt(ctx, state.retry):
        return False

    today = ctx.today
    if not (state.stage is stage and state.intro_day == today):
        intro = messages.build_delivery_intro(stage, estimated_delivery_date(subject.hpht_date))
        if await deliver_text(ctx.transport, subject.wa_id, intro, apply_rate_limit=True) is None:
            _delivery_poll_failed(ctx, subject, stage)
            return False
        ctx.subjects.update(subject, {"dv_stage": stage.value, "dv_intro_day": today})

    poll_id = await deliver_poll(
        ctx.transport, subject.wa_id, messages.DELIVERY_POLL_QUESTION, messages.DELIVERY_POLL_OPTIONS
    )
    if poll_id is None:
        _delivery_poll_failed(ctx, subject, stage)
        return False

    retry = after_success(ctx.now)
    ctx.subjects.update(
        subject,
        {
            "dv_stage": stage.value,
            "dv_poll_id": poll_id,
            "dv_failures": retry.failures,
            "dv_last_attempt_at": retry.last_attempt_at,
            STAGE_DAY_COLUMNS[stage]: today,
        },
    )
    logger.info("Delivery validation poll sent", subject=subject.wa_id, stage=stage.value)
    return True


# ---------------------------------------------------------------------------
# Postpartum visits
# ---------------------------------------------------------------------------

def _visit_failed(ctx: WorkflowContext, row: PostpartumVisitLog) -> None:
    retry = after_failure(RetryState(row.failures or 0, localize(row.last_attempt_at)), ctx.now)
    ctx.visits.update(row, {"failures": retry.failures, "last_attempt_at": retry.last_attempt_at})
    logger.warning("Postpartum visit send failed", subject=row.wa_id, visit=row.visit_code, failures=retry.failures)


async def dispatch_postpartum(ctx: WorkflowContext, subject: Subject) -> bool:
    """Send the earliest due visit prompt; at most one visit per call."""
    delivery_instant = delivered_at(subject.delivery_data)
    if delivery_instant is None:
        return False

    rows = ctx.visits.ensure_schedule(subject.wa_id, delivery_instant)
    row = next_due_visit(rows, ctx.now)
    if row is None:
        return False
    if not _can_attempt(ctx, RetryState(row.failures or 0, localize(row.last_attempt_at))):
        return False

    if needs_postpartum_education(subject.postpartum):
        if await deliver_text(ctx.transport, subject.wa_id, messages.POSTPARTUM_EDUCATION, apply_rate_limit=True) is None:
            _visit_failed(ctx, row)
            return False
        ctx.subjects.update(subject, {"pp_education_sent_at": ctx.now})

    code = VisitCode(row.visit_code)
    if row.explainer_sent_at is None:
        if await deliver_text(ctx.transport, subject.wa_id, messages.VISIT_EXPLAINERS[code]) is None:
            _visit_failed(ctx, row)
            return False
        ctx.visits.update(row, {"explainer_sent_at": ctx.now})

    prompt_id = await deliver_poll(
        ctx.transport, subject.wa_id, messages.build_visit_question(code), messages.CHECKIN_POLL_OPTIONS
    )
    if prompt_id is None:
        _visit_failed(ctx, row)
        return False

    retry = after_success(ctx.now)
    ctx.visits.update(
        row,
        {
            "prompt_sent_at": ctx.now,
            "prompt_id": prompt_id,
            "failures": retry.failures,
            "last_attempt_at": retry.last_attempt_at,
        },
    )
    logger.info("Postpartum visit poll sent", subject=subject.wa_id, visit=code.value)
    return True


# ---------------------------------------------------------------------------
# Per-subject entry point
# ---------------------------------------------------------------------------

async def complete_if_expired(ctx: WorkflowContext, subject: Subject) -> bool:
    """Close out subjects past the pregnancy tracking window."""
    if is_pregnancy_active(subject.hpht_date, ctx.now.date(), ctx.settings.PREGNANCY_WEEK_LIMIT):
        return False
    delivery_instant = delivered_at(subject.delivery_data)
    if delivery_instant is not None and ctx.now < delivery_instant + POSTPARTUM_PERIOD:
        return False

    ctx.subjects.update(subject, {"phase": SubjectPhase.COMPLETED.value, "allow_reminders": False})
    await deliver_text(ctx.transport, subject.wa_id, messages.COMPLETED)
    logger.info("Subject completed", subject=subject.wa_id)
    return True


async def process_subject(ctx: WorkflowContext, subject: Subject) -> List[str]:
    """Run every workflow for one active subject; returns the names of workflows that sent."""
    if subject.phase_enum is not SubjectPhase.ACTIVE or subject.is_blocked:
        return []
    # Declining reminders during onboarding opts out of every scheduled workflow
    if not subject.allow_reminders:
        return []
    if ctx.settings.ENFORCE_ALLOWLIST and not (subject.is_allowed or subject.is_admin):
        return []
    if await complete_if_expired(ctx, subject):
        return ["completion"]

    sent = []
    if await dispatch_daily_checkin(ctx, subject):
        sent.append("daily_checkin")
    if await dispatch_labor_education(ctx, subject):
        sent.append("labor_education")
    if await dispatch_delivery_validation(ctx, subject):
        sent.append("delivery_validation")
    if await dispatch_postpartum(ctx, subject):
        sent.append("postpartum")
    return sent
