"""Per-workflow due calculators.

Everything here is pure: subject state views plus ``now`` in, a decision out.
"No event due" is a normal ``None`` / ``False`` result.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, TypeVar

from remindcare.application.services.pregnancy import estimated_delivery_date, gestational_week
from remindcare.core.clock import at_local, localize, parse_clock, scheduled_today, to_day_key
from remindcare.domain.workflow import (
    DailyCheckinState,
    DeliveryDataState,
    DeliveryStage,
    DeliveryValidationState,
    LaborEducationState,
    PostpartumState,
)

HPL_FOLLOW_UP_DAYS = 3

VisitRow = TypeVar("VisitRow")


def _clock_reached(clock_value: Optional[str], now: datetime) -> bool:
    scheduled = scheduled_today(clock_value, now) if clock_value else None
    return scheduled is not None and now >= scheduled


def is_daily_checkin_due(
    reminder_time: Optional[str], reminders_enabled: bool, state: DailyCheckinState, now: datetime
) -> bool:
    """Today's reminder time has passed and nothing was sent for today yet."""
    if not reminders_enabled:
        return False
    if not _clock_reached(reminder_time, now):
        return False
    return state.last_sent_day != to_day_key(now)


def labor_education_week_due(
    lmp: Optional[date],
    state: LaborEducationState,
    delivery_confirmed: bool,
    now: datetime,
    start_week: int = 37,
    end_week: int = 41,
    send_time: str = "08:00",
) -> Optional[int]:
    """Gestational week whose education message is due today, if any."""
    if delivery_confirmed:
        return None
    week = gestational_week(lmp, now.date())
    if week is None or not (start_week <= week <= end_week):
        return None
    if state.last_sent_day == to_day_key(now):
        return None
    if not _clock_reached(send_time, now):
        return None
    return week


def current_delivery_stage(lmp: Optional[date], today: date, start_week: int = 39) -> Optional[DeliveryStage]:
    """Which Delivery-Validation stage applies on ``today``, ignoring what was sent."""
    week = gestational_week(lmp, today)
    if week is None:
        return None
    edd = estimated_delivery_date(lmp)
    if today >= edd + timedelta(days=HPL_FOLLOW_UP_DAYS):
        return DeliveryStage.HPL_PLUS3
    if today >= edd:
        return DeliveryStage.HPL
    if week >= start_week:
        return DeliveryStage.WEEK39_DAILY
    return None


def delivery_validation_stage_due(
    lmp: Optional[date],
    state: DeliveryValidationState,
    now: datetime,
    start_week: int = 39,
    send_time: str = "08:00",
    delivery_recorded: bool = False,
) -> Optional[DeliveryStage]:
    """Stage whose poll should go out now, or None.

    The early stage and the +3 days stage repeat once per day. The
    estimated-date stage is a single send: if it already went out, the days
    between the estimated date and the +3 days stage stay quiet.
    """
    if state.confirmed or delivery_recorded:
        return None
    today = now.date()
    stage = current_delivery_stage(lmp, today, start_week)
    if stage is None:
        return None
    if not _clock_reached(send_time, now):
        return None

    sent_day = state.sent_day(stage)
    if stage is DeliveryStage.HPL:
        edd = estimated_delivery_date(lmp)
        if today > edd:
            return stage if sent_day is None else None
    if sent_day == to_day_key(now):
        return None
    return stage


def pending_delivery_stage(state: DeliveryValidationState) -> Optional[DeliveryStage]:
    """Stage still waiting for an answer to its last sent poll."""
    if state.confirmed or state.stage is None or not state.poll_id:
        return None
    sent_day = state.sent_day(state.stage)
    if sent_day is None:
        return None
    if state.answered_at is not None and to_day_key(state.answered_at) >= sent_day:
        return None
    return state.stage


def delivered_at(data: DeliveryDataState) -> Optional[datetime]:
    """Delivery instant in the configured zone, once both date and time are known."""
    if not data.monitoring_active:
        return None
    clock = parse_clock(data.delivery_time)
    if clock is None:
        return None
    return at_local(data.delivery_date, clock)


def is_visit_due(
    due_at: Optional[datetime], prompt_sent_at: Optional[datetime], response: Optional[str], now: datetime
) -> bool:
    if due_at is None or prompt_sent_at is not None or response:
        return False
    return now >= localize(due_at)


def next_due_visit(rows: Iterable[VisitRow], now: datetime) -> Optional[VisitRow]:
    """Earliest due visit row that was neither sent nor answered."""
    due = [row for row in rows if is_visit_due(row.due_at, row.prompt_sent_at, row.response, now)]
    if not due:
        return None
    return min(due, key=lambda row: localize(row.due_at))


def needs_postpartum_education(state: PostpartumState) -> bool:
    return state.education_sent_at is None
