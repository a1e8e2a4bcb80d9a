"""Workflow vocabulary: phases, stages, answers, visit codes and per-workflow state views.

The ``Subject`` row stores everything flat; these frozen views group the columns
that belong to one workflow so the due-calculators can stay pure.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional


class SubjectPhase(str, Enum):
    ONBOARDING = "onboarding"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class DeliveryStage(str, Enum):
    """Delivery-Validation stages, in the order they can fire."""

    WEEK39_DAILY = "week39_daily"
    HPL = "hpl"
    HPL_PLUS3 = "hpl3"


class CheckinAnswer(str, Enum):
    DONE = "Sudah"
    NOT_DONE = "Belum"


class DeliveryAnswer(str, Enum):
    DELIVERED = "delivered"
    NOT_DELIVERED = "not_delivered"


class VisitCode(str, Enum):
    KF1 = "KF1"
    KN1 = "KN1"
    KF2 = "KF2"
    KN2 = "KN2"
    KF3 = "KF3"
    KN3 = "KN3"
    KF4 = "KF4"


# Hours after delivery at which each visit window opens
VISIT_START_HOURS = {
    VisitCode.KF1: 6,
    VisitCode.KN1: 6,
    VisitCode.KF2: 72,
    VisitCode.KN2: 72,
    VisitCode.KF3: 192,
    VisitCode.KN3: 192,
    VisitCode.KF4: 696,
}


def visit_due_at(code: VisitCode, delivered_at: datetime) -> datetime:
    return delivered_at + timedelta(hours=VISIT_START_HOURS[code])


@dataclass(frozen=True)
class RetryState:
    failures: int = 0
    last_attempt_at: Optional[datetime] = None


@dataclass(frozen=True)
class DailyCheckinState:
    last_sent_day: Optional[str]
    intro_day: Optional[str]
    poll_id: Optional[str]
    retry: RetryState


@dataclass(frozen=True)
class LaborEducationState:
    last_sent_day: Optional[str]


@dataclass(frozen=True)
class DeliveryValidationState:
    stage: Optional[DeliveryStage]
    intro_day: Optional[str]
    week39_day: Optional[str]
    hpl_day: Optional[str]
    hpl3_day: Optional[str]
    answer: Optional[bool]
    answered_at: Optional[datetime]
    poll_id: Optional[str]
    retry: RetryState

    @property
    def confirmed(self) -> bool:
        return self.answer is True

    def sent_day(self, stage: DeliveryStage) -> Optional[str]:
        if stage is DeliveryStage.WEEK39_DAILY:
            return self.week39_day
        if stage is DeliveryStage.HPL:
            return self.hpl_day
        if stage is DeliveryStage.HPL_PLUS3:
            return self.hpl3_day
        raise ValueError(f"Unknown delivery stage: {stage}")


@dataclass(frozen=True)
class DeliveryDataState:
    step: int
    delivery_date: Optional[date]
    delivery_time: Optional[str]
    place: Optional[str]
    attendant: Optional[str]
    completed_at: Optional[datetime]

    @property
    def collecting(self) -> bool:
        return self.step > 0

    @property
    def monitoring_active(self) -> bool:
        return self.delivery_date is not None and bool(self.delivery_time)


@dataclass(frozen=True)
class PostpartumState:
    education_sent_at: Optional[datetime]


@dataclass(frozen=True)
class AnswerTally:
    """Outcome of counting one reply against the per-day cap."""

    allowed: bool
    sudah_count: int
    belum_count: int
    limit: Optional[int]


def tally_answer(answer: CheckinAnswer, sudah_count: int, belum_count: int, limit: Optional[int]) -> AnswerTally:
    """Count a reply unless that answer already reached ``limit`` for the period.

    Counters never decrease; a refused reply leaves both untouched.
    """
    current = sudah_count if answer is CheckinAnswer.DONE else belum_count
    allowed = limit is None or current < limit
    if allowed and answer is CheckinAnswer.DONE:
        sudah_count += 1
    elif allowed:
        belum_count += 1
    return AnswerTally(allowed=allowed, sudah_count=sudah_count, belum_count=belum_count, limit=limit)
