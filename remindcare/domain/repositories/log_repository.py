"""
Log Repository Interfaces.
Per-period check-in logs and per-visit postpartum logs.
"""

from datetime import datetime
from typing import List, Optional

from remindcare.domain.models.checkin_log import CheckinLog
from remindcare.domain.models.postpartum_visit_log import PostpartumVisitLog
from remindcare.domain.repositories.base import BaseRepository
from remindcare.domain.workflow import AnswerTally, CheckinAnswer


class CheckinLogRepository(BaseRepository[CheckinLog]):
    """Interface for daily check-in log rows, unique per (wa_id, day)."""

    def get(self, wa_id: str, day: str) -> Optional[CheckinLog]:
        ...

    def ensure(self, wa_id: str, day: str) -> CheckinLog:
        """Insert the row for the period if absent, return it either way."""
        ...

    def mark_sent(self, log: CheckinLog, sent_at: datetime) -> CheckinLog:
        ...

    def record_response(
        self, wa_id: str, day: str, answer: CheckinAnswer, limit: Optional[int]
    ) -> AnswerTally:
        ...

    def purge_older_than(self, cutoff_day: str) -> int:
        ...

    def list_for_subject(self, wa_id: str) -> List[CheckinLog]:
        ...

    def recent(self, limit: int = 50) -> List[CheckinLog]:
        ...


class PostpartumVisitRepository(BaseRepository[PostpartumVisitLog]):
    """Interface for postpartum visit rows, unique per (wa_id, visit_code)."""

    def ensure_schedule(self, wa_id: str, delivered_at: datetime) -> List[PostpartumVisitLog]:
        """Create missing visit rows lazily, return all rows ordered by due time."""
        ...

    def list_for_subject(self, wa_id: str) -> List[PostpartumVisitLog]:
        ...

    def get_by_prompt_id(self, wa_id: str, prompt_id: str) -> Optional[PostpartumVisitLog]:
        ...

    def latest_unanswered_sent(self, wa_id: str) -> Optional[PostpartumVisitLog]:
        ...

    def record_response(
        self, row: PostpartumVisitLog, answer: CheckinAnswer, day: str, limit: Optional[int]
    ) -> AnswerTally:
        ...

    def delete_for_subject(self, wa_id: str) -> int:
        ...

    def purge_completed_older_than(self, cutoff: datetime) -> int:
        """Delete visit rows due before ``cutoff`` that belong to completed subjects."""
        ...
