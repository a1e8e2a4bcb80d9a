"""
SQLAlchemy Implementations of the check-in and postpartum log repositories.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from remindcare.core.clock import localize, now_local
from remindcare.domain.models.checkin_log import CheckinLog
from remindcare.domain.models.postpartum_visit_log import PostpartumVisitLog
from remindcare.domain.models.subject import Subject
from remindcare.domain.repositories.log_repository import (
    CheckinLogRepository,
    PostpartumVisitRepository,
)
from remindcare.domain.workflow import AnswerTally, CheckinAnswer, SubjectPhase, VisitCode, tally_answer, visit_due_at
from remindcare.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyCheckinLogRepository(SQLAlchemyRepository[CheckinLog], CheckinLogRepository):
    """Daily check-in logs using SQLAlchemy."""

    def __init__(self, db: Session):
        super().__init__(db, CheckinLog)

    def get(self, wa_id: str, day: str) -> Optional[CheckinLog]:
        return (
            self.db.query(CheckinLog)
            .filter(CheckinLog.wa_id == wa_id, CheckinLog.reminder_date == day)
            .first()
        )

    def ensure(self, wa_id: str, day: str) -> CheckinLog:
        log, _ = self.get_or_create(
            {"wa_id": wa_id, "reminder_date": day},
            {
                "response": None,
                "response_count": 0,
                "response_sudah_count": 0,
                "response_belum_count": 0,
                "created_at": now_local(),
            },
        )
        return log

    def mark_sent(self, log: CheckinLog, sent_at: datetime) -> CheckinLog:
        return self.update(log, {"prompt_sent_at": sent_at})

    def record_response(
        self, wa_id: str, day: str, answer: CheckinAnswer, limit: Optional[int]
    ) -> AnswerTally:
        log = self.ensure(wa_id, day)
        tally = tally_answer(answer, log.response_sudah_count or 0, log.response_belum_count or 0, limit)
        if not tally.allowed:
            return tally

        self.update(
            log,
            {
                "response": answer.value,
                "response_count": (log.response_count or 0) + 1,
                "response_sudah_count": tally.sudah_count,
                "response_belum_count": tally.belum_count,
            },
        )
        return tally

    def purge_older_than(self, cutoff_day: str) -> int:
        removed = (
            self.db.query(CheckinLog)
            .filter(CheckinLog.reminder_date < cutoff_day)
            .delete(synchronize_session=False)
        )
        self._commit()
        return removed or 0

    def list_for_subject(self, wa_id: str) -> List[CheckinLog]:
        return (
            self.db.query(CheckinLog)
            .filter(CheckinLog.wa_id == wa_id)
            .order_by(CheckinLog.reminder_date.desc(), CheckinLog.id.desc())
            .all()
        )

    def recent(self, limit: int = 50) -> List[CheckinLog]:
        query = self.db.query(CheckinLog).order_by(CheckinLog.reminder_date.desc(), CheckinLog.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()


class SQLAlchemyPostpartumVisitRepository(SQLAlchemyRepository[PostpartumVisitLog], PostpartumVisitRepository):
    """Postpartum visit logs using SQLAlchemy."""

    def __init__(self, db: Session):
        super().__init__(db, PostpartumVisitLog)

    def ensure_schedule(self, wa_id: str, delivered_at: datetime) -> List[PostpartumVisitLog]:
        existing = {row.visit_code for row in self.list_for_subject(wa_id)}
        for code in VisitCode:
            if code.value in existing:
                continue
            self.get_or_create(
                {"wa_id": wa_id, "visit_code": code.value},
                {"due_at": visit_due_at(code, delivered_at), "failures": 0, "created_at": now_local()},
            )
        return self.list_for_subject(wa_id)

    def list_for_subject(self, wa_id: str) -> List[PostpartumVisitLog]:
        rows = self.db.query(PostpartumVisitLog).filter(PostpartumVisitLog.wa_id == wa_id).all()
        return sorted(rows, key=lambda row: (localize(row.due_at), row.id))

    def get_by_prompt_id(self, wa_id: str, prompt_id: str) -> Optional[PostpartumVisitLog]:
        return (
            self.db.query(PostpartumVisitLog)
            .filter(PostpartumVisitLog.wa_id == wa_id, PostpartumVisitLog.prompt_id == prompt_id)
            .first()
        )

    def latest_unanswered_sent(self, wa_id: str) -> Optional[PostpartumVisitLog]:
        return (
            self.db.query(PostpartumVisitLog)
            .filter(
                PostpartumVisitLog.wa_id == wa_id,
                PostpartumVisitLog.prompt_sent_at.isnot(None),
                PostpartumVisitLog.response.is_(None),
            )
            .order_by(PostpartumVisitLog.prompt_sent_at.desc(), PostpartumVisitLog.id.desc())
            .first()
        )

    def record_response(
        self, row: PostpartumVisitLog, answer: CheckinAnswer, day: str, limit: Optional[int]
    ) -> AnswerTally:
        # Counters are per day: a new day starts from zero
        same_day = row.response_day == day
        sudah = (row.response_sudah_count or 0) if same_day else 0
        belum = (row.response_belum_count or 0) if same_day else 0

        tally = tally_answer(answer, sudah, belum, limit)
        if not tally.allowed:
            return tally

        self.update(
            row,
            {
                "response": answer.value,
                "response_day": day,
                "response_sudah_count": tally.sudah_count,
                "response_belum_count": tally.belum_count,
                "responded_at": now_local(),
            },
        )
        return tally

    def delete_for_subject(self, wa_id: str) -> int:
        removed = (
            self.db.query(PostpartumVisitLog)
            .filter(PostpartumVisitLog.wa_id == wa_id)
            .delete(synchronize_session=False)
        )
        self._commit()
        return removed or 0

    def all_rows(self) -> List[PostpartumVisitLog]:
        return (
            self.db.query(PostpartumVisitLog)
            .order_by(PostpartumVisitLog.wa_id.asc(), PostpartumVisitLog.due_at.asc())
            .all()
        )

    def purge_completed_older_than(self, cutoff: datetime) -> int:
        completed = select(Subject.wa_id).where(Subject.phase == SubjectPhase.COMPLETED.value)
        removed = (
            self.db.query(PostpartumVisitLog)
            .filter(PostpartumVisitLog.due_at < cutoff, PostpartumVisitLog.wa_id.in_(completed))
            .delete(synchronize_session=False)
        )
        self._commit()
        return removed or 0
