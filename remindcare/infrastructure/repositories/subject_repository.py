"""
SQLAlchemy Implementation of Subject Repository.
"""

from typing import Dict, List, Optional, Tuple

from sqlalchemy import func

from remindcare.core.clock import now_local
from remindcare.domain.models.checkin_log import CheckinLog
from remindcare.domain.models.postpartum_visit_log import PostpartumVisitLog
from remindcare.domain.models.subject import Subject
from remindcare.domain.repositories.subject_repository import SubjectRepository
from remindcare.domain.workflow import SubjectPhase
from remindcare.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemySubjectRepository(SQLAlchemyRepository[Subject], SubjectRepository):
    """Subject repository implementation using SQLAlchemy."""

    def get_by_wa_id(self, wa_id: str) -> Optional[Subject]:
        return self.db.query(Subject).filter(Subject.wa_id == wa_id).first()

    def ensure(
        self, wa_id: str, is_admin: bool = False, is_allowed: bool = False, is_blocked: bool = False
    ) -> Tuple[Subject, bool]:
        now = now_local()
        subject, created = self.get_or_create(
            {"wa_id": wa_id},
            {
                "phase": SubjectPhase.ONBOARDING.value,
                "onboarding_step": 1,
                "is_admin": is_admin,
                "is_allowed": is_allowed,
                "is_blocked": is_blocked,
                "created_at": now,
                "updated_at": now,
            },
        )
        if created:
            return subject, True

        updates = {}
        if is_admin and not subject.is_admin:
            updates["is_admin"] = True
        if is_allowed and not subject.is_allowed:
            updates["is_allowed"] = True
        if is_blocked and not subject.is_blocked:
            updates["is_blocked"] = True
        if updates:
            subject = self.update(subject, updates)
        return subject, False

    def list_schedulable(self) -> List[Subject]:
        return (
            self.db.query(Subject)
            .filter(
                Subject.phase == SubjectPhase.ACTIVE.value,
                Subject.is_blocked.is_(False),
            )
            .order_by(Subject.id.asc())
            .all()
        )

    def delete_with_logs(self, wa_id: str) -> None:
        self.db.query(CheckinLog).filter(CheckinLog.wa_id == wa_id).delete(synchronize_session=False)
        self.db.query(PostpartumVisitLog).filter(PostpartumVisitLog.wa_id == wa_id).delete(synchronize_session=False)
        self.db.query(Subject).filter(Subject.wa_id == wa_id).delete(synchronize_session=False)
        self._commit()

    def count_by_status(self) -> Dict[str, int]:
        by_phase = dict(
            self.db.query(Subject.phase, func.count(Subject.id)).group_by(Subject.phase).all()
        )
        total = sum(by_phase.values())
        allowed = self.db.query(func.count(Subject.id)).filter(Subject.is_allowed.is_(True)).scalar() or 0
        blocked = self.db.query(func.count(Subject.id)).filter(Subject.is_blocked.is_(True)).scalar() or 0

        return {
            "total": total,
            "onboarding": by_phase.get(SubjectPhase.ONBOARDING.value, 0),
            "active": by_phase.get(SubjectPhase.ACTIVE.value, 0),
            "paused": by_phase.get(SubjectPhase.PAUSED.value, 0),
            "completed": by_phase.get(SubjectPhase.COMPLETED.value, 0),
            "allowed": allowed,
            "blocked": blocked,
        }
