"""Per-call bundle of repositories, transport, settings and the evaluation instant."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from remindcare.config import Settings
from remindcare.core.clock import to_day_key
from remindcare.domain.repositories.log_repository import CheckinLogRepository, PostpartumVisitRepository
from remindcare.domain.repositories.subject_repository import SubjectRepository
from remindcare.domain.transport import MessagingTransport


@dataclass
class WorkflowContext:
    subjects: SubjectRepository
    checkins: CheckinLogRepository
    visits: PostpartumVisitRepository
    transport: MessagingTransport
    settings: Settings
    now: datetime

    @property
    def today(self) -> str:
        return to_day_key(self.now)

    @classmethod
    def for_session(
        cls, db: Session, transport: MessagingTransport, settings: Settings, now: datetime
    ) -> "WorkflowContext":
        from remindcare.domain.models.subject import Subject
        from remindcare.infrastructure.repositories.log_repository import (
            SQLAlchemyCheckinLogRepository,
            SQLAlchemyPostpartumVisitRepository,
        )
        from remindcare.infrastructure.repositories.subject_repository import SQLAlchemySubjectRepository

        return cls(
            subjects=SQLAlchemySubjectRepository(db, Subject),
            checkins=SQLAlchemyCheckinLogRepository(db),
            visits=SQLAlchemyPostpartumVisitRepository(db),
            transport=transport,
            settings=settings,
            now=now,
        )
