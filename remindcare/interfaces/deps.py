"""
API Dependencies.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from remindcare.application.services.reconciliation import ReplyReconciler
from remindcare.domain.models.subject import Subject
from remindcare.domain.repositories.subject_repository import SubjectRepository
from remindcare.infrastructure.database import get_db
from remindcare.infrastructure.repositories.subject_repository import SQLAlchemySubjectRepository
from remindcare.scheduler.tick import SchedulerState


def get_subject_repository(db: Session = Depends(get_db)) -> SubjectRepository:
    """Get subject repository instance."""
    return SQLAlchemySubjectRepository(db, Subject)


def get_reconciler(request: Request) -> ReplyReconciler:
    """Reply reconciler created in the app lifespan."""
    return request.app.state.reconciler


def get_scheduler_state(request: Request) -> SchedulerState:
    return getattr(request.app.state, "scheduler_state", None) or SchedulerState()


def get_transport(request: Request):
    return request.app.state.transport
