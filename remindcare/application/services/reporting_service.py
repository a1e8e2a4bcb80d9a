"""Read-only reporting over subjects and their logs, plus CSV export via pandas."""

from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from remindcare.application.services.pregnancy import gestational_week
from remindcare.core.clock import now_local, to_day_key
from remindcare.core.exceptions import EntityNotFoundException
from remindcare.domain.models.checkin_log import CheckinLog
from remindcare.domain.models.postpartum_visit_log import PostpartumVisitLog
from remindcare.domain.models.subject import Subject
from remindcare.domain.schemas.report import (
    CheckinLogRead,
    PostpartumVisitRead,
    ReportSummary,
    SubjectDetail,
    SubjectRead,
    SubjectSummaryRow,
)
from remindcare.domain.workflow import CheckinAnswer
from remindcare.infrastructure.repositories.log_repository import (
    SQLAlchemyCheckinLogRepository,
    SQLAlchemyPostpartumVisitRepository,
)
from remindcare.infrastructure.repositories.subject_repository import SQLAlchemySubjectRepository


def _checkin_totals(db: Session) -> Dict[str, Dict[str, int]]:
    rows = (
        db.query(
            CheckinLog.wa_id,
            func.sum(case((CheckinLog.response == CheckinAnswer.DONE.value, 1), else_=0)),
            func.sum(case((CheckinLog.response == CheckinAnswer.NOT_DONE.value, 1), else_=0)),
        )
        .group_by(CheckinLog.wa_id)
        .all()
    )
    return {wa_id: {"done": int(done or 0), "not_done": int(not_done or 0)} for wa_id, done, not_done in rows}


def _last_answered(db: Session) -> Dict[str, CheckinLog]:
    latest: Dict[str, CheckinLog] = {}
    logs = (
        db.query(CheckinLog)
        .filter(CheckinLog.response.isnot(None))
        .order_by(CheckinLog.reminder_date.asc(), CheckinLog.id.asc())
        .all()
    )
    for log in logs:
        latest[log.wa_id] = log
    return latest


def _summary_row(
    subject: Subject, today: datetime, totals: Dict[str, int], last: Optional[CheckinLog]
) -> SubjectSummaryRow:
    return SubjectSummaryRow(
        **SubjectRead.model_validate(subject).model_dump(),
        gestational_week=gestational_week(subject.hpht_date, today.date()),
        last_checkin_day=last.reminder_date if last else None,
        last_checkin_response=last.response if last else None,
        checkins_done=totals.get("done", 0),
        checkins_not_done=totals.get("not_done", 0),
    )


def get_summary(db: Session, now: Optional[datetime] = None) -> ReportSummary:
    now = now or now_local()
    today = to_day_key(now)
    counts = SQLAlchemySubjectRepository(db, Subject).count_by_status()

    todays_logs = db.query(CheckinLog).filter(CheckinLog.reminder_date == today).all()
    answered = (
        db.query(func.count(PostpartumVisitLog.id)).filter(PostpartumVisitLog.response.isnot(None)).scalar() or 0
    )
    outstanding = (
        db.query(func.count(PostpartumVisitLog.id))
        .filter(PostpartumVisitLog.prompt_sent_at.isnot(None), PostpartumVisitLog.response.is_(None))
        .scalar()
        or 0
    )

    return ReportSummary(
        **counts,
        today=today,
        checkins_sent_today=sum(1 for log in todays_logs if log.prompt_sent_at is not None),
        checkins_done_today=sum(1 for log in todays_logs if log.response == CheckinAnswer.DONE.value),
        checkins_not_done_today=sum(1 for log in todays_logs if log.response == CheckinAnswer.NOT_DONE.value),
        postpartum_answered=answered,
        postpartum_outstanding=outstanding,
    )


def list_subject_rows(db: Session, now: Optional[datetime] = None) -> List[SubjectSummaryRow]:
    now = now or now_local()
    totals = _checkin_totals(db)
    last = _last_answered(db)
    subjects = db.query(Subject).order_by(Subject.created_at.desc(), Subject.id.desc()).all()
    return [_summary_row(s, now, totals.get(s.wa_id, {}), last.get(s.wa_id)) for s in subjects]


def get_subject_detail(db: Session, wa_id: str, now: Optional[datetime] = None) -> SubjectDetail:
    subject = SQLAlchemySubjectRepository(db, Subject).get_by_wa_id(wa_id)
    if subject is None:
        raise EntityNotFoundException(f"Subject {wa_id} not found", details={"wa_id": wa_id})

    logs = SQLAlchemyCheckinLogRepository(db).list_for_subject(wa_id)
    visits = SQLAlchemyPostpartumVisitRepository(db).list_for_subject(wa_id)
    totals = _checkin_totals(db).get(wa_id, {})
    last = next((log for log in logs if log.response), None)

    return SubjectDetail(
        subject=_summary_row(subject, now or now_local(), totals, last),
        checkin_logs=[CheckinLogRead.model_validate(log) for log in logs],
        postpartum_visits=[PostpartumVisitRead.model_validate(row) for row in visits],
    )


def recent_checkin_logs(db: Session, limit: int = 100) -> List[CheckinLogRead]:
    return [CheckinLogRead.model_validate(log) for log in SQLAlchemyCheckinLogRepository(db).recent(limit)]


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

def _to_csv(records: List[dict], columns: List[str]) -> str:
    df = pd.DataFrame.from_records(records, columns=columns)
    return df.to_csv(index=False)


def subjects_csv(db: Session, now: Optional[datetime] = None) -> str:
    rows = [row.model_dump() for row in list_subject_rows(db, now)]
    return _to_csv(rows, list(SubjectSummaryRow.model_fields.keys()))


def checkin_logs_csv(db: Session, wa_id: Optional[str] = None) -> str:
    repo = SQLAlchemyCheckinLogRepository(db)
    logs = repo.list_for_subject(wa_id) if wa_id else repo.recent(limit=0)
    rows = [CheckinLogRead.model_validate(log).model_dump() for log in logs]
    return _to_csv(rows, list(CheckinLogRead.model_fields.keys()))


def postpartum_logs_csv(db: Session) -> str:
    rows = [
        PostpartumVisitRead.model_validate(row).model_dump()
        for row in SQLAlchemyPostpartumVisitRepository(db).all_rows()
    ]
    return _to_csv(rows, list(PostpartumVisitRead.model_fields.keys()))
