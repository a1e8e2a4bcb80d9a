"""Reports API: read-only views over subjects and logs, with CSV export."""

from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from remindcare.application.services import reporting_service
from remindcare.core.exceptions import EntityNotFoundException
from remindcare.domain.repositories.subject_repository import SubjectRepository
from remindcare.domain.schemas.report import CheckinLogRead, ReportSummary, SubjectDetail, SubjectSummaryRow
from remindcare.infrastructure.database import get_db
from remindcare.interfaces.deps import get_subject_repository

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/summary", response_model=ReportSummary)
def summary(db: Session = Depends(get_db)):
    return reporting_service.get_summary(db)


@router.get("/subjects", response_model=List[SubjectSummaryRow])
def list_subjects(db: Session = Depends(get_db)):
    return reporting_service.list_subject_rows(db)


@router.get("/subjects/{wa_id}", response_model=SubjectDetail)
def subject_detail(wa_id: str, db: Session = Depends(get_db)):
    return reporting_service.get_subject_detail(db, wa_id)


@router.get("/logs", response_model=List[CheckinLogRead])
def recent_logs(limit: int = Query(100, ge=1, le=1000), db: Session = Depends(get_db)):
    return reporting_service.recent_checkin_logs(db, limit)


@router.get("/export/subjects.csv")
def export_subjects(db: Session = Depends(get_db)):
    return _csv_response(reporting_service.subjects_csv(db), "subjects.csv")


@router.get("/export/checkin_logs.csv")
def export_checkin_logs(db: Session = Depends(get_db)):
    return _csv_response(reporting_service.checkin_logs_csv(db), "checkin_logs.csv")


@router.get("/export/postpartum_logs.csv")
def export_postpartum_logs(db: Session = Depends(get_db)):
    return _csv_response(reporting_service.postpartum_logs_csv(db), "postpartum_logs.csv")


@router.get("/subjects/{wa_id}/export.csv")
def export_subject_logs(
    wa_id: str,
    db: Session = Depends(get_db),
    subjects: SubjectRepository = Depends(get_subject_repository),
):
    if subjects.get_by_wa_id(wa_id) is None:
        raise EntityNotFoundException(f"Subject {wa_id} not found", details={"wa_id": wa_id})
    filename = f"checkin_logs_{wa_id.split('@', 1)[0]}.csv"
    return _csv_response(reporting_service.checkin_logs_csv(db, wa_id), filename)
