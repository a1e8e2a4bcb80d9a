from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from remindcare.application.services import reporting_service
from remindcare.core.exceptions import AppError, EntityNotFoundException, global_exception_handler
from remindcare.domain.workflow import CheckinAnswer, SubjectPhase
from remindcare.infrastructure.database import get_db
from remindcare.interfaces.api.reports import router as reports_router
from tests.conftest import at

WA_ID = "628111111111@c.us"


@pytest.fixture
def seeded(make_subject, make_context):
    make_subject(WA_ID)
    make_subject("628222222222@c.us", phase=SubjectPhase.PAUSED.value, is_allowed=True)
    ctx = make_context(at(2024, 3, 2, 10))
    for day, answer in (("2024-03-01", CheckinAnswer.DONE), ("2024-03-02", CheckinAnswer.NOT_DONE)):
        ctx.checkins.mark_sent(ctx.checkins.ensure(WA_ID, day), at(2024, 3, 1, 8))
        ctx.checkins.record_response(WA_ID, day, answer, None)
    return ctx


@pytest.fixture
def client(session_factory):
    app = FastAPI()
    app.add_exception_handler(AppError, global_exception_handler)
    app.include_router(reports_router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


class TestReportingService:
    def test_summary(self, seeded, db):
        summary = reporting_service.get_summary(db, now=at(2024, 3, 2, 12))

        assert summary.total == 2
        assert summary.active == 1
        assert summary.paused == 1
        assert summary.allowed == 1
        assert summary.today == "2024-03-02"
        assert summary.checkins_sent_today == 1
        assert summary.checkins_done_today == 0
        assert summary.checkins_not_done_today == 1

    def test_subject_rows_carry_totals_and_week(self, seeded, db):
        rows = {row.wa_id: row for row in reporting_service.list_subject_rows(db, now=at(2024, 3, 2, 12))}

        row = rows[WA_ID]
        assert row.checkins_done == 1
        assert row.checkins_not_done == 1
        assert row.last_checkin_day == "2024-03-02"
        assert row.last_checkin_response == CheckinAnswer.NOT_DONE.value
        assert row.gestational_week == 9
        assert row.hpht_date == date(2024, 1, 1)
        assert rows["628222222222@c.us"].checkins_done == 0

    def test_detail_for_unknown_subject(self, db):
        with pytest.raises(EntityNotFoundException):
            reporting_service.get_subject_detail(db, "62800@c.us")

    def test_detail(self, seeded, db):
        detail = reporting_service.get_subject_detail(db, WA_ID, now=at(2024, 3, 2, 12))
        assert [log.reminder_date for log in detail.checkin_logs] == ["2024-03-02", "2024-03-01"]
        assert detail.postpartum_visits == []

    def test_checkin_csv(self, seeded, db):
        lines = reporting_service.checkin_logs_csv(db).strip().splitlines()
        assert lines[0].startswith("id,wa_id,reminder_date,response")
        assert len(lines) == 3


class TestReportsApi:
    def test_summary_endpoint(self, seeded, client):
        response = client.get("/api/reports/summary")
        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_unknown_subject_is_404(self, client):
        response = client.get("/api/reports/subjects/62800@c.us")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "EntityNotFoundException"

        export = client.get("/api/reports/subjects/62800@c.us/export.csv")
        assert export.status_code == 404

    def test_subject_export(self, seeded, client):
        response = client.get(f"/api/reports/subjects/{WA_ID}/export.csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="checkin_logs_628111111111.csv"' in response.headers["content-disposition"]
        assert len(response.text.strip().splitlines()) == 3

    def test_bulk_exports(self, seeded, client):
        subjects = client.get("/api/reports/export/subjects.csv")
        assert subjects.status_code == 200
        header = subjects.text.splitlines()[0].split(",")
        assert "gestational_week" in header
        assert "checkins_done" in header

        postpartum = client.get("/api/reports/export/postpartum_logs.csv")
        assert postpartum.status_code == 200
        assert postpartum.text.splitlines()[0].startswith("id,wa_id,visit_code")

    def test_recent_logs(self, seeded, client):
        response = client.get("/api/reports/logs", params={"limit": 1})
        assert response.status_code == 200
        assert [log["reminder_date"] for log in response.json()] == ["2024-03-02"]
