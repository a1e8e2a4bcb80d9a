import asyncio

import pytest

from remindcare.core.exceptions import TransportError
from remindcare.domain.models.checkin_log import CheckinLog
from remindcare.domain.workflow import SubjectPhase
from remindcare.infrastructure.repositories.log_repository import (
    SQLAlchemyCheckinLogRepository,
    SQLAlchemyPostpartumVisitRepository,
)
from remindcare.scheduler.tick import SchedulerState, run_tick
from tests.conftest import FakeTransport, at


class ExplodingTransport(FakeTransport):
    """Raises an unexpected error for one address."""

    def __init__(self, broken_address):
        super().__init__()
        self.broken_address = broken_address

    async def send_text(self, address, text, apply_rate_limit=False):
        if address == self.broken_address:
            raise RuntimeError("unexpected payload")
        return await super().send_text(address, text, apply_rate_limit)


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(make_subject, session_factory, transport, settings):
    make_subject()
    state = SchedulerState(running=True)

    result = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 8, 30))

    assert result.skipped is True
    assert transport.sent == []


@pytest.mark.asyncio
async def test_tick_processes_every_active_subject(make_subject, session_factory, transport, settings, db):
    make_subject("628111111111@c.us")
    make_subject("628222222222@c.us")
    make_subject("628333333333@c.us")
    make_subject("628444444444@c.us", phase=SubjectPhase.PAUSED.value)
    state = SchedulerState()

    result = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 8, 30))

    assert result.processed == 3
    assert result.failed == 0
    assert sorted(result.sent) == [
        "628111111111@c.us:daily_checkin",
        "628222222222@c.us:daily_checkin",
        "628333333333@c.us:daily_checkin",
    ]
    assert state.running is False
    assert state.last_result is result
    assert transport.polls("628444444444@c.us") == []

    # A second tick in the same period sends nothing new
    transport.clear()
    again = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 8, 31))
    assert again.sent == []
    assert transport.sent == []


class SlowTransport(FakeTransport):
    """Holds every send open briefly and records how many overlap."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def _hold(self):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.in_flight -= 1

    async def send_text(self, address, text, apply_rate_limit=False):
        await self._hold()
        return await super().send_text(address, text, apply_rate_limit)

    async def send_poll(self, address, question, options, apply_rate_limit=False):
        await self._hold()
        return await super().send_poll(address, question, options, apply_rate_limit)


@pytest.mark.asyncio
async def test_fan_out_is_bounded_by_max_concurrency(make_subject, session_factory, settings):
    wa_ids = [f"62811111111{n}@c.us" for n in range(7)]
    for wa_id in wa_ids:
        make_subject(wa_id)
    transport = SlowTransport()

    result = await run_tick(SchedulerState(), session_factory, transport, settings, now=at(2024, 3, 1, 8, 30))

    assert result.processed == 7
    assert len(result.sent) == 7
    assert transport.peak == settings.SCHEDULER_MAX_CONCURRENCY
    assert len(transport.polls(wa_ids[-1])) == 1


@pytest.mark.asyncio
async def test_one_failing_subject_does_not_stop_the_others(make_subject, session_factory, settings):
    make_subject("628111111111@c.us")
    make_subject("628222222222@c.us")
    transport = ExplodingTransport("628111111111@c.us")
    state = SchedulerState()

    result = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 8, 30))

    assert result.processed == 2
    assert result.failed == 1
    assert result.sent == ["628222222222@c.us:daily_checkin"]
    assert state.running is False


@pytest.mark.asyncio
async def test_transport_outage_is_recorded_not_raised(make_subject, session_factory, transport, settings, db):
    subject = make_subject()
    transport.fail_texts = True
    state = SchedulerState()

    result = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 8, 30))

    assert result.failed == 0
    assert result.sent == []
    db.expire_all()
    assert subject.checkin_failures == 1


@pytest.mark.asyncio
async def test_log_retention_runs_once_per_day(db, session_factory, transport, settings):
    logs = SQLAlchemyCheckinLogRepository(db)
    logs.ensure("628111111111@c.us", "2023-01-01")
    logs.ensure("628111111111@c.us", "2024-02-28")
    state = SchedulerState()

    first = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 0, 1))
    assert first.purged == 1
    assert state.last_cleanup_day == "2024-03-01"

    logs.ensure("628111111111@c.us", "2023-01-02")
    second = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 12, 0))
    assert second.purged == 0

    db.expire_all()
    assert db.query(CheckinLog).count() == 2

    third = await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 2, 0, 1))
    assert third.purged == 1


@pytest.mark.asyncio
async def test_retention_drops_old_visit_rows_of_completed_subjects(
    db, make_subject, session_factory, transport, settings
):
    visits = SQLAlchemyPostpartumVisitRepository(db)
    make_subject("628111111111@c.us", phase=SubjectPhase.COMPLETED.value)
    make_subject("628222222222@c.us", phase=SubjectPhase.PAUSED.value)
    make_subject("628333333333@c.us", phase=SubjectPhase.COMPLETED.value)
    visits.ensure_schedule("628111111111@c.us", at(2024, 1, 10, 10, 0))
    visits.ensure_schedule("628222222222@c.us", at(2024, 1, 10, 10, 0))
    visits.ensure_schedule("628333333333@c.us", at(2024, 8, 1, 10, 0))

    result = await run_tick(SchedulerState(), session_factory, transport, settings, now=at(2024, 9, 1, 0, 1))

    assert result.purged_visits == 7
    db.expire_all()
    assert visits.list_for_subject("628111111111@c.us") == []
    assert len(visits.list_for_subject("628222222222@c.us")) == 7
    assert len(visits.list_for_subject("628333333333@c.us")) == 7


def test_transport_error_is_an_app_error():
    err = TransportError("down")
    assert err.status_code == 502
    assert err.message == "down"


@pytest.mark.asyncio
async def test_status_endpoint_reports_last_tick(make_subject, session_factory, transport, settings):
    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    from remindcare.interfaces.api.scheduler import router as scheduler_router

    make_subject()
    state = SchedulerState()
    await run_tick(state, session_factory, transport, settings, now=at(2024, 3, 1, 8, 30))

    app = FastAPI()
    app.include_router(scheduler_router)
    app.state.transport = transport
    app.state.scheduler_state = state
    body = TestClient(app).get("/api/scheduler/status").json()

    assert body["running"] is False
    assert body["tick_in_flight"] is False
    assert body["last_cleanup_day"] == "2024-03-01"
    assert body["last_tick"]["processed"] == 1
    assert body["last_tick"]["sent"] == 1
    assert body["instance"] == {}
