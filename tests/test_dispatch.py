from datetime import date, timedelta

import pytest

from remindcare.application.services import messages
from remindcare.application.services.dispatch import (
    complete_if_expired,
    dispatch_daily_checkin,
    dispatch_delivery_validation,
    dispatch_labor_education,
    dispatch_postpartum,
    process_subject,
)
from remindcare.domain.workflow import SubjectPhase, VisitCode
from tests.conftest import at


class TestDailyCheckin:
    @pytest.mark.asyncio
    async def test_sends_intro_then_poll_once_per_day(self, make_subject, make_context, transport):
        subject = make_subject()
        ctx = make_context(at(2024, 3, 1, 8, 30))

        assert await dispatch_daily_checkin(ctx, subject) is True
        assert await dispatch_daily_checkin(ctx, subject) is False

        assert len(transport.texts()) == 1
        assert transport.texts()[0].startswith("Selamat pagi ☀️, Sari!")
        polls = transport.polls()
        assert len(polls) == 1
        assert polls[0]["options"] == messages.CHECKIN_POLL_OPTIONS

        assert subject.checkin_last_sent_day == "2024-03-01"
        assert subject.checkin_poll_id == polls[0]["id"]
        logs = ctx.checkins.list_for_subject(subject.wa_id)
        assert len(logs) == 1
        assert logs[0].prompt_sent_at is not None

    @pytest.mark.asyncio
    async def test_not_before_reminder_time(self, make_subject, make_context, transport):
        subject = make_subject(reminder_time="17:00")
        assert await dispatch_daily_checkin(make_context(at(2024, 3, 1, 16, 59)), subject) is False
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_sent_log_row_wins_over_lagging_subject(self, make_subject, make_context, transport):
        subject = make_subject()
        ctx = make_context(at(2024, 3, 1, 8, 30))
        ctx.checkins.mark_sent(ctx.checkins.ensure(subject.wa_id, "2024-03-01"), ctx.now)

        assert await dispatch_daily_checkin(ctx, subject) is False
        assert transport.sent == []
        assert subject.checkin_last_sent_day == "2024-03-01"

    @pytest.mark.asyncio
    async def test_failure_backs_off_and_intro_is_not_repeated(self, make_subject, make_context, transport):
        subject = make_subject()
        start = at(2024, 3, 1, 8, 30)
        transport.fail_polls = True

        assert await dispatch_daily_checkin(make_context(start), subject) is False
        assert subject.checkin_failures == 1
        assert subject.checkin_last_sent_day is None
        assert len(transport.texts()) == 1

        transport.fail_polls = False
        assert await dispatch_daily_checkin(make_context(start + timedelta(seconds=30)), subject) is False
        assert transport.polls() == []

        assert await dispatch_daily_checkin(make_context(start + timedelta(seconds=60)), subject) is True
        assert len(transport.texts()) == 1
        assert len(transport.polls()) == 1
        assert subject.checkin_failures == 0

    @pytest.mark.asyncio
    async def test_intro_failure_counts_as_failure(self, make_subject, make_context, transport):
        subject = make_subject()
        transport.fail_texts = True

        assert await dispatch_daily_checkin(make_context(at(2024, 3, 1, 8, 30)), subject) is False
        assert subject.checkin_failures == 1
        assert subject.checkin_intro_day is None
        assert transport.polls() == []


class TestLaborEducation:
    @pytest.mark.asyncio
    async def test_weekly_message_once_per_day(self, make_subject, make_context, transport):
        subject = make_subject()
        ctx = make_context(at(2024, 9, 9, 8, 30))

        assert await dispatch_labor_education(ctx, subject) is True
        assert await dispatch_labor_education(ctx, subject) is False
        assert transport.texts() == [messages.build_labor_education(37, date(2024, 10, 7))]

    @pytest.mark.asyncio
    async def test_failed_education_is_not_retried_same_day(self, make_subject, make_context, transport):
        subject = make_subject()
        transport.fail_texts = True
        assert await dispatch_labor_education(make_context(at(2024, 9, 9, 8, 30)), subject) is False

        transport.fail_texts = False
        assert await dispatch_labor_education(make_context(at(2024, 9, 9, 12, 0)), subject) is False
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_silent_after_delivery_recorded(self, make_subject, make_context, transport):
        subject = make_subject(delivery_date=date(2024, 9, 8), delivery_time="03:00")
        assert await dispatch_labor_education(make_context(at(2024, 9, 9, 8, 30)), subject) is False


class TestDeliveryValidation:
    @pytest.mark.asyncio
    async def test_estimated_date_poll(self, make_subject, make_context, transport):
        subject = make_subject()
        ctx = make_context(at(2024, 10, 7, 9, 0))

        assert await dispatch_delivery_validation(ctx, subject) is True
        assert await dispatch_delivery_validation(ctx, subject) is False

        assert transport.texts() == ["Hari ini adalah perkiraan hari lahir (HPL) Bunda: 7 Oktober 2024. 📅"]
        polls = transport.polls()
        assert len(polls) == 1
        assert polls[0]["text"] == messages.DELIVERY_POLL_QUESTION

        assert subject.dv_stage == "hpl"
        assert subject.dv_hpl_day == "2024-10-07"
        assert subject.dv_poll_id == polls[0]["id"]

    @pytest.mark.asyncio
    async def test_follow_up_three_days_later(self, make_subject, make_context, transport):
        subject = make_subject()
        assert await dispatch_delivery_validation(make_context(at(2024, 10, 7, 9)), subject) is True
        assert await dispatch_delivery_validation(make_context(at(2024, 10, 8, 9)), subject) is False
        assert await dispatch_delivery_validation(make_context(at(2024, 10, 10, 9)), subject) is True
        assert subject.dv_stage == "hpl3"
        assert subject.dv_hpl3_day == "2024-10-10"

    @pytest.mark.asyncio
    async def test_retry_does_not_resend_intro(self, make_subject, make_context, transport):
        subject = make_subject()
        start = at(2024, 10, 7, 9)
        transport.fail_polls = True
        assert await dispatch_delivery_validation(make_context(start), subject) is False
        assert subject.dv_failures == 1

        transport.fail_polls = False
        assert await dispatch_delivery_validation(make_context(start + timedelta(minutes=1)), subject) is True
        assert len(transport.texts()) == 1
        assert len(transport.polls()) == 1
        assert subject.dv_failures == 0

    @pytest.mark.asyncio
    async def test_stops_once_confirmed(self, make_subject, make_context, transport):
        subject = make_subject(dv_answer=True)
        assert await dispatch_delivery_validation(make_context(at(2024, 10, 7, 9)), subject) is False
        assert transport.sent == []


class TestPostpartum:
    @pytest.fixture
    def delivered(self, make_subject):
        return make_subject(
            dv_answer=True,
            delivery_date=date(2024, 10, 5),
            delivery_time="14:30",
            delivery_place="Puskesmas",
            delivery_attendant="Bidan",
        )

    @pytest.mark.asyncio
    async def test_education_once_then_one_visit_per_call(self, delivered, make_context, transport):
        now = at(2024, 10, 9, 9)

        assert await dispatch_postpartum(make_context(now), delivered) is True
        assert transport.texts() == [messages.POSTPARTUM_EDUCATION, messages.VISIT_EXPLAINERS[VisitCode.KF1]]
        assert [p["text"] for p in transport.polls()] == [messages.build_visit_question(VisitCode.KF1)]

        transport.clear()
        assert await dispatch_postpartum(make_context(now), delivered) is True
        assert transport.texts() == [messages.VISIT_EXPLAINERS[VisitCode.KN1]]
        assert [p["text"] for p in transport.polls()] == [messages.build_visit_question(VisitCode.KN1)]

    @pytest.mark.asyncio
    async def test_visit_prompt_records_prompt_id(self, delivered, make_context, transport):
        ctx = make_context(at(2024, 10, 5, 21))
        assert await dispatch_postpartum(ctx, delivered) is True

        rows = {row.visit_code: row for row in ctx.visits.list_for_subject(delivered.wa_id)}
        assert len(rows) == len(VisitCode)
        assert rows["KF1"].prompt_id == transport.polls()[0]["id"]
        assert rows["KF1"].explainer_sent_at is not None
        assert rows["KF2"].prompt_sent_at is None

    @pytest.mark.asyncio
    async def test_nothing_before_first_window(self, delivered, make_context, transport):
        assert await dispatch_postpartum(make_context(at(2024, 10, 5, 20)), delivered) is False
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_failed_poll_keeps_explainer_and_backs_off(self, delivered, make_context, transport):
        now = at(2024, 10, 5, 21)
        transport.fail_polls = True
        assert await dispatch_postpartum(make_context(now), delivered) is False

        transport.fail_polls = False
        assert await dispatch_postpartum(make_context(now + timedelta(seconds=10)), delivered) is False
        assert await dispatch_postpartum(make_context(now + timedelta(seconds=60)), delivered) is True
        assert transport.texts().count(messages.VISIT_EXPLAINERS[VisitCode.KF1]) == 1
        assert transport.texts().count(messages.POSTPARTUM_EDUCATION) == 1


class TestProcessSubject:
    @pytest.mark.asyncio
    async def test_runs_due_workflows(self, make_subject, make_context):
        subject = make_subject()
        assert await process_subject(make_context(at(2024, 9, 9, 8, 30)), subject) == [
            "daily_checkin",
            "labor_education",
        ]

    @pytest.mark.asyncio
    async def test_skips_inactive_and_blocked(self, make_subject, make_context, transport):
        paused = make_subject(phase=SubjectPhase.PAUSED.value)
        blocked = make_subject("628222222222@c.us", is_blocked=True)
        ctx = make_context(at(2024, 3, 1, 8, 30))
        assert await process_subject(ctx, paused) == []
        assert await process_subject(ctx, blocked) == []
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_declined_reminders_skip_every_workflow(self, make_subject, make_context, transport):
        declined = make_subject(allow_reminders=False, reminder_time=None)
        # Week 39: labor education and delivery validation would both be due
        ctx = make_context(at(2024, 9, 25, 9, 0))

        assert await process_subject(ctx, declined) == []
        assert transport.sent == []

        consenting = make_subject("628222222222@c.us", reminder_time=None)
        assert await process_subject(ctx, consenting) == ["labor_education", "delivery_validation"]

    @pytest.mark.asyncio
    async def test_allowlist_enforced(self, make_subject, make_context, settings):
        settings.ENFORCE_ALLOWLIST = True
        stranger = make_subject()
        allowed = make_subject("628333333333@c.us", is_allowed=True)
        ctx = make_context(at(2024, 3, 1, 8, 30))
        assert await process_subject(ctx, stranger) == []
        assert await process_subject(ctx, allowed) == ["daily_checkin"]

    @pytest.mark.asyncio
    async def test_completion_after_tracking_window(self, make_subject, make_context, transport):
        subject = make_subject(hpht_date=date(2023, 1, 1))
        assert await process_subject(make_context(at(2024, 3, 1, 8, 30)), subject) == ["completion"]
        assert subject.phase == SubjectPhase.COMPLETED.value
        assert subject.allow_reminders is False
        assert transport.texts() == [messages.COMPLETED]

    @pytest.mark.asyncio
    async def test_completion_waits_for_postpartum_period(self, make_subject, make_context):
        subject = make_subject(
            hpht_date=date(2023, 1, 1), dv_answer=True, delivery_date=date(2024, 2, 20), delivery_time="10:00"
        )
        assert await complete_if_expired(make_context(at(2024, 3, 1, 8, 30)), subject) is False
        assert await complete_if_expired(make_context(at(2024, 4, 2, 10, 0)), subject) is True
