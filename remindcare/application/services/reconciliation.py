"""Reply reconciliation: attribute an inbound text or poll vote to the question it answers.

Free text walks ``REPLY_RULES`` top to bottom and the first matching rule handles it:

1. onboarding in progress + always-available command -> command
2. onboarding in progress -> answer for the current onboarding step
3. any command (start/stop/jam/admin/...)
4. delivery data collection in progress -> answer for the current field
5. delivery intent while a Delivery-Validation stage is pending
6. check-in intent -> today's check-in, else the latest unanswered postpartum visit

Poll votes carry the prompt id and are matched by id instead: Delivery-Validation
poll first, then postpartum visit polls, then the daily check-in poll.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import structlog

from remindcare.application.services import delivery_data, messages, onboarding
from remindcare.application.services.commands import execute_command, match_command
from remindcare.application.services.context import WorkflowContext
from remindcare.application.services.inbound_guard import InboundGuard
from remindcare.application.services.messaging import deliver_text
from remindcare.application.services.parsers import (
    is_always_command,
    is_greeting,
    parse_checkin_answer,
    parse_delivery_answer,
    parse_wa_id_list,
)
from remindcare.application.services.schedule_rules import pending_delivery_stage
from remindcare.config import Settings, get_settings
from remindcare.core.clock import now_local
from remindcare.domain.models.postpartum_visit_log import PostpartumVisitLog
from remindcare.domain.models.subject import Subject
from remindcare.domain.transport import MessagingTransport
from remindcare.domain.workflow import CheckinAnswer, DeliveryAnswer, DeliveryStage, SubjectPhase

logger = structlog.get_logger(__name__)


class ReplyRoute(str, Enum):
    RATE_LIMITED = "rate_limited"
    NOT_ALLOWED = "not_allowed"
    IGNORED = "ignored"
    INTRODUCED = "introduced"
    ONBOARDING_STARTED = "onboarding_started"
    ONBOARDING = "onboarding"
    COMMAND = "command"
    DELIVERY_DATA = "delivery_data"
    DELIVERY_ANSWER = "delivery_answer"
    CHECKIN = "checkin"
    POSTPARTUM = "postpartum"
    NOTHING_PENDING = "nothing_pending"
    FALLBACK = "fallback"


@dataclass
class InboundReply:
    ctx: WorkflowContext
    subject: Subject
    text: str
    guard: InboundGuard


# ---------------------------------------------------------------------------
# Answer recorders
# ---------------------------------------------------------------------------

async def record_daily_answer(ctx: WorkflowContext, subject: Subject, day: str, answer: CheckinAnswer) -> None:
    tally = ctx.checkins.record_response(subject.wa_id, day, answer, ctx.settings.response_limit)
    if not tally.allowed:
        await deliver_text(ctx.transport, subject.wa_id, messages.ALREADY_RECORDED)
        logger.info("Check-in answer over daily cap", subject=subject.wa_id, day=day, answer=answer.value)
        return
    await deliver_text(ctx.transport, subject.wa_id, messages.CHECKIN_ACK[answer])
    logger.info("Check-in answer recorded", subject=subject.wa_id, day=day, answer=answer.value)


async def record_visit_answer(
    ctx: WorkflowContext, subject: Subject, row: PostpartumVisitLog, answer: CheckinAnswer
) -> None:
    tally = ctx.visits.record_response(row, answer, ctx.today, ctx.settings.response_limit)
    if not tally.allowed:
        await deliver_text(ctx.transport, subject.wa_id, messages.ALREADY_RECORDED)
        logger.info("Visit answer over daily cap", subject=subject.wa_id, visit=row.visit_code)
        return
    await deliver_text(ctx.transport, subject.wa_id, messages.VISIT_ACK[answer])
    logger.info("Visit answer recorded", subject=subject.wa_id, visit=row.visit_code, answer=answer.value)


async def record_delivery_answer(
    ctx: WorkflowContext, subject: Subject, stage: DeliveryStage, answer: DeliveryAnswer
) -> None:
    if subject.delivery_validation.confirmed:
        await deliver_text(ctx.transport, subject.wa_id, messages.DELIVERY_ALREADY_CONFIRMED)
        return

    delivered = answer is DeliveryAnswer.DELIVERED
    ctx.subjects.update(
        subject, {"dv_answer": delivered, "dv_answered_at": ctx.now, "dv_stage": stage.value}
    )
    logger.info("Delivery answer recorded", subject=subject.wa_id, stage=stage.value, delivered=delivered)

    if not delivered:
        await deliver_text(ctx.transport, subject.wa_id, messages.DELIVERY_NOT_YET_ACK)
        return
    await deliver_text(ctx.transport, subject.wa_id, messages.DELIVERY_DELIVERED_ACK)
    await delivery_data.start_collection(ctx, subject)


# ---------------------------------------------------------------------------
# Free-text rules
# ---------------------------------------------------------------------------

def is_onboarding_command(reply: InboundReply) -> bool:
    return reply.subject.phase_enum is SubjectPhase.ONBOARDING and is_always_command(reply.text)


def is_onboarding(reply: InboundReply) -> bool:
    return reply.subject.phase_enum is SubjectPhase.ONBOARDING


def is_command(reply: InboundReply) -> bool:
    return match_command(reply.text) is not None


def is_collecting_delivery_data(reply: InboundReply) -> bool:
    return reply.subject.delivery_data.collecting


def answers_pending_delivery(reply: InboundReply) -> bool:
    return (
        parse_delivery_answer(reply.text) is not None
        and pending_delivery_stage(reply.subject.delivery_validation) is not None
    )


def has_checkin_intent(reply: InboundReply) -> bool:
    return parse_checkin_answer(reply.text) is not None


async def handle_command(reply: InboundReply) -> ReplyRoute:
    await execute_command(reply.ctx, reply.subject, match_command(reply.text), reply.guard)
    return ReplyRoute.COMMAND


async def handle_onboarding(reply: InboundReply) -> ReplyRoute:
    await onboarding.handle_onboarding_answer(reply.ctx, reply.subject, reply.text)
    return ReplyRoute.ONBOARDING


async def handle_delivery_data(reply: InboundReply) -> ReplyRoute:
    await delivery_data.handle_delivery_answer(reply.ctx, reply.subject, reply.text)
    return ReplyRoute.DELIVERY_DATA


async def handle_delivery_answer(reply: InboundReply) -> ReplyRoute:
    stage = pending_delivery_stage(reply.subject.delivery_validation)
    await record_delivery_answer(reply.ctx, reply.subject, stage, parse_delivery_answer(reply.text))
    return ReplyRoute.DELIVERY_ANSWER


async def handle_checkin_intent(reply: InboundReply) -> ReplyRoute:
    ctx, subject = reply.ctx, reply.subject
    answer = parse_checkin_answer(reply.text)

    if subject.checkin_last_sent_day == ctx.today:
        await record_daily_answer(ctx, subject, ctx.today, answer)
        return ReplyRoute.CHECKIN

    row = ctx.visits.latest_unanswered_sent(subject.wa_id)
    if row is not None:
        await record_visit_answer(ctx, subject, row, answer)
        return ReplyRoute.POSTPARTUM

    await deliver_text(ctx.transport, subject.wa_id, messages.NOTHING_PENDING)
    return ReplyRoute.NOTHING_PENDING


@dataclass(frozen=True)
class ReplyRule:
    name: str
    matches: Callable[[InboundReply], bool]
    handle: Callable[[InboundReply], Awaitable[ReplyRoute]]


REPLY_RULES: List[ReplyRule] = [
    ReplyRule("onboarding_command", is_onboarding_command, handle_command),
    ReplyRule("onboarding", is_onboarding, handle_onboarding),
    ReplyRule("command", is_command, handle_command),
    ReplyRule("delivery_data", is_collecting_delivery_data, handle_delivery_data),
    ReplyRule("delivery_answer", answers_pending_delivery, handle_delivery_answer),
    ReplyRule("checkin", has_checkin_intent, handle_checkin_intent),
]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

class ReplyReconciler:
    """Owns the inbound guard and routes each inbound event inside its own DB session."""

    def __init__(
        self,
        session_factory: Callable,
        transport: MessagingTransport,
        settings: Optional[Settings] = None,
        guard: Optional[InboundGuard] = None,
    ):
        self.session_factory = session_factory
        self.transport = transport
        self.settings = settings or get_settings()
        self.guard = guard or InboundGuard.from_settings(self.settings)
        self.admin_ids = parse_wa_id_list(self.settings.ADMIN_WA_IDS)
        self.allowlist_ids = parse_wa_id_list(self.settings.ALLOWLIST_WA_IDS)

    def _is_permitted(self, subject: Subject) -> bool:
        return not self.settings.ENFORCE_ALLOWLIST or bool(subject.is_allowed or subject.is_admin)

    async def _rate_limited(self, wa_id: str) -> bool:
        decision = self.guard.check_rate(wa_id)
        if decision.allowed:
            return False
        if decision.should_warn:
            await deliver_text(self.transport, wa_id, messages.RATE_LIMITED)
        logger.info("Inbound rate limited", subject=wa_id)
        return True

    async def handle_text(self, wa_id: str, text: Optional[str], now: Optional[datetime] = None) -> ReplyRoute:
        text = (text or "").strip()
        if await self._rate_limited(wa_id):
            return ReplyRoute.RATE_LIMITED

        with self.session_factory() as db:
            ctx = WorkflowContext.for_session(db, self.transport, self.settings, now or now_local())
            is_admin = wa_id in self.admin_ids
            is_allowed = is_admin or wa_id in self.allowlist_ids

            if ctx.subjects.get_by_wa_id(wa_id) is None:
                if self.settings.ENFORCE_ALLOWLIST and not is_allowed:
                    await deliver_text(self.transport, wa_id, messages.NOT_ALLOWED)
                    return ReplyRoute.NOT_ALLOWED
                if is_greeting(text):
                    await deliver_text(self.transport, wa_id, messages.INTRO.format(url=self.settings.WEBSITE_URL))
                    return ReplyRoute.INTRODUCED

            subject, is_new = ctx.subjects.ensure(wa_id, is_admin=is_admin, is_allowed=is_allowed)
            if subject.is_blocked:
                return ReplyRoute.IGNORED
            if not self._is_permitted(subject):
                await deliver_text(self.transport, wa_id, messages.NOT_ALLOWED)
                return ReplyRoute.NOT_ALLOWED
            if is_new:
                logger.info("New subject registered", subject=wa_id)
                await onboarding.ask(ctx, subject, 1)
                return ReplyRoute.ONBOARDING_STARTED

            reply = InboundReply(ctx=ctx, subject=subject, text=text, guard=self.guard)
            for rule in REPLY_RULES:
                if rule.matches(reply):
                    return await rule.handle(reply)

            await deliver_text(self.transport, wa_id, messages.FALLBACK)
            return ReplyRoute.FALLBACK

    async def handle_selection(
        self, wa_id: str, prompt_id: Optional[str], option_label: Optional[str], now: Optional[datetime] = None
    ) -> ReplyRoute:
        if not prompt_id or not option_label:
            return ReplyRoute.IGNORED
        if await self._rate_limited(wa_id):
            return ReplyRoute.RATE_LIMITED

        with self.session_factory() as db:
            ctx = WorkflowContext.for_session(db, self.transport, self.settings, now or now_local())
            subject = ctx.subjects.get_by_wa_id(wa_id)
            if subject is None or subject.is_blocked or not self._is_permitted(subject):
                return ReplyRoute.IGNORED

            validation = subject.delivery_validation
            if validation.poll_id == prompt_id:
                answer = parse_delivery_answer(option_label)
                if answer is None:
                    return ReplyRoute.IGNORED
                stage = pending_delivery_stage(validation) or validation.stage or DeliveryStage.WEEK39_DAILY
                await record_delivery_answer(ctx, subject, stage, answer)
                return ReplyRoute.DELIVERY_ANSWER

            row = ctx.visits.get_by_prompt_id(wa_id, prompt_id)
            if row is not None:
                answer = parse_checkin_answer(option_label)
                if answer is None:
                    return ReplyRoute.IGNORED
                await record_visit_answer(ctx, subject, row, answer)
                return ReplyRoute.POSTPARTUM

            if subject.checkin_poll_id == prompt_id:
                answer = parse_checkin_answer(option_label)
                if answer is None:
                    return ReplyRoute.IGNORED
                await record_daily_answer(ctx, subject, subject.checkin_last_sent_day or ctx.today, answer)
                return ReplyRoute.CHECKIN

            logger.info("Vote for unknown prompt ignored", subject=wa_id, prompt_id=prompt_id)
            return ReplyRoute.IGNORED
