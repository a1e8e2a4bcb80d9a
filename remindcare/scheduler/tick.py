"""One scheduler tick: retention cleanup, then every active subject with bounded fan-out."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

import structlog

from remindcare.application.services.context import WorkflowContext
from remindcare.application.services.dispatch import process_subject
from remindcare.config import Settings, get_settings
from remindcare.core.clock import now_local, to_day_key
from remindcare.domain.transport import MessagingTransport

logger = structlog.get_logger(__name__)


@dataclass
class SchedulerState:
    """Owned by whoever drives the ticks; never shared through module globals."""

    running: bool = False
    last_cleanup_day: Optional[str] = None
    last_tick_at: Optional[datetime] = None
    last_result: Optional["TickResult"] = None


@dataclass
class TickResult:
    skipped: bool = False
    processed: int = 0
    failed: int = 0
    purged: int = 0
    purged_visits: int = 0
    sent: List[str] = field(default_factory=list)


def _chunks(items: List[str], size: int):
    size = max(size, 1)
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _purge_logs(
    session_factory: Callable, transport: MessagingTransport, settings: Settings, now: datetime
) -> Tuple[int, int]:
    """Returns (check-in rows, postpartum visit rows) removed."""
    horizon = timedelta(days=settings.REMINDER_LOG_RETENTION_DAYS)
    with session_factory() as db:
        ctx = WorkflowContext.for_session(db, transport, settings, now)
        checkins = ctx.checkins.purge_older_than(to_day_key(now.date() - horizon))
        visits = ctx.visits.purge_completed_older_than(now - horizon)
        return checkins, visits


async def _process_one(
    wa_id: str, session_factory: Callable, transport: MessagingTransport, settings: Settings, now: datetime
) -> Optional[List[str]]:
    """Returns the workflows that sent, or None when processing failed."""
    with session_factory() as db:
        try:
            ctx = WorkflowContext.for_session(db, transport, settings, now)
            subject = ctx.subjects.get_by_wa_id(wa_id)
            if subject is None:
                return []
            return await process_subject(ctx, subject)
        except Exception:
            db.rollback()
            logger.exception("Subject processing failed", subject=wa_id)
            return None


async def run_tick(
    state: SchedulerState,
    session_factory: Callable,
    transport: MessagingTransport,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> TickResult:
    """Evaluate every schedulable subject once. A tick overlapping a running one is skipped."""
    if state.running:
        logger.info("Tick skipped, previous tick still running")
        return TickResult(skipped=True)

    state.running = True
    settings = settings or get_settings()
    now = now or now_local()
    result = TickResult()
    try:
        today = to_day_key(now)
        if state.last_cleanup_day != today:
            state.last_cleanup_day = today
            try:
                result.purged, result.purged_visits = _purge_logs(session_factory, transport, settings, now)
                logger.info("Old logs purged", checkins=result.purged, visits=result.purged_visits)
            except Exception:
                logger.exception("Log retention cleanup failed")

        with session_factory() as db:
            ctx = WorkflowContext.for_session(db, transport, settings, now)
            wa_ids = [subject.wa_id for subject in ctx.subjects.list_schedulable()]

        for chunk in _chunks(wa_ids, settings.SCHEDULER_MAX_CONCURRENCY):
            outcomes = await asyncio.gather(
                *(_process_one(wa_id, session_factory, transport, settings, now) for wa_id in chunk)
            )
            for wa_id, sent in zip(chunk, outcomes):
                result.processed += 1
                if sent is None:
                    result.failed += 1
                else:
                    result.sent.extend(f"{wa_id}:{name}" for name in sent)

        if result.sent or result.failed:
            logger.info("Tick finished", processed=result.processed, sent=len(result.sent), failed=result.failed)
        return result
    finally:
        state.running = False
        state.last_tick_at = now
        state.last_result = result
