"""APScheduler jobs: the reminder tick every SCHEDULER_TICK_SECONDS."""

import logging
from typing import Callable, Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from remindcare.config import get_settings
from remindcare.domain.transport import MessagingTransport
from remindcare.infrastructure.database import SessionLocal
from remindcare.scheduler.tick import SchedulerState, run_tick

settings = get_settings()
logger = logging.getLogger(__name__)
tz = pytz.timezone(settings.TIMEZONE)

scheduler = AsyncIOScheduler(timezone=tz)

REMINDER_TICK_JOB_ID = "reminder_tick"


async def reminder_tick_job(state: SchedulerState, transport: MessagingTransport, session_factory: Callable):
    """Periodic job: evaluate all due workflows for every active subject."""
    try:
        await run_tick(state, session_factory, transport, settings)
    except Exception as e:
        logger.error(f"Reminder tick failed: {e}")


def start_scheduler(
    transport: MessagingTransport,
    session_factory: Callable = SessionLocal,
    state: Optional[SchedulerState] = None,
) -> SchedulerState:
    """Register the tick job and start the scheduler; returns the state the job drives."""
    state = state or SchedulerState()
    scheduler.add_job(
        reminder_tick_job,
        trigger=IntervalTrigger(seconds=settings.SCHEDULER_TICK_SECONDS, timezone=tz),
        kwargs={"state": state, "transport": transport, "session_factory": session_factory},
        id=REMINDER_TICK_JOB_ID,
        name=f"Reminder tick (every {settings.SCHEDULER_TICK_SECONDS}s)",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started, reminder tick every {settings.SCHEDULER_TICK_SECONDS}s ({settings.TIMEZONE})")
    return state


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def list_jobs() -> list:
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
