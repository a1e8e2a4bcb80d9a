"""Scheduler status API: registered jobs, last tick and Evolution instance state."""

from fastapi import APIRouter, Depends

from remindcare.interfaces.deps import get_scheduler_state, get_transport
from remindcare.scheduler.tick import SchedulerState

router = APIRouter(prefix="/api/scheduler", tags=["Scheduler"])


@router.get("/status")
async def scheduler_status(state: SchedulerState = Depends(get_scheduler_state), transport=Depends(get_transport)):
    """Get scheduler status and next run time."""
    from remindcare.scheduler.jobs import list_jobs, scheduler

    last = state.last_result
    instance = {}
    if hasattr(transport, "check_instance_status"):
        instance = await transport.check_instance_status()

    return {
        "running": scheduler.running,
        "tick_in_flight": state.running,
        "last_tick_at": state.last_tick_at.isoformat() if state.last_tick_at else None,
        "last_cleanup_day": state.last_cleanup_day,
        "last_tick": {
            "processed": last.processed,
            "failed": last.failed,
            "sent": len(last.sent),
            "purged": last.purged,
            "purged_visits": last.purged_visits,
        } if last else None,
        "jobs": list_jobs(),
        "instance": instance,
    }
