"""
Autopilot scheduler routes.

The scheduler holds a single interval job, ``autopilot_tick``. Each tick
takes the Postgres advisory lock, selects the tenants whose autopilot is
due for their frequency, and runs them inline or enqueues one
``autopilot.run_tenant`` Celery task per tenant.
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from autopilot.services.scheduler import scheduler_service

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


class SchedulerStatus(BaseModel):
    running: bool
    jobs_count: int
    jobs: list[dict]


@router.get("/status", response_model=SchedulerStatus)
async def get_scheduler_status():
    """Whether the tick is scheduled in this process, and its next fire time."""
    jobs = scheduler_service.get_jobs()
    return SchedulerStatus(
        running=scheduler_service.is_running(),
        jobs_count=len(jobs),
        jobs=jobs,
    )


@router.post("/start", response_model=dict)
async def start_scheduler():
    """Register the autopilot tick. A no-op when SCHEDULER_ENABLED is off."""
    if scheduler_service.is_running():
        return {"status": "already_running"}

    scheduler_service.start()
    if not scheduler_service.is_running():
        return {"status": "disabled"}
    return {"status": "started", "jobs": scheduler_service.get_jobs()}


@router.post("/stop", response_model=dict)
async def stop_scheduler():
    """Stop ticking here. Runs already enqueued on Celery still complete."""
    if not scheduler_service.is_running():
        return {"status": "already_stopped"}

    scheduler_service.stop()
    return {"status": "stopped"}


@router.post("/jobs/{job_id}/run", response_model=dict)
async def run_job_now(job_id: str):
    """Fire a tick now instead of waiting for the interval.

    Returns the tick summary (due tenants, runs or enqueued ids).
    """
    result = await scheduler_service.run_now(job_id)
    if "error" in result:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result["error"])
    return result
