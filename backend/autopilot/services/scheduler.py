"""
Scheduler Service

Runs the content autopilot on a fixed tick:
- every SCHEDULER_TICK_MINUTES, each tenant whose autopilot is enabled,
  not stopped and due for its frequency (daily / 3x_week / weekly) gets a run
- with CELERY_ENABLED the runs are enqueued on the `autopilot` queue,
  otherwise they run inline in the tick

Single-leader election via Postgres advisory locks:
- Only the instance that acquires the lock executes the tick
- Other instances silently skip
- Non-Postgres engines (tests, local sqlite) skip the lock
- Controlled by SCHEDULER_ENABLED env (default: true)
"""
from __future__ import annotations

import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autopilot.db import make_engine, make_session_factory
from autopilot.settings import get_settings

logger = logging.getLogger("scheduler")

# Advisory lock key (arbitrary int64, unique per job type)
LOCK_AUTOPILOT_TICK = 910_001


class SchedulerService:
    """Periodic autopilot runs.

    Uses Postgres pg_try_advisory_lock on each tick so that only
    one backend instance (the leader) executes the job while
    other instances skip silently.
    """

    _instance: "SchedulerService | None" = None

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._session_factory: async_sessionmaker | None = None
        self._running = False

    @classmethod
    def get_instance(cls) -> "SchedulerService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure(self, database_url: str | None = None, session_factory: async_sessionmaker | None = None):
        """Configure database connection (or reuse an existing session factory)."""
        if session_factory is not None:
            self._session_factory = session_factory
            return
        self._session_factory = make_session_factory(make_engine(database_url))

    async def _get_session(self) -> AsyncSession:
        if not self._session_factory:
            self.configure(get_settings().async_database_url)
        return self._session_factory()

    async def _try_advisory_lock(self, session: AsyncSession, lock_key: int) -> bool:
        """Try to acquire a Postgres session-level advisory lock (non-blocking).

        Returns True if this instance acquired the lock (is leader for this tick).
        The lock is automatically released when the session/connection closes.
        """
        if not get_settings().is_postgres:
            return True
        result = await session.execute(text(f"SELECT pg_try_advisory_lock({lock_key})"))
        return bool(result.scalar())

    async def _release_advisory_lock(self, session: AsyncSession, lock_key: int):
        if not get_settings().is_postgres:
            return
        await session.execute(text(f"SELECT pg_advisory_unlock({lock_key})"))

    def start(self):
        """Start the scheduler (respects SCHEDULER_ENABLED env)."""
        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduler DISABLED by SCHEDULER_ENABLED=false, skipping start")
            return

        if self._running:
            return

        self.scheduler.add_job(
            self._run_autopilot_tick,
            IntervalTrigger(minutes=settings.scheduler_tick_minutes),
            id="autopilot_tick",
            name="Content autopilot runs",
            replace_existing=True,
        )

        self.scheduler.start()
        self._running = True
        logger.info("Scheduler started (tick every %d min)", settings.scheduler_tick_minutes)

    def stop(self):
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    async def _run_autopilot_tick(self) -> dict[str, Any] | None:
        """Run (or enqueue) autopilot for every due tenant.

        The lock lives on its own session, which stays on one connection
        while the work session commits.
        """
        async with await self._get_session() as lock_session:
            acquired = await self._try_advisory_lock(lock_session, LOCK_AUTOPILOT_TICK)
            if not acquired:
                logger.debug("[autopilot_tick] Advisory lock not acquired, another instance is leader")
                return None

            try:
                logger.info("[autopilot_tick] LEADER, checking due tenants")
                async with await self._get_session() as session:
                    if get_settings().celery_enabled:
                        return await self._enqueue_due_tenants(session)
                    from autopilot.services.autopilot import run_due_tenants
                    return await run_due_tenants(session)
            finally:
                await self._release_advisory_lock(lock_session, LOCK_AUTOPILOT_TICK)

    async def _enqueue_due_tenants(self, session: AsyncSession) -> dict[str, Any]:
        from autopilot.services.autopilot import due_tenants
        from autopilot.worker.tasks import run_tenant

        tenants = await due_tenants(session)
        for tenant_id in tenants:
            run_tenant.apply_async(args=[tenant_id], queue="autopilot")
        logger.info("[autopilot_tick] Enqueued %d tenant runs", len(tenants))
        return {"enqueued": tenants}

    def get_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            })
        return jobs

    async def run_now(self, job_id: str) -> dict:
        """Run a job immediately."""
        job = self.scheduler.get_job(job_id)
        if not job:
            return {"error": f"Job {job_id} not found"}

        try:
            result = await job.func()
            return {"ok": True, "result": result}
        except Exception as e:
            logger.error("Failed to run job %s: %s", job_id, e)
            return {"error": str(e)}


# Global instance
scheduler_service = SchedulerService.get_instance()
