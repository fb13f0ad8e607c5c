"""
Celery tasks.

autopilot.run_tenant       : one scheduled autopilot run for a tenant
notifications.run_summary  : Telegram message for a finished run

Both run their async service in a fresh event loop with asyncio.run().
"""
from __future__ import annotations

import asyncio
import logging

from autopilot.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _run_tenant_async(tenant_id: str) -> dict:
    """Run the pipeline for one tenant with a worker-owned engine."""
    from autopilot import db
    from autopilot.models import RunTrigger
    from autopilot.services.autopilot import run_autopilot

    engine = db.make_engine()
    session_factory = db.make_session_factory(engine)
    try:
        async with session_factory() as session:
            outcome = await run_autopilot(session, tenant_id, action="run", trigger=RunTrigger.scheduled)
            logger.info(f"[worker] Tenant {tenant_id} run finished: HTTP {outcome.status_code}")
            return outcome.body
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="autopilot.run_tenant",
    queue="autopilot",
)
def run_tenant(self, tenant_id: str) -> dict:
    """No autoretry: a failed run is recorded on its row and waits for the next tick."""
    logger.info(f"[worker] Starting autopilot run for tenant {tenant_id} (celery_id={self.request.id})")
    try:
        return asyncio.run(_run_tenant_async(tenant_id))
    except Exception as e:
        logger.error(f"[worker] Tenant {tenant_id} run error: {e}")
        raise


@celery_app.task(
    name="notifications.run_summary",
    queue="notifications",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def notify_run_summary(summary: dict) -> bool:
    from autopilot.services.notify import send_run_summary

    return asyncio.run(send_run_summary(summary))
