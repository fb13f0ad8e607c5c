"""
Content autopilot: run orchestration and the settings / approval actions
of the content-autopilot function.

Run lifecycle (one row in ai_autopilot_runs):
    running -> completed | failed

Start guards (skipped with force=True):
- emergency_stop blocks every run
- autopilot_enabled must be true, except for the run-once action

Independently of force, a tenant never has two runs in progress: the
settings row is read FOR UPDATE and the run row inserted in the same
transaction; a younger-than-STALE_RUN_MINUTES `running` row rejects the start.

Pipeline (strictly sequential):
    detect trends -> scrape context -> synthesize -> scene images -> persist
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from autopilot.models import (
    ApprovalStatus,
    AutopilotFrequency,
    AutopilotRun,
    PublishingSettings,
    RunStatus,
    RunTrigger,
    SocialPost,
)
from autopilot.schemas import AutopilotRunRead, PublishingSettingsRead, SocialPostRead, TrendResult
from autopilot.services.content_synthesizer import generate_multi_channel_content
from autopilot.services.context_scraper import scrape_context
from autopilot.services.notify import dispatch_run_summary
from autopilot.services.persistence import save_multi_channel_content
from autopilot.services.scene_images import generate_scene_images
from autopilot.services.trend_detector import detect_trends
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

RUN_TYPE = "multi_channel_content"
DEFAULT_TOPICS = ["EdTech", "Formation professionnelle", "SaaS éducation"]
TEST_TREND_TOPICS = ["EdTech", "Formation professionnelle", "Digital learning"]
DEFAULT_TONE = "professionnel"
CHANNELS = ["article", "linkedin", "instagram", "tiktok", "twitter"]
STATUS_RUNS_LIMIT = 10

FREQUENCY_INTERVALS: dict[str, timedelta] = {
    AutopilotFrequency.daily.value: timedelta(hours=24),
    AutopilotFrequency.three_per_week.value: timedelta(hours=56),
    AutopilotFrequency.weekly.value: timedelta(days=7),
}


@dataclass
class RunConfig:
    """Tenant configuration snapshot passed down one run."""

    tenant_id: str
    topics: list[str] = field(default_factory=lambda: list(DEFAULT_TOPICS))
    tone: str = DEFAULT_TONE
    forbidden_words: list[str] = field(default_factory=list)
    auto_publish: bool = False

    @classmethod
    def from_settings(cls, row: PublishingSettings | None, tenant_id: str) -> "RunConfig":
        if row is None:
            return cls(tenant_id=tenant_id)
        return cls(
            tenant_id=tenant_id,
            topics=list(row.autopilot_topics or DEFAULT_TOPICS),
            tone=row.autopilot_tone or DEFAULT_TONE,
            forbidden_words=list(row.forbidden_words or []),
            auto_publish=bool(row.auto_publish_enabled and not row.require_approval),
        )


@dataclass
class RunOutcome:
    """HTTP status + JSON body of a run attempt."""

    status_code: int
    body: dict[str, Any]
    run_id: int | None = None

    @property
    def success(self) -> bool:
        return bool(self.body.get("success"))


# ── Settings ──────────────────────────────────────────────────

async def get_settings_row(
    session: AsyncSession, tenant_id: str, *, for_update: bool = False
) -> PublishingSettings | None:
    query = select(PublishingSettings).where(PublishingSettings.tenant_id == tenant_id)
    if for_update:
        query = query.with_for_update()
    res = await session.execute(query)
    return res.scalar_one_or_none()


async def get_or_create_settings(session: AsyncSession, tenant_id: str) -> PublishingSettings:
    row = await get_settings_row(session, tenant_id)
    if row is None:
        row = PublishingSettings(tenant_id=tenant_id)
        session.add(row)
        await session.flush()
    return row


async def toggle_autopilot(session: AsyncSession, tenant_id: str, enabled: bool) -> dict[str, Any]:
    row = await get_or_create_settings(session, tenant_id)
    row.autopilot_enabled = enabled
    row.emergency_stop = not enabled
    await session.commit()
    logger.info("[autopilot] Tenant %s autopilot %s", tenant_id, "enabled" if enabled else "disabled")
    return {"success": True, "autopilot_enabled": enabled}


async def update_autopilot_settings(
    session: AsyncSession,
    tenant_id: str,
    *,
    topics: list[str] | None = None,
    tone: str | None = None,
    frequency: str | None = None,
    require_approval: bool | None = None,
    auto_publish_enabled: bool | None = None,
) -> dict[str, Any]:
    """Partial upsert: empty values leave the stored ones untouched."""
    row = await get_or_create_settings(session, tenant_id)
    if topics:
        row.autopilot_topics = topics
    if tone:
        row.autopilot_tone = tone
    if frequency:
        row.autopilot_frequency = frequency
    if require_approval is not None:
        row.require_approval = require_approval
    if auto_publish_enabled is not None:
        row.auto_publish_enabled = auto_publish_enabled
    await session.commit()
    return {"success": True}


async def get_status(session: AsyncSession, tenant_id: str) -> dict[str, Any]:
    row = await get_settings_row(session, tenant_id)
    res = await session.execute(
        select(AutopilotRun)
        .where(AutopilotRun.tenant_id == tenant_id)
        .order_by(AutopilotRun.created_at.desc(), AutopilotRun.id.desc())
        .limit(STATUS_RUNS_LIMIT)
    )
    runs = res.scalars().all()
    return {
        "success": True,
        "settings": PublishingSettingsRead.model_validate(row).model_dump(mode="json") if row else None,
        "runs": [AutopilotRunRead.model_validate(r).model_dump(mode="json") for r in runs],
    }


def is_run_due(frequency: str | None, last_run: datetime | None, now: datetime) -> bool:
    if last_run is None:
        return True
    if last_run.tzinfo is None:
        last_run = last_run.replace(tzinfo=timezone.utc)
    interval = FREQUENCY_INTERVALS.get(frequency or "", FREQUENCY_INTERVALS[AutopilotFrequency.daily.value])
    return now - last_run >= interval


# ── Social posts / approval ───────────────────────────────────

async def get_social_posts_for_article(
    session: AsyncSession, tenant_id: str, article_id: int
) -> list[dict[str, Any]]:
    res = await session.execute(
        select(SocialPost)
        .where(SocialPost.blog_post_id == article_id, SocialPost.tenant_id == tenant_id)
        .order_by(SocialPost.platform, SocialPost.id)
    )
    return [SocialPostRead.model_validate(p).model_dump(mode="json") for p in res.scalars().all()]


async def approve_post(
    session: AsyncSession, tenant_id: str, post_id: int, approved: bool
) -> SocialPost | None:
    post = await session.get(SocialPost, post_id)
    if post is None or post.tenant_id != tenant_id:
        return None
    if approved:
        post.approval_status = ApprovalStatus.approved.value
        post.approved_at = datetime.now(timezone.utc)
    else:
        post.approval_status = ApprovalStatus.rejected.value
        post.approved_at = None
    await session.commit()
    await session.refresh(post)
    logger.info("[approval] Post %s %s", post_id, post.approval_status)
    return post


# ── Runs ──────────────────────────────────────────────────────

async def _active_run(session: AsyncSession, tenant_id: str) -> AutopilotRun | None:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=get_settings().stale_run_minutes)
    res = await session.execute(
        select(AutopilotRun)
        .where(
            AutopilotRun.tenant_id == tenant_id,
            AutopilotRun.status == RunStatus.running.value,
            AutopilotRun.started_at >= cutoff,
        )
        .order_by(AutopilotRun.id.desc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def start_run(
    session: AsyncSession,
    tenant_id: str,
    *,
    action: str = "run",
    force: bool = False,
    trigger: RunTrigger = RunTrigger.manual,
) -> tuple[RunOutcome | None, RunConfig | None]:
    """Check guards and insert the run row.

    Returns (refusal, None) when the run must not start, otherwise
    (outcome carrying the new run_id, config).
    """
    row = await get_settings_row(session, tenant_id, for_update=True)

    if not force:
        if row is not None and row.emergency_stop:
            await session.rollback()
            return RunOutcome(200, {"success": False, "error": "Emergency stop is active"}), None
        if not (row is not None and row.autopilot_enabled) and action != "run-once":
            await session.rollback()
            return RunOutcome(200, {"success": False, "error": "Autopilot is not enabled"}), None

    active = await _active_run(session, tenant_id)
    if active is not None:
        await session.rollback()
        logger.warning("[autopilot] Tenant %s already has run %s in progress", tenant_id, active.id)
        return RunOutcome(
            409,
            {"success": False, "error": "A run is already in progress", "runId": active.id},
            run_id=active.id,
        ), None

    config = RunConfig.from_settings(row, tenant_id)
    run = AutopilotRun(
        tenant_id=tenant_id,
        run_type=RUN_TYPE,
        status=RunStatus.running.value,
        trigger=trigger.value,
        started_at=datetime.now(timezone.utc),
        ai_model=get_settings().content_model,
    )
    session.add(run)
    await session.commit()
    return RunOutcome(0, {}, run_id=run.id), config


async def _mark_failed(session: AsyncSession, run_id: int, message: str) -> None:
    run = await session.get(AutopilotRun, run_id)
    if run is None:
        return
    run.status = RunStatus.failed.value
    run.completed_at = datetime.now(timezone.utc)
    run.error_message = message
    await session.commit()


async def execute_run(session: AsyncSession, run_id: int, config: RunConfig) -> RunOutcome:
    logger.info("[autopilot] Multi-channel run %s started (tenant=%s)", run_id, config.tenant_id)
    trend: TrendResult | None = None
    try:
        logger.info("[autopilot] Step 1: detecting trends")
        trend = await detect_trends(config.topics)

        logger.info("[autopilot] Step 2: scraping context")
        scraped = await scrape_context(trend.topic)

        logger.info("[autopilot] Step 3: generating multi-channel content")
        generated = await generate_multi_channel_content(
            trend.topic,
            trend.context,
            scraped,
            config.tone,
            forbidden_words=config.forbidden_words,
        )

        if generated.tiktok and generated.tiktok.video_script:
            logger.info("[autopilot] Step 3b: generating TikTok scene images")
            urls = await generate_scene_images(generated.tiktok.video_script, trend.topic)
            logger.info("[autopilot] Generated %d TikTok scene images", len(urls))
            if urls:
                generated.tiktok.media_urls = urls

        logger.info("[autopilot] Step 4: saving multi-channel content")
        result = await save_multi_channel_content(
            session,
            generated,
            trend,
            run_id=run_id,
            tenant_id=config.tenant_id,
            auto_publish=config.auto_publish,
        )
    except Exception as exc:
        logger.exception("[autopilot] Run %s failed", run_id)
        message = str(exc) or "Run failed"
        await session.rollback()
        await _mark_failed(session, run_id, message)
        body = {"success": False, "error": message, "runId": run_id}
        dispatch_run_summary({**body, "tenant_id": config.tenant_id})
        return RunOutcome(500, body, run_id=run_id)

    body = {
        "success": True,
        "runId": run_id,
        "articleId": result.article_id,
        "socialPostsGenerated": result.social_count,
        "topic": trend.topic,
        "autoPublished": config.auto_publish,
        "channels": CHANNELS,
    }
    logger.info("[autopilot] Run %s completed: %s", run_id, body)
    dispatch_run_summary({**body, "tenant_id": config.tenant_id})
    return RunOutcome(200, body, run_id=run_id)


async def run_autopilot(
    session: AsyncSession,
    tenant_id: str,
    *,
    action: str = "run",
    force: bool = False,
    trigger: RunTrigger = RunTrigger.manual,
) -> RunOutcome:
    outcome, config = await start_run(session, tenant_id, action=action, force=force, trigger=trigger)
    if config is None:
        return outcome
    return await execute_run(session, outcome.run_id, config)


async def due_tenants(session: AsyncSession) -> list[str]:
    """Enabled, non-stopped tenants whose frequency interval has elapsed."""
    now = datetime.now(timezone.utc)
    res = await session.execute(
        select(
            PublishingSettings.tenant_id,
            PublishingSettings.autopilot_frequency,
            PublishingSettings.autopilot_last_run,
        ).where(
            PublishingSettings.autopilot_enabled.is_(True),
            PublishingSettings.emergency_stop.is_(False),
        )
    )
    return [tenant for tenant, freq, last in res.all() if is_run_due(freq, last, now)]


async def run_due_tenants(session: AsyncSession) -> dict[str, Any]:
    """Scheduled trigger: one run for every due tenant, one after another."""
    due = await due_tenants(session)
    if not due:
        logger.info("[autopilot] No tenant due for a scheduled run")
        return {"processed": 0, "completed": 0, "failed": 0}

    completed = failed = 0
    for tenant_id in due:
        outcome = await run_autopilot(session, tenant_id, action="run", trigger=RunTrigger.scheduled)
        if outcome.success:
            completed += 1
        else:
            failed += 1
    logger.info("[autopilot] Scheduled runs: %d due, %d completed, %d not completed", len(due), completed, failed)
    return {"processed": len(due), "completed": completed, "failed": failed}
