from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from autopilot.db import get_session
from autopilot.models import (
    ConnectionStatus,
    SocialAnalytics,
    SocialConnection,
    SocialPost,
    SocialPostStatus,
    SocialPublicationLog,
)
from autopilot.schemas import (
    GenerateCaptionsPayload,
    GenerateImagePayload,
    PublicationLogRead,
    PublishingSettingsRead,
    PublishingSettingsUpdate,
    PublishPostPayload,
    SchedulePostPayload,
    SocialConnectionRead,
    SocialConnectionUpsert,
    SocialPostRead,
    SocialPostUpdate,
    SocialRequest,
    SuggestBestTimePayload,
    TestConnectionPayload,
)
from autopilot.services import publisher, social_captions
from autopilot.services.autopilot import get_or_create_settings
from autopilot.services.errors import AutopilotError
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

function_router = APIRouter(prefix="/functions/v1", tags=["social"])
router = APIRouter(prefix="/api/social", tags=["social"])
SessionDep = Depends(get_session)


def _tenant(tenant_id: str | None) -> str:
    return tenant_id or get_settings().default_tenant


# ── Social media function ─────────────────────────────────────

@function_router.post("/social-media")
async def social_media(data: SocialRequest, session: AsyncSession = SessionDep):
    tenant_id = _tenant(data.tenant_id)
    action = data.action
    logger.info("[social] action=%s tenant=%s", action, tenant_id)

    try:
        if action == "generate-captions":
            payload = GenerateCaptionsPayload.model_validate(data.payload)
            return {"success": True, "data": await social_captions.generate_captions(payload)}

        if action == "schedule-post":
            payload = SchedulePostPayload.model_validate(data.payload)
            post = await social_captions.schedule_post(session, tenant_id, payload)
            return {"success": True, "data": SocialPostRead.model_validate(post).model_dump(mode="json")}

        if action == "publish-post":
            payload = PublishPostPayload.model_validate(data.payload)
            outcome = await publisher.publish_post(session, tenant_id, payload.post_id)
            return JSONResponse(outcome.body, status_code=outcome.status_code)

        if action == "suggest-best-time":
            payload = SuggestBestTimePayload.model_validate(data.payload)
            return {"success": True, "data": await social_captions.suggest_best_time(payload)}

        if action == "test-connection":
            payload = TestConnectionPayload.model_validate(data.payload)
            return await publisher.test_connection(session, tenant_id, payload.platform.value)

        if action == "generate-image":
            payload = GenerateImagePayload.model_validate(data.payload)
            return {"success": True, "data": await social_captions.generate_cover_image(payload)}
    except ValidationError as exc:
        return JSONResponse({"error": "Invalid payload", "details": exc.errors(include_url=False)}, status_code=400)
    except AutopilotError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    return JSONResponse({"error": f"Unknown action: {action}"}, status_code=400)


# ── Connections ───────────────────────────────────────────────

@router.get("/connections", response_model=list[SocialConnectionRead])
async def list_connections(tenant_id: str | None = None, session: AsyncSession = SessionDep):
    res = await session.execute(
        select(SocialConnection)
        .where(SocialConnection.tenant_id == _tenant(tenant_id))
        .order_by(SocialConnection.platform)
    )
    return res.scalars().all()


@router.put("/connections", response_model=SocialConnectionRead)
async def upsert_connection(data: SocialConnectionUpsert, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    tenant = _tenant(tenant_id)
    res = await session.execute(
        select(SocialConnection).where(
            SocialConnection.tenant_id == tenant,
            SocialConnection.platform == data.platform.value,
        )
    )
    connection = res.scalar_one_or_none()
    if connection is None:
        connection = SocialConnection(tenant_id=tenant, platform=data.platform.value)
        session.add(connection)
    for field in ["account_name", "account_id", "access_token", "refresh_token", "token_expires_at"]:
        value = getattr(data, field)
        if value is not None:
            setattr(connection, field, value)
    connection.connection_status = ConnectionStatus.connected.value
    connection.last_connected_at = datetime.now(timezone.utc)
    await session.commit()
    await session.refresh(connection)
    return connection


@router.post("/connections/{platform}/disconnect", response_model=SocialConnectionRead)
async def disconnect(platform: str, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    res = await session.execute(
        select(SocialConnection).where(
            SocialConnection.tenant_id == _tenant(tenant_id),
            SocialConnection.platform == platform,
        )
    )
    connection = res.scalar_one_or_none()
    if not connection:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
    connection.connection_status = ConnectionStatus.disconnected.value
    connection.access_token = None
    connection.refresh_token = None
    await session.commit()
    await session.refresh(connection)
    return connection


# ── Posts ─────────────────────────────────────────────────────

@router.get("/posts", response_model=list[SocialPostRead])
async def list_posts(
    tenant_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    platform: str | None = None,
    blog_post_id: int | None = None,
    limit: int = Query(default=100, le=500),
    session: AsyncSession = SessionDep,
):
    query = select(SocialPost).where(SocialPost.tenant_id == _tenant(tenant_id))
    if status_filter:
        query = query.where(SocialPost.status == status_filter)
    if platform:
        query = query.where(SocialPost.platform == platform)
    if blog_post_id:
        query = query.where(SocialPost.blog_post_id == blog_post_id)
    res = await session.execute(query.order_by(SocialPost.created_at.desc(), SocialPost.id.desc()).limit(limit))
    return res.scalars().all()


async def _get_post(session: AsyncSession, post_id: int, tenant_id: str | None) -> SocialPost:
    post = await session.get(SocialPost, post_id)
    if not post or post.tenant_id != _tenant(tenant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


@router.patch("/posts/{post_id}", response_model=SocialPostRead)
async def update_post(post_id: int, data: SocialPostUpdate, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    post = await _get_post(session, post_id, tenant_id)
    if data.status is not None and data.status not in {s.value for s in SocialPostStatus}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {data.status}")
    for field in ["caption", "hashtags", "media_urls", "scheduled_for", "status"]:
        value = getattr(data, field)
        if value is not None:
            setattr(post, field, value)
    await session.commit()
    await session.refresh(post)
    return post


@router.delete("/posts/{post_id}", response_model=SocialPostRead)
async def cancel_post(post_id: int, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    post = await _get_post(session, post_id, tenant_id)
    post.status = SocialPostStatus.cancelled.value
    await session.commit()
    await session.refresh(post)
    return post


# ── Settings ──────────────────────────────────────────────────

@router.get("/settings", response_model=PublishingSettingsRead)
async def read_settings(tenant_id: str | None = None, session: AsyncSession = SessionDep):
    row = await get_or_create_settings(session, _tenant(tenant_id))
    await session.commit()
    await session.refresh(row)
    return row


@router.patch("/settings", response_model=PublishingSettingsRead)
async def patch_settings(data: PublishingSettingsUpdate, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    row = await get_or_create_settings(session, _tenant(tenant_id))
    for field, value in data.model_dump(exclude_unset=True, mode="json").items():
        setattr(row, field, value)
    await session.commit()
    await session.refresh(row)
    return row


# ── Logs / analytics ──────────────────────────────────────────

@router.get("/logs", response_model=list[PublicationLogRead])
async def list_logs(
    tenant_id: str | None = None,
    social_post_id: int | None = None,
    limit: int = Query(default=100, le=500),
    session: AsyncSession = SessionDep,
):
    query = select(SocialPublicationLog).where(SocialPublicationLog.tenant_id == _tenant(tenant_id))
    if social_post_id:
        query = query.where(SocialPublicationLog.social_post_id == social_post_id)
    res = await session.execute(
        query.order_by(SocialPublicationLog.created_at.desc(), SocialPublicationLog.id.desc()).limit(limit)
    )
    return res.scalars().all()


class PlatformAnalytics(BaseModel):
    platform: str
    posts: int
    likes: int
    comments: int
    shares: int
    views: int
    clicks: int
    avg_engagement_rate: float | None = None


@router.get("/analytics", response_model=list[PlatformAnalytics])
async def analytics(tenant_id: str | None = None, session: AsyncSession = SessionDep):
    """Per-platform totals over all fetched metric rows."""
    res = await session.execute(
        select(
            SocialAnalytics.platform,
            func.count(func.distinct(SocialAnalytics.social_post_id)),
            func.coalesce(func.sum(SocialAnalytics.likes), 0),
            func.coalesce(func.sum(SocialAnalytics.comments), 0),
            func.coalesce(func.sum(SocialAnalytics.shares), 0),
            func.coalesce(func.sum(SocialAnalytics.views), 0),
            func.coalesce(func.sum(SocialAnalytics.clicks), 0),
            func.avg(SocialAnalytics.engagement_rate),
        )
        .join(SocialPost, SocialPost.id == SocialAnalytics.social_post_id)
        .where(SocialPost.tenant_id == _tenant(tenant_id))
        .group_by(SocialAnalytics.platform)
        .order_by(SocialAnalytics.platform)
    )
    return [
        PlatformAnalytics(
            platform=platform,
            posts=posts,
            likes=likes,
            comments=comments,
            shares=shares,
            views=views,
            clicks=clicks,
            avg_engagement_rate=float(rate) if rate is not None else None,
        )
        for platform, posts, likes, comments, shares, views, clicks, rate in res.all()
    ]
