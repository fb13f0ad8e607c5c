from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from autopilot.db import get_session
from autopilot.models import BlogPost, BlogPostStatus, SocialPost
from autopilot.schemas import BlogPostDetail, BlogPostRead
from autopilot.settings import get_settings

router = APIRouter(prefix="/api/blog", tags=["blog"])
SessionDep = Depends(get_session)


def _tenant(tenant_id: str | None) -> str:
    return tenant_id or get_settings().default_tenant


@router.get("/posts", response_model=list[BlogPostRead])
async def list_posts(
    tenant_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    ai_generated: bool | None = None,
    limit: int = Query(default=50, le=200),
    offset: int = 0,
    session: AsyncSession = SessionDep,
):
    query = select(BlogPost).where(BlogPost.tenant_id == _tenant(tenant_id))
    if status_filter:
        query = query.where(BlogPost.status == status_filter)
    if ai_generated is not None:
        query = query.where(BlogPost.ai_generated.is_(ai_generated))
    res = await session.execute(
        query.order_by(BlogPost.created_at.desc(), BlogPost.id.desc()).limit(limit).offset(offset)
    )
    return res.scalars().all()


@router.get("/posts/{post_id}", response_model=BlogPostDetail)
async def get_post(post_id: int, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    res = await session.execute(
        select(BlogPost)
        .where(BlogPost.id == post_id, BlogPost.tenant_id == _tenant(tenant_id))
        .options(selectinload(BlogPost.social_posts))
    )
    post = res.scalar_one_or_none()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return post


async def _set_status(session: AsyncSession, post_id: int, tenant_id: str | None, new_status: BlogPostStatus) -> BlogPost:
    post = await session.get(BlogPost, post_id)
    if not post or post.tenant_id != _tenant(tenant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    post.status = new_status.value
    if new_status == BlogPostStatus.published:
        post.published_at = post.published_at or datetime.now(timezone.utc)
    elif new_status == BlogPostStatus.draft:
        post.published_at = None
    await session.commit()
    await session.refresh(post)
    return post


@router.post("/posts/{post_id}/publish", response_model=BlogPostRead)
async def publish_post(post_id: int, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    return await _set_status(session, post_id, tenant_id, BlogPostStatus.published)


@router.post("/posts/{post_id}/unpublish", response_model=BlogPostRead)
async def unpublish_post(post_id: int, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    return await _set_status(session, post_id, tenant_id, BlogPostStatus.draft)


@router.post("/posts/{post_id}/archive", response_model=BlogPostRead)
async def archive_post(post_id: int, tenant_id: str | None = None, session: AsyncSession = SessionDep):
    return await _set_status(session, post_id, tenant_id, BlogPostStatus.archived)


@router.get("/stats")
async def blog_stats(tenant_id: str | None = None, session: AsyncSession = SessionDep):
    tenant = _tenant(tenant_id)
    res = await session.execute(
        select(BlogPost.status, func.count(BlogPost.id))
        .where(BlogPost.tenant_id == tenant)
        .group_by(BlogPost.status)
    )
    by_status = {s.value: 0 for s in BlogPostStatus}
    by_status.update({row_status: count for row_status, count in res.all()})

    ai_count = (
        await session.execute(
            select(func.count(BlogPost.id)).where(BlogPost.tenant_id == tenant, BlogPost.ai_generated.is_(True))
        )
    ).scalar_one()

    res = await session.execute(
        select(SocialPost.platform, func.count(SocialPost.id))
        .where(SocialPost.tenant_id == tenant)
        .group_by(SocialPost.platform)
        .order_by(SocialPost.platform)
    )
    social_by_platform = {platform: count for platform, count in res.all()}

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "ai_generated": ai_count,
        "social_posts_by_platform": social_by_platform,
    }
