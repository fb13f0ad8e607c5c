"""
Persistence of a synthesized bundle: one article, one social post per
present channel, then the run row and the tenant's last-run timestamp.

Channels are committed one by one. A channel that fails to save is rolled
back alone and logged; rows already written stay.
"""
from __future__ import annotations

import json
import logging
import re
import threading
import time
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from autopilot.models import (
    ApprovalStatus,
    AutopilotRun,
    BlogPost,
    BlogPostStatus,
    ContentType,
    PlatformUserRole,
    PublishingSettings,
    RunStatus,
    SocialPost,
    SocialPostStatus,
)
from autopilot.schemas import (
    InstagramContent,
    LinkedInContent,
    MultiChannelContent,
    TikTokContent,
    TrendResult,
    TwitterContent,
)
from autopilot.services.errors import PersistenceError

logger = logging.getLogger(__name__)

AUTHOR_ROLE = "super_admin"
BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"

_stamp_lock = threading.Lock()
_last_stamp = 0


# ── Slugs ─────────────────────────────────────────────────────

def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def _unique_millis() -> int:
    """Millisecond timestamp, strictly increasing within the process."""
    global _last_stamp
    with _stamp_lock:
        _last_stamp = max(int(time.time() * 1000), _last_stamp + 1)
        return _last_stamp


def slugify(title: str) -> str:
    text = unicodedata.normalize("NFD", (title or "").lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def generate_slug(title: str) -> str:
    """Slug from title plus a base36 timestamp suffix; never checked against the DB."""
    base = slugify(title)
    suffix = to_base36(_unique_millis())
    return f"{base}-{suffix}" if base else suffix


# ── Channel payloads ─────────────────────────────────────────

def _linkedin_post(d: LinkedInContent) -> dict[str, Any]:
    carousel = d.carousel.model_dump(mode="json", exclude_none=True) if d.carousel else {}
    return {
        "caption": d.caption,
        "hashtags": d.hashtags,
        "content_type": ContentType.carousel.value,
        "structured_content": carousel,
        "slide_count": len(d.carousel.slides) if d.carousel else 0,
    }


def _instagram_post(d: InstagramContent) -> dict[str, Any]:
    carousel = d.carousel.model_dump(mode="json", exclude_none=True) if d.carousel else {}
    return {
        "caption": d.caption,
        "hashtags": d.hashtags,
        "content_type": ContentType.carousel.value,
        "structured_content": carousel,
        "slide_count": len(d.carousel.slides) if d.carousel else 0,
    }


def _tiktok_post(d: TikTokContent) -> dict[str, Any]:
    carousel = d.carousel.model_dump(mode="json", exclude_none=True) if d.carousel else {}
    script = d.video_script.model_dump(mode="json", exclude_none=True) if d.video_script else {}
    return {
        "caption": d.caption,
        "hashtags": d.hashtags,
        "content_type": ContentType.video_script.value,
        "structured_content": {"carousel": carousel, "video_script": script},
        "video_script": json.dumps(script, ensure_ascii=False),
        "slide_count": len(d.carousel.slides) if d.carousel else 0,
        "media_urls": d.media_urls,
    }


def _twitter_post(d: TwitterContent) -> dict[str, Any]:
    return {
        "caption": d.thread[0] if d.thread else "",
        "hashtags": d.hashtags,
        "content_type": ContentType.thread.value,
        "structured_content": {"thread": d.thread},
        "thread_tweets": d.thread,
        "slide_count": 0,
    }


CHANNEL_BUILDERS: list[tuple[str, Callable[[Any], dict[str, Any]]]] = [
    ("linkedin", _linkedin_post),
    ("instagram", _instagram_post),
    ("tiktok", _tiktok_post),
    ("twitter", _twitter_post),
]


@dataclass
class PersistResult:
    article_id: int
    social_count: int
    channels: list[str] = field(default_factory=list)


async def resolve_author(session: AsyncSession) -> str:
    res = await session.execute(
        select(PlatformUserRole.user_id)
        .where(PlatformUserRole.role == AUTHOR_ROLE)
        .order_by(PlatformUserRole.id)
        .limit(1)
    )
    author_id = res.scalar_one_or_none()
    if not author_id:
        raise PersistenceError("No super admin found for authoring")
    return author_id


def build_run_metadata(generated: MultiChannelContent, saved_channels: list[str]) -> dict[str, Any]:
    tiktok = generated.tiktok
    return {
        "channels": [c.platform for c in generated.channels()],
        "saved_channels": saved_channels,
        "has_carousel": bool(
            (generated.linkedin and generated.linkedin.carousel)
            or (generated.instagram and generated.instagram.carousel)
        ),
        "has_video_script": bool(tiktok and tiktok.video_script),
        "has_thread": bool(generated.twitter and generated.twitter.thread),
        "media_count": len(tiktok.media_urls) if tiktok else 0,
    }


async def save_multi_channel_content(
    session: AsyncSession,
    generated: MultiChannelContent,
    trend: TrendResult,
    *,
    run_id: int,
    tenant_id: str,
    auto_publish: bool,
) -> PersistResult:
    author_id = await resolve_author(session)
    now = datetime.now(timezone.utc)
    article = generated.article

    post = BlogPost(
        tenant_id=tenant_id,
        title=article.title,
        slug=generate_slug(article.title or "article-auto"),
        excerpt=article.excerpt,
        content=article.content,
        seo_title=article.seo_title,
        seo_description=article.seo_description,
        seo_keywords=article.seo_keywords,
        author_id=author_id,
        ai_generated=True,
        status=BlogPostStatus.published.value if auto_publish else BlogPostStatus.draft.value,
        published_at=now if auto_publish else None,
    )
    session.add(post)
    await session.commit()
    article_id = post.id
    logger.info("[persist] Article saved: %s %s", article_id, post.title)

    saved: list[str] = []
    for platform, builder in CHANNEL_BUILDERS:
        data = getattr(generated, platform)
        if data is None:
            continue
        try:
            session.add(SocialPost(
                tenant_id=tenant_id,
                blog_post_id=article_id,
                platform=platform,
                status=SocialPostStatus.draft.value,
                approval_status=ApprovalStatus.pending.value,
                ai_generated=True,
                created_by=author_id,
                **builder(data),
            ))
            await session.commit()
            saved.append(platform)
            logger.info("[persist] %s content saved", platform)
        except Exception as e:
            await session.rollback()
            logger.error(f"[persist] Error saving {platform} post: {e}")

    run = await session.get(AutopilotRun, run_id)
    if run is not None:
        run.status = RunStatus.completed.value
        run.completed_at = datetime.now(timezone.utc)
        run.trend_topic = trend.topic
        run.trend_sources = trend.sources
        run.article_id = article_id
        run.social_posts_generated = len(saved)
        run.meta = build_run_metadata(generated, saved)

    settings_row = (
        await session.execute(select(PublishingSettings).where(PublishingSettings.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if settings_row is not None:
        settings_row.autopilot_last_run = datetime.now(timezone.utc)

    await session.commit()
    return PersistResult(article_id=article_id, social_count=len(saved), channels=saved)
