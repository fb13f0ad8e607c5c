"""
Publishing layer for social posts.

Each platform adapter implements the `PublisherAdapter` interface:
    publish(post, connection) -> PublishResult

No platform API is wired yet: every platform uses `SimulatedPublisher`,
which fabricates an external id/url and flags the result as simulated.
Results (including errors) are always returned explicitly.
"""
from __future__ import annotations

import abc
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from autopilot.models import (
    ApprovalStatus,
    ConnectionStatus,
    SocialConnection,
    SocialPlatform,
    SocialPost,
    SocialPostStatus,
    SocialPublicationLog,
)

logger = logging.getLogger(__name__)

SIMULATED_MESSAGE = "Publication simulée (connectez les APIs pour publication réelle)"


# ── Credential sanitization ──────────────────────────────────

_SENSITIVE_PATTERNS = [
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_\.]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"access_token=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), "access_token=***"),
    (re.compile(r"refresh_token=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), "refresh_token=***"),
    (re.compile(r"(api[_-]?key|apikey)[\"']?\s*[:=]\s*[\"']?[A-Za-z0-9\-_\.%]+", re.IGNORECASE), r"\1=***"),
    (re.compile(r"client_secret=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), "client_secret=***"),
    # Generic long tokens (40+ chars)
    (re.compile(r"[A-Za-z0-9\-_]{40,}"), "***TOKEN***"),
]


def _sanitize(text: str | None) -> str | None:
    """Strip credentials and tokens from error messages / response text."""
    if not text:
        return text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


@dataclass
class PublishResult:
    """Unified result of a publish attempt."""
    success: bool
    external_id: str | None = None
    url: str | None = None
    platform: str | None = None
    error: str | None = None
    simulated: bool = False

    def to_dict(self) -> dict:
        return {
            "external_post_id": self.external_id,
            "external_post_url": self.url,
        }


@dataclass
class PublishOutcome:
    status_code: int
    body: dict[str, Any]


# ── Adapters ─────────────────────────────────────────────────

class PublisherAdapter(abc.ABC):
    """Base class for platform-specific publishers."""

    platform: str = "unknown"

    @abc.abstractmethod
    async def publish(self, post: SocialPost, connection: SocialConnection) -> PublishResult:
        """Publish the post and return result with external_id + url."""
        ...

    def _log(self, post_id: int, msg: str):
        logger.info(f"[{self.platform}][post={post_id}] {msg}")


class SimulatedPublisher(PublisherAdapter):
    """Stand-in for platforms without an API integration."""

    def __init__(self, platform: str):
        self.platform = platform

    async def publish(self, post: SocialPost, connection: SocialConnection) -> PublishResult:
        stamp = int(time.time() * 1000)
        result = PublishResult(
            success=True,
            external_id=f"sim_{stamp}",
            url=f"https://{self.platform}.com/post/{stamp}",
            platform=self.platform,
            simulated=True,
        )
        self._log(post.id, f"Simulated publish as {result.external_id}")
        return result


# ── Registry ──────────────────────────────────────────────────

_ADAPTERS: dict[str, PublisherAdapter] = {
    p.value: SimulatedPublisher(p.value) for p in SocialPlatform
}


def get_publisher(platform: str) -> PublisherAdapter | None:
    """Get publisher adapter for a given platform (case-insensitive)."""
    return _ADAPTERS.get(platform.lower())


# ── Workflow ─────────────────────────────────────────────────

async def _connected(session: AsyncSession, tenant_id: str, platform: str) -> SocialConnection | None:
    res = await session.execute(
        select(SocialConnection).where(
            SocialConnection.tenant_id == tenant_id,
            SocialConnection.platform == platform,
            SocialConnection.connection_status == ConnectionStatus.connected.value,
        )
    )
    return res.scalar_one_or_none()


def _log_row(post: SocialPost, action: str, status: str, **kwargs) -> SocialPublicationLog:
    return SocialPublicationLog(
        tenant_id=post.tenant_id,
        social_post_id=post.id,
        action=action,
        status=status,
        platform=post.platform,
        **kwargs,
    )


async def publish_post(session: AsyncSession, tenant_id: str, post_id: int) -> PublishOutcome:
    post = await session.get(SocialPost, post_id)
    if post is None or post.tenant_id != tenant_id:
        return PublishOutcome(404, {"error": "Post not found"})

    if post.approval_status == ApprovalStatus.rejected.value:
        return PublishOutcome(400, {"error": "Post was rejected and cannot be published"})

    connection = await _connected(session, tenant_id, post.platform)
    if connection is None:
        message = f"{post.platform} n'est pas connecté"
        post.status = SocialPostStatus.failed.value
        post.error_message = message
        session.add(_log_row(post, "published", "failed", error_message=message))
        await session.commit()
        logger.warning("[publish] Post %s: platform %s not connected", post_id, post.platform)
        return PublishOutcome(400, {
            "error": f"Platform {post.platform} is not connected",
            "requires_connection": True,
        })

    adapter = get_publisher(post.platform)
    if adapter is None:
        return PublishOutcome(400, {"error": f"No publisher for platform {post.platform}"})

    post.status = SocialPostStatus.publishing.value
    await session.commit()

    try:
        result = await adapter.publish(post, connection)
    except Exception as exc:
        result = PublishResult(success=False, platform=post.platform, error=_sanitize(f"Publish error: {exc}"))

    if not result.success:
        post.status = SocialPostStatus.failed.value
        post.error_message = result.error
        session.add(_log_row(post, "published", "failed", error_message=result.error))
        await session.commit()
        logger.error("[publish] Post %s failed: %s", post_id, result.error)
        return PublishOutcome(502, {"error": result.error or "Publish failed"})

    post.status = SocialPostStatus.published.value
    post.published_at = datetime.now(timezone.utc)
    post.external_post_id = result.external_id
    post.external_post_url = result.url
    post.error_message = None
    session.add(_log_row(post, "published", "success", details=result.to_dict()))
    await session.commit()
    logger.info("[publish] Post %s published on %s", post_id, post.platform)

    body: dict[str, Any] = {"success": True, "data": result.to_dict(), "simulated": result.simulated}
    if result.simulated:
        body["message"] = SIMULATED_MESSAGE
    return PublishOutcome(200, body)


async def test_connection(session: AsyncSession, tenant_id: str, platform: str) -> dict[str, Any]:
    res = await session.execute(
        select(SocialConnection).where(
            SocialConnection.tenant_id == tenant_id,
            SocialConnection.platform == platform,
        )
    )
    connection = res.scalar_one_or_none()
    if connection is None:
        return {"connected": False, "message": f"{platform} n'est pas encore connecté"}

    expires = connection.token_expires_at
    if expires is not None and expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    is_expired = bool(expires and expires < datetime.now(timezone.utc))

    return {
        "connected": connection.connection_status == ConnectionStatus.connected.value and not is_expired,
        "account_name": connection.account_name,
        "requires_refresh": is_expired,
        "last_connected": connection.last_connected_at.isoformat() if connection.last_connected_at else None,
    }
