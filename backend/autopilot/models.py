from __future__ import annotations

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


class SocialPlatform(str, Enum):
    linkedin = "linkedin"
    instagram = "instagram"
    tiktok = "tiktok"
    twitter = "twitter"
    facebook = "facebook"
    youtube = "youtube"
    threads = "threads"
    pinterest = "pinterest"


class SocialPostStatus(str, Enum):
    draft = "draft"
    scheduled = "scheduled"
    publishing = "publishing"
    published = "published"
    failed = "failed"
    cancelled = "cancelled"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ContentType(str, Enum):
    carousel = "carousel"
    video_script = "video_script"
    thread = "thread"
    text = "text"


class BlogPostStatus(str, Enum):
    draft = "draft"
    scheduled = "scheduled"
    published = "published"
    archived = "archived"


class RunStatus(str, Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


class RunTrigger(str, Enum):
    manual = "manual"
    run_once = "run_once"
    scheduled = "scheduled"


class ConnectionStatus(str, Enum):
    connected = "connected"
    disconnected = "disconnected"
    expired = "expired"


class AutopilotFrequency(str, Enum):
    daily = "daily"
    three_per_week = "3x_week"
    weekly = "weekly"


class PlatformUserRole(Base):
    __tablename__ = "platform_user_roles"
    __table_args__ = (sa.UniqueConstraint("user_id", "role", name="uq_platform_user_roles_user_role"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(sa.String(32), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


class PublishingSettings(Base):
    """Per-tenant autopilot and publishing configuration."""
    __tablename__ = "social_publishing_settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True, server_default="default")
    autopilot_enabled: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())
    autopilot_frequency: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=AutopilotFrequency.daily.value, server_default="daily"
    )
    autopilot_topics: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    autopilot_tone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    autopilot_last_run: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    emergency_stop: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())
    require_approval: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True, server_default=sa.true())
    auto_publish_enabled: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())
    auto_publish_platforms: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    brand_tone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    forbidden_words: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    default_hashtags: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    best_posting_times: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True, server_default="default")
    title: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    slug: Mapped[str] = mapped_column(sa.String(512), nullable=False, unique=True)
    excerpt: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    content: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    seo_title: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    seo_keywords: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=BlogPostStatus.draft.value, server_default="draft", index=True
    )
    scheduled_for: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    author_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    ai_generated: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    social_posts: Mapped[list["SocialPost"]] = relationship(back_populates="blog_post", passive_deletes=True)


class SocialPost(Base):
    # No uniqueness on (blog_post_id, platform): reruns may attach several drafts to one article.
    __tablename__ = "social_posts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True, server_default="default")
    blog_post_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("blog_posts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    platform: Mapped[str] = mapped_column(sa.String(16), nullable=False, index=True)
    caption: Mapped[str] = mapped_column(sa.Text(), nullable=False, default="")
    hashtags: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    content_type: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=ContentType.text.value, server_default="text"
    )
    structured_content: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    slide_count: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    video_script: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    thread_tweets: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    media_urls: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    external_post_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    external_post_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=SocialPostStatus.draft.value, server_default="draft", index=True
    )
    approval_status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=ApprovalStatus.pending.value, server_default="pending", index=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    ai_generated: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())
    auto_published: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())
    created_by: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    blog_post: Mapped[BlogPost | None] = relationship(back_populates="social_posts")


class SocialConnection(Base):
    __tablename__ = "social_media_connections"
    __table_args__ = (sa.UniqueConstraint("tenant_id", "platform", name="uq_social_connections_tenant_platform"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, server_default="default")
    platform: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    account_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    account_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    connection_status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=ConnectionStatus.connected.value, server_default="connected"
    )
    access_token: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    last_connected_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )


class AutopilotRun(Base):
    """One execution of the trend -> content -> persist pipeline."""
    __tablename__ = "ai_autopilot_runs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True, server_default="default")
    run_type: Mapped[str] = mapped_column(sa.String(64), nullable=False, server_default="multi_channel_content")
    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=RunStatus.running.value, index=True)
    trigger: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=RunTrigger.manual.value, server_default="manual")
    started_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    trend_topic: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    trend_sources: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    article_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("blog_posts.id", ondelete="SET NULL"), nullable=True
    )
    social_posts_generated: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    ai_model: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", sa.JSON(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


class SocialPublicationLog(Base):
    __tablename__ = "social_publication_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, server_default="default")
    social_post_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("social_posts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    status: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    platform: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    details: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


class SocialAnalytics(Base):
    __tablename__ = "social_analytics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    social_post_id: Mapped[int] = mapped_column(
        sa.ForeignKey("social_posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    likes: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    comments: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    shares: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    views: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    clicks: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    engagement_rate: Mapped[float | None] = mapped_column(sa.Float(), nullable=True)
    reach: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    impressions: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    fetched_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True
    )
