"""autopilot schema: settings, blog/social posts, connections, runs, logs, analytics

Revision ID: 0001_autopilot_schema
Revises:
Create Date: 2026-02-02 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_autopilot_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if with_updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "platform_user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("user_id", "role", name="uq_platform_user_roles_user_role"),
    )
    op.create_index("ix_platform_user_roles_user_id", "platform_user_roles", ["user_id"])
    op.create_index("ix_platform_user_roles_role", "platform_user_roles", ["role"])

    op.create_table(
        "social_publishing_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default", unique=True),
        sa.Column("autopilot_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("autopilot_frequency", sa.String(length=16), nullable=False, server_default="daily"),
        sa.Column("autopilot_topics", sa.JSON(), nullable=True),
        sa.Column("autopilot_tone", sa.String(length=64), nullable=True),
        sa.Column("autopilot_last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("emergency_stop", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("require_approval", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_publish_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_publish_platforms", sa.JSON(), nullable=True),
        sa.Column("brand_tone", sa.String(length=64), nullable=True),
        sa.Column("forbidden_words", sa.JSON(), nullable=True),
        sa.Column("default_hashtags", sa.JSON(), nullable=True),
        sa.Column("best_posting_times", sa.JSON(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "blog_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("slug", sa.String(length=512), nullable=False, unique=True),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("seo_title", sa.String(length=255), nullable=True),
        sa.Column("seo_description", sa.Text(), nullable=True),
        sa.Column("seo_keywords", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("author_id", sa.String(length=64), nullable=True),
        sa.Column("ai_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_blog_posts_tenant_id", "blog_posts", ["tenant_id"])
    op.create_index("ix_blog_posts_status", "blog_posts", ["status"])

    op.create_table(
        "social_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("blog_post_id", sa.Integer(), sa.ForeignKey("blog_posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("caption", sa.Text(), nullable=False),
        sa.Column("hashtags", sa.JSON(), nullable=True),
        sa.Column("content_type", sa.String(length=16), nullable=False, server_default="text"),
        sa.Column("structured_content", sa.JSON(), nullable=True),
        sa.Column("slide_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("video_script", sa.Text(), nullable=True),
        sa.Column("thread_tweets", sa.JSON(), nullable=True),
        sa.Column("media_urls", sa.JSON(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("external_post_id", sa.String(length=255), nullable=True),
        sa.Column("external_post_url", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("approval_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_social_posts_tenant_id", "social_posts", ["tenant_id"])
    op.create_index("ix_social_posts_blog_post_id", "social_posts", ["blog_post_id"])
    op.create_index("ix_social_posts_platform", "social_posts", ["platform"])
    op.create_index("ix_social_posts_status", "social_posts", ["status"])
    op.create_index("ix_social_posts_approval_status", "social_posts", ["approval_status"])

    op.create_table(
        "social_media_connections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("account_id", sa.String(length=255), nullable=True),
        sa.Column("connection_status", sa.String(length=16), nullable=False, server_default="connected"),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_connected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "platform", name="uq_social_connections_tenant_platform"),
    )

    op.create_table(
        "ai_autopilot_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("run_type", sa.String(length=64), nullable=False, server_default="multi_channel_content"),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("trigger", sa.String(length=16), nullable=False, server_default="manual"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trend_topic", sa.Text(), nullable=True),
        sa.Column("trend_sources", sa.JSON(), nullable=True),
        sa.Column("article_id", sa.Integer(), sa.ForeignKey("blog_posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("social_posts_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("ai_model", sa.String(length=128), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_ai_autopilot_runs_tenant_id", "ai_autopilot_runs", ["tenant_id"])
    op.create_index("ix_ai_autopilot_runs_status", "ai_autopilot_runs", ["status"])

    op.create_table(
        "social_publication_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("social_post_id", sa.Integer(), sa.ForeignKey("social_posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_social_publication_logs_social_post_id", "social_publication_logs", ["social_post_id"])

    op.create_table(
        "social_analytics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("social_post_id", sa.Integer(), sa.ForeignKey("social_posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shares", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("views", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("engagement_rate", sa.Float(), nullable=True),
        sa.Column("reach", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("impressions", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_social_analytics_social_post_id", "social_analytics", ["social_post_id"])
    op.create_index("ix_social_analytics_fetched_at", "social_analytics", ["fetched_at"])


def downgrade() -> None:
    op.drop_table("social_analytics")
    op.drop_table("social_publication_logs")
    op.drop_table("ai_autopilot_runs")
    op.drop_table("social_media_connections")
    op.drop_table("social_posts")
    op.drop_table("blog_posts")
    op.drop_table("social_publishing_settings")
    op.drop_table("platform_user_roles")
