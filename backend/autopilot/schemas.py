from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .models import AutopilotFrequency, SocialPlatform


# ── Generated content ─────────────────────────────────────────

def _list_or_empty(value: Any) -> Any:
    return [] if value is None else value


def _str_or_empty(value: Any) -> Any:
    return "" if value is None else value


class SlideType(str, Enum):
    cover = "cover"
    content = "content"
    stat = "stat"
    cta = "cta"
    fact = "fact"
    tips = "tips"
    solution = "solution"
    result = "result"


class CarouselSlide(BaseModel):
    slide_number: int | None = None
    title: str = ""
    subtitle: str | None = None
    content: str | None = None
    bullet_points: list[str] = Field(default_factory=list)
    type: SlideType = SlideType.content
    color_accent: str | None = None

    @field_validator("bullet_points", mode="before")
    @classmethod
    def null_list(cls, value: Any) -> Any:
        return _list_or_empty(value)

    @field_validator("title", mode="before")
    @classmethod
    def null_title(cls, value: Any) -> Any:
        return _str_or_empty(value)

    @field_validator("type", mode="before")
    @classmethod
    def unknown_type_is_content(cls, value: Any) -> Any:
        if value not in {t.value for t in SlideType}:
            return SlideType.content
        return value


class Carousel(BaseModel):
    slides: list[CarouselSlide] = Field(default_factory=list)

    @field_validator("slides", mode="before")
    @classmethod
    def null_list(cls, value: Any) -> Any:
        return _list_or_empty(value)


class Scene(BaseModel):
    duration_seconds: float = 0
    text: str = ""
    action: str | None = None

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def null_duration(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("text", mode="before")
    @classmethod
    def null_text(cls, value: Any) -> Any:
        return _str_or_empty(value)


class VideoScript(BaseModel):
    hook: str = ""
    scenes: list[Scene] = Field(default_factory=list)
    music_suggestion: str | None = None
    total_duration_seconds: float | None = None

    @field_validator("scenes", mode="before")
    @classmethod
    def null_list(cls, value: Any) -> Any:
        return _list_or_empty(value)

    @field_validator("hook", mode="before")
    @classmethod
    def null_hook(cls, value: Any) -> Any:
        return _str_or_empty(value)


class ArticleContent(BaseModel):
    title: str
    seo_title: str | None = None
    seo_description: str | None = None
    slug: str | None = None
    excerpt: str | None = None
    content: str | None = None
    seo_keywords: list[str] = Field(default_factory=list)

    @field_validator("seo_keywords", mode="before")
    @classmethod
    def null_list(cls, value: Any) -> Any:
        return _list_or_empty(value)


class _SocialContent(BaseModel):
    """Null captions and lists from the model answer count as empty."""

    caption: str = ""
    hashtags: list[str] = Field(default_factory=list)

    @field_validator("caption", mode="before")
    @classmethod
    def null_caption(cls, value: Any) -> Any:
        return _str_or_empty(value)

    @field_validator("hashtags", mode="before")
    @classmethod
    def null_hashtags(cls, value: Any) -> Any:
        return _list_or_empty(value)


class LinkedInContent(_SocialContent):
    platform: Literal["linkedin"] = "linkedin"
    carousel: Carousel | None = None


class InstagramContent(_SocialContent):
    platform: Literal["instagram"] = "instagram"
    carousel: Carousel | None = None


class TikTokContent(_SocialContent):
    platform: Literal["tiktok"] = "tiktok"
    video_script: VideoScript | None = None
    carousel: Carousel | None = None
    media_urls: list[str] = Field(default_factory=list)

    @field_validator("media_urls", mode="before")
    @classmethod
    def null_media(cls, value: Any) -> Any:
        return _list_or_empty(value)


class TwitterContent(_SocialContent):
    platform: Literal["twitter"] = "twitter"
    thread: list[str] = Field(default_factory=list)

    @field_validator("thread", mode="before")
    @classmethod
    def null_thread(cls, value: Any) -> Any:
        return _list_or_empty(value)


ChannelContent = Annotated[
    Union[LinkedInContent, InstagramContent, TikTokContent, TwitterContent],
    Field(discriminator="platform"),
]


class MultiChannelContent(BaseModel):
    """Validated output of the multi-channel synthesis call."""

    article: ArticleContent
    linkedin: LinkedInContent | None = None
    instagram: InstagramContent | None = None
    tiktok: TikTokContent | None = None
    twitter: TwitterContent | None = None

    def channels(self) -> list[ChannelContent]:
        return [c for c in (self.linkedin, self.instagram, self.tiktok, self.twitter) if c is not None]


class TrendResult(BaseModel):
    topic: str
    context: str
    sources: list[str] = Field(default_factory=list)


# ── Function request bodies ───────────────────────────────────

class AutopilotRequest(BaseModel):
    """Body of the content-autopilot function: ``{action, ...fields}``."""

    model_config = ConfigDict(extra="allow")

    action: str = "run"
    tenant_id: str | None = None
    force: bool = False
    enabled: bool | None = None
    article_id: int | None = None
    post_id: int | None = None
    approved: bool | None = None
    topics: list[str] | None = None
    tone: str | None = None
    frequency: AutopilotFrequency | None = None
    require_approval: bool | None = None
    auto_publish_enabled: bool | None = None


class SocialRequest(BaseModel):
    action: str
    payload: dict[str, Any] = Field(default_factory=dict)
    tenant_id: str | None = None


class GenerateCaptionsPayload(BaseModel):
    title: str
    excerpt: str = ""
    content: str | None = None
    url: str | None = None
    platforms: list[SocialPlatform]


class SchedulePostPayload(BaseModel):
    blog_post_id: int | None = None
    platform: SocialPlatform
    caption: str
    hashtags: list[str] = Field(default_factory=list)
    media_urls: list[str] = Field(default_factory=list)
    scheduled_for: datetime
    ai_generated: bool = False


class PublishPostPayload(BaseModel):
    post_id: int


class SuggestBestTimePayload(BaseModel):
    platform: SocialPlatform
    content_type: str | None = None
    audience: str | None = None


class TestConnectionPayload(BaseModel):
    platform: SocialPlatform


class GenerateImagePayload(BaseModel):
    title: str
    platform: SocialPlatform
    style: str | None = None


# ── Read / update models ──────────────────────────────────────

class BlogPostRead(BaseModel):
    id: int
    tenant_id: str
    title: str
    slug: str
    excerpt: str | None = None
    content: str | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    seo_keywords: list[str] | None = None
    status: str
    scheduled_for: datetime | None = None
    published_at: datetime | None = None
    author_id: str | None = None
    ai_generated: bool = False
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class SocialPostRead(BaseModel):
    id: int
    tenant_id: str
    blog_post_id: int | None = None
    platform: str
    caption: str
    hashtags: list[str] | None = None
    content_type: str
    structured_content: dict | None = None
    slide_count: int = 0
    video_script: str | None = None
    thread_tweets: list[str] | None = None
    media_urls: list[str] | None = None
    scheduled_for: datetime | None = None
    published_at: datetime | None = None
    external_post_id: str | None = None
    external_post_url: str | None = None
    error_message: str | None = None
    status: str
    approval_status: str
    approved_at: datetime | None = None
    ai_generated: bool = False
    auto_published: bool = False
    created_by: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class BlogPostDetail(BlogPostRead):
    social_posts: list[SocialPostRead] = Field(default_factory=list)


class SocialPostUpdate(BaseModel):
    caption: str | None = None
    hashtags: list[str] | None = None
    media_urls: list[str] | None = None
    scheduled_for: datetime | None = None
    status: str | None = None


class AutopilotRunRead(BaseModel):
    id: int
    tenant_id: str
    run_type: str
    status: str
    trigger: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    trend_topic: str | None = None
    trend_sources: list[str] | None = None
    article_id: int | None = None
    social_posts_generated: int = 0
    error_message: str | None = None
    ai_model: str | None = None
    metadata: dict | None = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PublishingSettingsRead(BaseModel):
    id: int
    tenant_id: str
    autopilot_enabled: bool
    autopilot_frequency: str
    autopilot_topics: list[str] | None = None
    autopilot_tone: str | None = None
    autopilot_last_run: datetime | None = None
    emergency_stop: bool
    require_approval: bool
    auto_publish_enabled: bool
    auto_publish_platforms: list[str] | None = None
    brand_tone: str | None = None
    forbidden_words: list[str] | None = None
    default_hashtags: dict | None = None
    best_posting_times: dict | None = None

    class Config:
        from_attributes = True


class PublishingSettingsUpdate(BaseModel):
    autopilot_enabled: bool | None = None
    autopilot_frequency: AutopilotFrequency | None = None
    autopilot_topics: list[str] | None = None
    autopilot_tone: str | None = None
    emergency_stop: bool | None = None
    require_approval: bool | None = None
    auto_publish_enabled: bool | None = None
    auto_publish_platforms: list[SocialPlatform] | None = None
    brand_tone: str | None = None
    forbidden_words: list[str] | None = None
    default_hashtags: dict[str, list[str]] | None = None
    best_posting_times: dict[str, list[dict]] | None = None


class SocialConnectionRead(BaseModel):
    id: int
    platform: str
    account_name: str | None = None
    account_id: str | None = None
    connection_status: str
    last_connected_at: datetime | None = None
    token_expires_at: datetime | None = None

    class Config:
        from_attributes = True


class SocialConnectionUpsert(BaseModel):
    platform: SocialPlatform
    account_name: str | None = None
    account_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None

    @field_validator("account_name")
    @classmethod
    def normalize_account_name(cls, value: str | None) -> str | None:
        return value.strip() if value else value


class PublicationLogRead(BaseModel):
    id: int
    social_post_id: int | None = None
    action: str
    status: str
    platform: str
    details: dict | None = None
    error_message: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
