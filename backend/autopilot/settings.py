from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "content-autopilot"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "AUTOPILOT_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/autopilot",
        validation_alias=AliasChoices("DATABASE_URL", "AUTOPILOT_DATABASE_URL"),
    )
    default_tenant: str = Field(default="default", validation_alias=AliasChoices("DEFAULT_TENANT", "AUTOPILOT_DEFAULT_TENANT"))
    brand_name: str = Field(default="Nectforma", validation_alias=AliasChoices("BRAND_NAME", "AUTOPILOT_BRAND_NAME"))
    blog_url: str = Field(default="https://nectforma.com/blog", validation_alias=AliasChoices("BLOG_URL", "AUTOPILOT_BLOG_URL"))

    # Trend detection (search-augmented LLM)
    perplexity_api_key: str | None = Field(default=None, validation_alias=AliasChoices("PERPLEXITY_API_KEY", "AUTOPILOT_PERPLEXITY_API_KEY"))
    perplexity_url: str = Field(default="https://api.perplexity.ai/chat/completions", validation_alias=AliasChoices("PERPLEXITY_URL", "AUTOPILOT_PERPLEXITY_URL"))
    perplexity_model: str = Field(default="sonar", validation_alias=AliasChoices("PERPLEXITY_MODEL", "AUTOPILOT_PERPLEXITY_MODEL"))

    # Context scraping
    firecrawl_api_key: str | None = Field(default=None, validation_alias=AliasChoices("FIRECRAWL_API_KEY", "AUTOPILOT_FIRECRAWL_API_KEY"))
    firecrawl_url: str = Field(default="https://api.firecrawl.dev/v1/search", validation_alias=AliasChoices("FIRECRAWL_URL", "AUTOPILOT_FIRECRAWL_URL"))

    # LLM gateway (synthesis, captions, images)
    llm_gateway_api_key: str | None = Field(default=None, validation_alias=AliasChoices("LOVABLE_API_KEY", "LLM_GATEWAY_API_KEY", "AUTOPILOT_LLM_GATEWAY_API_KEY"))
    llm_gateway_url: str = Field(default="https://ai.gateway.lovable.dev/v1/chat/completions", validation_alias=AliasChoices("LLM_GATEWAY_URL", "AUTOPILOT_LLM_GATEWAY_URL"))
    content_model: str = Field(default="google/gemini-3-flash-preview", validation_alias=AliasChoices("CONTENT_MODEL", "AUTOPILOT_CONTENT_MODEL"))
    caption_model: str = Field(default="google/gemini-3-flash-preview", validation_alias=AliasChoices("CAPTION_MODEL", "AUTOPILOT_CAPTION_MODEL"))
    image_model: str = Field(default="google/gemini-3-pro-image-preview", validation_alias=AliasChoices("IMAGE_MODEL", "AUTOPILOT_IMAGE_MODEL"))
    cover_image_model: str = Field(default="google/gemini-2.5-flash-image", validation_alias=AliasChoices("COVER_IMAGE_MODEL", "AUTOPILOT_COVER_IMAGE_MODEL"))

    # Object storage
    storage_backend: str = Field(default="supabase", validation_alias=AliasChoices("STORAGE_BACKEND", "AUTOPILOT_STORAGE_BACKEND"))
    storage_url: str | None = Field(default=None, validation_alias=AliasChoices("SUPABASE_URL", "STORAGE_URL", "AUTOPILOT_STORAGE_URL"))
    storage_service_key: str | None = Field(default=None, validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "STORAGE_SERVICE_KEY", "AUTOPILOT_STORAGE_SERVICE_KEY"))
    storage_bucket: str = Field(default="blog-assets", validation_alias=AliasChoices("STORAGE_BUCKET", "AUTOPILOT_STORAGE_BUCKET"))
    local_storage_dir: str = Field(default="/data/media", validation_alias=AliasChoices("LOCAL_STORAGE_DIR", "AUTOPILOT_LOCAL_STORAGE_DIR"))
    public_base_url: str = Field(default="http://localhost:8000/media", validation_alias=AliasChoices("PUBLIC_BASE_URL", "AUTOPILOT_PUBLIC_BASE_URL"))

    # Outbound HTTP timeouts
    http_timeout_sec: int = Field(default=30, validation_alias=AliasChoices("HTTP_TIMEOUT_SEC", "AUTOPILOT_HTTP_TIMEOUT_SEC"))
    llm_timeout_sec: int = Field(default=180, validation_alias=AliasChoices("LLM_TIMEOUT_SEC", "AUTOPILOT_LLM_TIMEOUT_SEC"))
    image_timeout_sec: int = Field(default=120, validation_alias=AliasChoices("IMAGE_TIMEOUT_SEC", "AUTOPILOT_IMAGE_TIMEOUT_SEC"))

    # Runs
    stale_run_minutes: int = Field(default=30, validation_alias=AliasChoices("STALE_RUN_MINUTES", "AUTOPILOT_STALE_RUN_MINUTES"))
    scheduler_enabled: bool = Field(default=True, validation_alias=AliasChoices("SCHEDULER_ENABLED", "AUTOPILOT_SCHEDULER_ENABLED"))
    scheduler_tick_minutes: int = Field(default=60, validation_alias=AliasChoices("SCHEDULER_TICK_MINUTES", "AUTOPILOT_SCHEDULER_TICK_MINUTES"))

    # Background jobs / notifications
    redis_url: str = Field(default="redis://redis:6379/0", validation_alias=AliasChoices("REDIS_URL", "AUTOPILOT_REDIS_URL"))
    celery_enabled: bool = Field(default=True, validation_alias=AliasChoices("CELERY_ENABLED", "AUTOPILOT_CELERY_ENABLED"))
    telegram_bot_token: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "AUTOPILOT_TELEGRAM_BOT_TOKEN"))
    telegram_chat_id: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_CHAT_ID", "AUTOPILOT_TELEGRAM_CHAT_ID"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith("postgresql")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
