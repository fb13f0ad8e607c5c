import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("CELERY_ENABLED", "false")
os.environ.setdefault("STORAGE_BACKEND", "local")

import json
from typing import Any, Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from autopilot import models  # noqa: F401
from autopilot.db import Base, get_session
from autopilot.main import app
from autopilot.models import PlatformUserRole
from autopilot.services import llm_provider, storage
from autopilot.services.llm_provider import ChatCompletion, LLMProvider
from autopilot.settings import get_settings

# 1x1 transparent PNG
PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
SUPER_ADMIN_ID = "00000000-0000-0000-0000-0000000000aa"


class FakeLLM(LLMProvider):
    """Records calls; `handler(model, messages, options)` decides the answer.

    The handler may return a string (assistant text), a ChatCompletion, or
    an exception instance to raise.
    """

    def __init__(self, handler: Callable[[str, list, dict], Any], configured: bool = True):
        self.handler = handler
        self.calls: list[dict[str, Any]] = []
        self._configured = configured

    async def complete(self, *, messages, model, timeout=None, **options):
        self.calls.append({"model": model, "messages": messages, "timeout": timeout, "options": options})
        result = self.handler(model, messages, options)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, ChatCompletion):
            return result
        return ChatCompletion(result, message={"role": "assistant", "content": result}, model=model)

    @property
    def configured(self) -> bool:
        return self._configured


class MemoryStorage(storage.StorageBackend):
    def __init__(self):
        self.objects: dict[str, bytes] = {}

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.objects[path] = data
        return f"https://cdn.test/{path}"


def image_completion(model: str = "image-model") -> ChatCompletion:
    message = {
        "role": "assistant",
        "content": "",
        "images": [{"type": "image_url", "image_url": {"url": f"data:image/png;base64,{PNG_B64}"}}],
    }
    return ChatCompletion("", message=message, model=model)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    settings = get_settings()
    for key in (
        "perplexity_api_key",
        "firecrawl_api_key",
        "llm_gateway_api_key",
        "telegram_bot_token",
        "telegram_chat_id",
    ):
        monkeypatch.setattr(settings, key, None)
    monkeypatch.setattr(settings, "celery_enabled", False)
    monkeypatch.setattr(settings, "default_tenant", "default")
    return settings


@pytest.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory):
    async def get_session_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_session, None)


@pytest.fixture()
async def super_admin(session_factory):
    async with session_factory() as session:
        session.add(PlatformUserRole(user_id=SUPER_ADMIN_ID, role="super_admin"))
        await session.commit()
    return SUPER_ADMIN_ID


@pytest.fixture()
def install_llm():
    original = llm_provider.get_llm_provider()

    def _install(handler, configured: bool = True) -> FakeLLM:
        fake = FakeLLM(handler, configured=configured)
        llm_provider.set_llm_provider(fake)
        return fake

    try:
        yield _install
    finally:
        llm_provider.set_llm_provider(original)


@pytest.fixture()
def memory_storage():
    store = MemoryStorage()
    storage.set_storage(store)
    try:
        yield store
    finally:
        storage.set_storage(None)


@pytest.fixture()
def multi_channel_payload() -> dict[str, Any]:
    return {
        "article": {
            "title": "Réforme de la formation professionnelle 2026",
            "seo_title": "Réforme formation 2026",
            "seo_description": "Ce qui change pour les organismes de formation.",
            "slug": "reforme-formation-2026",
            "excerpt": "Ce qui change cette année.",
            "content": "<h2>Contexte</h2><p>Texte.</p>",
            "seo_keywords": ["formation", "réforme", "qualiopi"],
        },
        "linkedin": {
            "caption": "Ce qui change en 2026 pour la formation 👇",
            "hashtags": ["#EdTech", "#Formation"],
            "carousel": {"slides": [
                {"slide_number": 1, "title": "2026", "type": "cover"},
                {"slide_number": 2, "title": "Point clé", "bullet_points": ["A", "B"], "type": "content"},
                {"slide_number": 3, "title": "Passez à l'action", "type": "cta"},
            ]},
        },
        "instagram": {
            "caption": "La réforme en 3 slides ✨",
            "hashtags": ["#Formation"],
            "carousel": {"slides": [
                {"slide_number": 1, "title": "Réforme", "type": "cover", "color_accent": "#8B5CF6"},
                {"slide_number": 2, "title": "Saviez-vous que...", "type": "fact"},
            ]},
        },
        "tiktok": {
            "caption": "La réforme expliquée en 20s",
            "hashtags": ["#fyp"],
            "video_script": {
                "hook": "Tu formes des salariés ?",
                "scenes": [
                    {"duration_seconds": 3, "text": "Hook", "action": "Zoom"},
                    {"duration_seconds": 5, "text": "Problème", "action": "Texte"},
                    {"duration_seconds": 5, "text": "Solution", "action": "Démo"},
                    {"duration_seconds": 4, "text": "Résultat", "action": "Chiffres"},
                    {"duration_seconds": 3, "text": "CTA", "action": "Lien en bio"},
                ],
                "music_suggestion": "Son tendance",
                "total_duration_seconds": 20,
            },
        },
        "twitter": {
            "thread": ["1/3 La réforme arrive", "2/3 Ce qui change", "3/3 Notre guide"],
            "hashtags": ["#EdTech"],
        },
    }


@pytest.fixture()
def multi_channel_json(multi_channel_payload) -> str:
    return json.dumps(multi_channel_payload, ensure_ascii=False)
