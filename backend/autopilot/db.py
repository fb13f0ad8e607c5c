from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .settings import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Base declarative class for SQLAlchemy models."""


def make_engine(url: str | None = None) -> AsyncEngine:
    """Engine for the API process, the scheduler or a Celery worker (one per event loop)."""
    return create_async_engine(
        url or settings.async_database_url,
        echo=False,
        pool_pre_ping=settings.is_postgres,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Run rows are read back after commit, so instances must not expire
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine()
AsyncSessionLocal = make_session_factory(engine)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session
