"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sudu.config import settings


def _engine_kwargs(url: str) -> dict[str, Any]:
    """Pool settings only apply to server databases."""
    if url.startswith("sqlite"):
        # In-memory SQLite lives as long as its single connection
        if ":memory:" in url:
            return {"poolclass": StaticPool}
        return {}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,
    }


def create_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine for the configured database."""
    url = url or (settings.database_url_test if settings.is_test else settings.database_url)
    return create_async_engine(url, echo=settings.database_echo, **_engine_kwargs(url))


engine = create_engine()

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session scope for background jobs and CLI commands."""
    async with async_session_factory() as session:
        yield session


async def close_db() -> None:
    """Dispose of pooled connections on shutdown."""
    await engine.dispose()
