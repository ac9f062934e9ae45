"""
Async SQLAlchemy engine and sessions.

PostgreSQL (asyncpg) in production; any async URL works, which is how the
tests run on aiosqlite. Sessions never expire attributes on commit, so
objects handed back by the store stay readable after their session closes.
"""
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(settings) -> AsyncEngine:
    options = {"echo": settings.app_env == "development", "pool_pre_ping": True}
    # SQLite uses its own pool and rejects sizing arguments
    if not settings.database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
    return create_async_engine(settings.database_url, **options)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory, created on first use."""
    global _engine, _session_factory
    if _session_factory is None:
        from leadline.config import get_settings
        _engine = build_engine(get_settings())
        _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed if the handler succeeds."""
    async with get_session_factory()() as session:
        async with session.begin():
            yield session
