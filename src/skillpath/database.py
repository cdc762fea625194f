"""Async SQLAlchemy engine and session management."""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from skillpath.errors import StorageUnavailable

logger = logging.getLogger(__name__)

# Raised when the database cannot be reached or a statement cannot run
STORAGE_ERRORS = (OperationalError, DBAPIError, OSError, asyncio.TimeoutError)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(url: str) -> None:
    """Initialize the database engine and session factory."""
    global _engine, _session_factory  # noqa: PLW0603
    if url.startswith("sqlite"):
        # SQLite (dev/tests): default pool, wait on the file lock instead of failing fast
        _engine = create_async_engine(url, echo=False, connect_args={"timeout": 30})
    else:
        _engine = create_async_engine(
            url,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
            connect_args={"statement_cache_size": 0},
        )
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_schema() -> None:
    """Create all tables that do not exist yet."""
    from skillpath.db.base import Base
    from skillpath.db import models  # noqa: F401  (registers tables on Base.metadata)

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the database engine."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_engine() -> AsyncEngine:
    """Get the async engine instance."""
    if _engine is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory (for code that manages its own sessions)."""
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with get_session_factory()() as session:
        yield session


@asynccontextmanager
async def storage_errors(db: AsyncSession) -> AsyncIterator[None]:
    """Roll back and raise ``StorageUnavailable`` when the block hits a storage failure."""
    try:
        yield
    except STORAGE_ERRORS as exc:
        try:
            await db.rollback()
        except (DBAPIError, OSError):
            logger.warning("Rollback failed", exc_info=True)
        msg = "Storage unavailable"
        raise StorageUnavailable(msg) from exc
