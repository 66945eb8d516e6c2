"""
Database Configuration

Async SQLAlchemy 2.0 setup with lazy engine creation and session management.

Design:
    - Lazy initialization: engine created on first use, not at import.
    - get_session_factory: returns the reusable async session maker that
      CRUD repositories receive through their constructor.
    - new_session: zero-argument session factory on top of it.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from restcrud.core.config import settings
from restcrud.models.base import Base

logger = logging.getLogger(__name__)

# Module-level singletons (lazy)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine (singleton)."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_async_engine(settings.DATABASE_URL)
        logger.info("Database engine created: %s", _engine.url.render_as_string())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory (singleton)."""
    global _session_factory  # noqa: PLW0603
    if _session_factory is None:
        # expire_on_commit=False: prevents implicit I/O after commit when accessing attributes
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


def new_session() -> AsyncSession:
    """
    Open a session on the process-wide factory.

    Zero-argument session factory for repositories built at import time,
    before the engine exists.
    """
    return get_session_factory()()


async def init_models() -> None:
    """Create all tables registered on the declarative metadata."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (%d tables)", len(Base.metadata.tables))


async def dispose_engine() -> None:
    """Dispose the engine at application shutdown."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine disposed")


__all__ = [
    "Base",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "init_models",
    "new_session",
]
