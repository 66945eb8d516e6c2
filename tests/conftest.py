"""
Pytest Configuration and Fixtures

Shared fixtures for repository and API tests. Everything runs against
throwaway SQLite databases; no external services required.
"""

import os
import tempfile

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be set before any restcrud imports.
#
# Settings are read once at import time, so the application database is
# pointed at a temporary file before anything imports restcrud.core.config.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_db_dir = tempfile.mkdtemp(prefix="restcrud-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_db_dir}/app.db"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
from collections.abc import AsyncGenerator  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from restcrud.models import Base, Thing  # noqa: E402
from restcrud.repositories import CrudRepository  # noqa: E402
from restcrud.schemas.things import ThingWebModel  # noqa: E402


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory bound to a fresh SQLite file with all tables created.

    Scope:
        function - every test starts from an empty database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def things(
    session_factory: async_sessionmaker[AsyncSession],
) -> CrudRepository[Thing, ThingWebModel, int]:
    """Thing repository on the per-test database."""
    return CrudRepository(Thing, ThingWebModel, session_factory)
