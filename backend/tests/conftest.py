from __future__ import annotations

import os

# Local runs without Postgres fall back to a SQLite file.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_approvals.db")

from typing import TYPE_CHECKING  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402

from approval_engine.config import get_settings  # noqa: E402
from approval_engine.db import get_session  # noqa: E402
from approval_engine.main import app  # noqa: E402
from approval_engine.models import SQLModel  # noqa: E402
from approval_engine.services.directory import InMemoryIdentityDirectory, set_directory  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture(scope="session")
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create a session-scoped async engine and ensure tables exist.

    In CI, Alembic migrations run before tests so create_all is a no-op.
    For local runs without prior migrations it serves as a fallback.
    """
    settings = get_settings()
    _engine = create_async_engine(settings.database_url)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session wrapped in a transaction that rolls back after each test."""
    async with engine.connect() as conn:
        txn = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        yield session
        await session.close()
        await txn.rollback()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def directory() -> Iterator[InMemoryIdentityDirectory]:
    """Give every test an empty identity directory."""
    directory = InMemoryIdentityDirectory()
    set_directory(directory)
    yield directory
    set_directory(InMemoryIdentityDirectory())
