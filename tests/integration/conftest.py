"""API test fixtures: the app wired to the per-test SQLite database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.api.app import create_app
from salary_engine.api.dependencies import get_db_session
from salary_engine.config import get_settings
from tests.conftest import make_settings


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, one committed transaction per request."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_settings] = lambda: make_settings()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def seed(session_factory):
    """Insert rows directly, committed before the test makes requests."""

    async def _seed(*rows):
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows

    return _seed
