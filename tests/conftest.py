"""Shared test fixtures.

Every test gets its own SQLite database file; Redis is disabled so the rate
limiter passes requests through and progression events are not published.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.config import get_settings
from skillpath.database import close_db, create_schema, get_session_factory, init_db
from skillpath.db.models import User
from skillpath.gamification.catalog import seed_achievements
from skillpath.gamification.progression import get_or_create_profile
from skillpath.main import create_app

TEST_PASSWORD = "SecureP@ss1"


@pytest.fixture(autouse=True)
def _test_settings(tmp_path, monkeypatch):
    """Point the app at a throwaway database and disable external services."""
    monkeypatch.setenv("SKILLPATH_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("SKILLPATH_REDIS_ENABLED", "false")
    monkeypatch.setenv("SKILLPATH_LOG_FORMAT", "console")
    monkeypatch.setenv("SKILLPATH_JWT_SECRET_KEY", "test-secret-key-0123456789abcdef0123456789")
    monkeypatch.setenv("SKILLPATH_OLLAMA_BASE_URL", "http://ollama.test")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Initialize the engine, create the schema and seed the achievement catalog."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    async with get_session_factory()() as session:
        await seed_achievements(session)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def app(database: None) -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to a fresh app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory creating a user row plus its gamification profile."""
    counter = 0

    async def _make(display_name: str | None = None, email: str | None = None) -> User:
        nonlocal counter
        counter += 1
        user = User(
            email=email or f"learner{counter}@example.com",
            password_hash="not-a-real-hash",
            display_name=display_name,
        )
        db_session.add(user)
        await db_session.flush()
        await get_or_create_profile(db_session, user.id)
        await db_session.commit()
        return user

    return _make


async def _register(client: AsyncClient, email: str, display_name: str | None = None) -> dict:
    body = {"email": email, "password": TEST_PASSWORD}
    if display_name is not None:
        body["display_name"] = display_name
    response = await client.post("/api/v1/auth/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()
    return {
        "email": email,
        "password": TEST_PASSWORD,
        "user_id": data["user"]["id"],
        "access_token": data["access_token"],
    }


@pytest.fixture
def register(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Register an account through the API; returns credentials and token."""

    async def _do(email: str = "learner@example.com", display_name: str | None = "Ada") -> dict:
        return await _register(client, email, display_name)

    return _do


@pytest_asyncio.fixture
async def registered_user(register) -> dict:
    return await register()


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, registered_user: dict) -> AsyncClient:
    """Client carrying the registered user's bearer token."""
    client.headers["Authorization"] = f"Bearer {registered_user['access_token']}"
    return client
