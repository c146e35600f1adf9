"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Every user gets its own AsyncClient so each holds its own session cookie.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app
from tests.integration.helpers import PASSWORD, unique_username

UserFactory = Callable[[], Awaitable[tuple[AsyncClient, dict]]]


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Anonymous session-scoped client; keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def make_user(client: AsyncClient) -> AsyncGenerator[UserFactory, None]:
    """Register a fresh user; returns (logged-in client, user info)."""
    opened: list[AsyncClient] = []

    async def _make() -> tuple[AsyncClient, dict]:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        opened.append(ac)
        resp = await ac.post(
            "/api/v1/auth/register",
            json={"username": unique_username(), "password": PASSWORD},
        )
        assert resp.status_code == 201, resp.text
        return ac, resp.json()["data"]

    yield _make
    for ac in opened:
        await ac.aclose()

