"""Integration-test fixtures.

Needs PostgreSQL and Redis (docker compose up) plus migrations
(alembic upgrade head). Skipped unless RUN_INTEGRATION=1.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.
"""

import os
import uuid
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import text

from config.settings import settings
from src.em_common.database import async_session_factory
from src.main import app


def pytest_collection_modifyitems(config, items):  # type: ignore[no-untyped-def]
    if os.environ.get("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 to run against live services")
    here = os.path.dirname(__file__)
    for item in items:
        if str(item.fspath).startswith(here):
            item.add_marker(pytest.mark.integration)
            item.add_marker(skip)


def mint_token(user_id: str, username: str) -> str:
    """Sign an identity token the way the external auth service does."""
    return jwt.encode(
        {"sub": user_id, "username": username},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


async def _client_for(username: str) -> AsyncClient:
    transport = ASGITransport(app=app)
    ac = AsyncClient(transport=transport, base_url="http://test")
    ac.headers.update(
        {"Authorization": f"Bearer {mint_token(f'it-{username}', username)}"}
    )
    return ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncIterator[AsyncClient]:
    """Unauthenticated client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def player_client() -> AsyncIterator[AsyncClient]:
    """A fresh player, created on first request, who has picked the INTERN role."""
    ac = await _client_for(f"p_{uuid.uuid4().hex[:10]}")
    resp = await ac.post("/api/v1/me/role", json={"role": "INTERN"})
    assert resp.status_code == 200, resp.text
    yield ac
    await ac.aclose()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def admin_client() -> AsyncIterator[AsyncClient]:
    """A fresh user promoted to admin directly in the database."""
    username = f"a_{uuid.uuid4().hex[:10]}"
    ac = await _client_for(username)
    resp = await ac.get("/api/v1/me")
    assert resp.status_code == 200, resp.text
    async with async_session_factory() as db:
        await db.execute(
            text("UPDATE users SET is_admin = TRUE WHERE username = :username"),
            {"username": username},
        )
        await db.commit()
    yield ac
    await ac.put("/api/v1/admin/system/config", json={"event_mode": "NONE"})
    await ac.aclose()
