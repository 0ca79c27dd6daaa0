"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ["PAIRLY_JWT_ALGORITHM"] = "HS256"
os.environ["PAIRLY_JWT_SECRET"] = "pairly-test-secret-that-is-long-enough-for-hs256"
os.environ["PAIRLY_REDIS_URL"] = ""
os.environ["PAIRLY_LOG_FORMAT"] = "console"

from pairly.auth.jwt import create_access_token, reset_keys  # noqa: E402
from pairly.config import get_settings  # noqa: E402
from pairly.couples.pairing_service import connect_with_partner  # noqa: E402
from pairly.database import close_db, create_schema, init_db, session_scope  # noqa: E402
from pairly.profiles.service import create_profile  # noqa: E402

get_settings.cache_clear()
reset_keys()


@dataclass
class Pair:
    """Two connected test users."""

    alice: str
    bob: str
    couple_id: str


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[None, None]:
    """A fresh SQLite database per test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'pairly.db'}")
    await create_schema()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db(database: None) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with session_scope() as session:
        yield session


@pytest.fixture
def make_user(db: AsyncSession) -> Callable[..., Awaitable[dict]]:
    """Factory creating a profile and returning its document."""

    async def _make(uid: str, display_name: str | None = None) -> dict:
        result = await create_profile(db, uid, f"{uid}@example.com", display_name=display_name or uid.title())
        assert result.success, result.error
        return result["profile"]

    return _make


@pytest_asyncio.fixture
async def pair(db: AsyncSession, make_user: Callable[..., Awaitable[dict]]) -> Pair:
    """Alice and Bob, connected through Bob's invite code."""
    await make_user("alice", "Alice")
    bob = await make_user("bob", "Bob")
    result = await connect_with_partner(db, "alice", bob["inviteCode"])
    assert result.success, result.error
    return Pair(alice="alice", bob="bob", couple_id=result["coupleId"])


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Bearer headers for a uid, signed with the test secret."""

    def _headers(uid: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(uid)}"}

    return _headers


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app (database already initialized)."""
    from pairly.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
