"""Shared test fixtures."""

from __future__ import annotations

import os

os.environ["WHBJJ_JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["WHBJJ_JWT_ALGORITHM"] = "HS256"
os.environ["WHBJJ_LOG_FORMAT"] = "console"
os.environ.pop("WHBJJ_REDIS_URL", None)

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any  # noqa: E402

import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from whbjj.config import get_settings  # noqa: E402

get_settings.cache_clear()

from whbjj.auth.jwt import create_access_token, reset_keys  # noqa: E402
from whbjj.auth.service import register_user  # noqa: E402
from whbjj.content.service import create_category, create_technique, seed_belt_levels  # noqa: E402
from whbjj.database import Database  # noqa: E402
from whbjj.main import create_app  # noqa: E402
from whbjj.memberships.service import upsert_membership  # noqa: E402

reset_keys()

TEST_PASSWORD = "SecureP@ss1"


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """A fresh SQLite database per test, with belt levels seeded."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_all()
    async with db.session() as session:
        await seed_belt_levels(session)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def app(database: Database, tmp_path: Path) -> FastAPI:
    settings = get_settings().model_copy(update={"upload_dir": str(tmp_path / "uploads")})
    return create_app(settings=settings, database=database)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app (no network)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for assertions and service-level tests."""
    async with database.session() as session:
        yield session


# ---------------------------------------------------------------------------
# Data helpers (each opens and commits its own session)
# ---------------------------------------------------------------------------


async def make_user(
    database: Database,
    username: str = "member1",
    email: str = "member1@example.com",
    role: str = "member",
    password: str = TEST_PASSWORD,
) -> dict[str, Any]:
    """Create a user and return its id, credentials and a fresh token."""
    async with database.session() as db:
        user = await register_user(db, username=username, email=email, password=password, role=role)
        await db.commit()
        user_id = user.id
    token = create_access_token(user_id, role, has_membership=False)
    return {
        "id": user_id,
        "username": username,
        "email": email,
        "password": password,
        "role": role,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }


async def grant_membership(database: Database, user_id: int, **fields: Any) -> None:
    async with database.session() as db:
        await upsert_membership(db, user_id, **fields)
        await db.commit()


async def make_category(database: Database, name: str = "Guard") -> int:
    async with database.session() as db:
        category = await create_category(db, name)
        await db.commit()
        return category.id


async def make_technique(database: Database, tags: list[str] | None = None, **fields: Any) -> int:
    data: dict[str, Any] = {
        "title": "Armbar from Guard",
        "video_url": "/uploads/videos/armbar.mp4",
        "difficulty_level": "beginner",
    }
    data.update(fields)
    async with database.session() as db:
        technique = await create_technique(db, data, tags)
        await db.commit()
        return technique.id


def expired_window() -> dict[str, datetime]:
    now = datetime.now(timezone.utc)
    return {"start_date": now - timedelta(days=60), "end_date": now - timedelta(days=1)}


# ---------------------------------------------------------------------------
# Role fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def member(database: Database) -> dict[str, Any]:
    """Registered member without a membership."""
    return await make_user(database)


@pytest_asyncio.fixture
async def paid_member(database: Database) -> dict[str, Any]:
    """Member with an active monthly membership, token issued after activation."""
    user = await make_user(database, username="paid1", email="paid1@example.com")
    await grant_membership(database, user["id"])
    token = create_access_token(user["id"], "member", has_membership=True)
    user["token"] = token
    user["headers"] = {"Authorization": f"Bearer {token}"}
    return user


@pytest_asyncio.fixture
async def admin(database: Database) -> dict[str, Any]:
    return await make_user(database, username="admin1", email="admin1@example.com", role="admin")
