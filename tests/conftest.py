"""
Shared fixtures for Lab Records backend integration tests.

Each test gets a fresh database: a throwaway SQLite file by default, or the
database named by TEST_DATABASE_URL (e.g. a local Postgres). Tables are
created with create_all before the test and dropped afterwards. Every HTTP
request gets its own session that commits or rolls back like ``get_db``.
"""
from __future__ import annotations

import os
import tempfile
from typing import Any, AsyncGenerator, Dict

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any app module is imported, so that the global
# engine, the bcrypt cost factor and the upload directory are test values.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")
_UPLOAD_DIR = tempfile.mkdtemp(prefix="labrecords-uploads-")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL or "sqlite+aiosqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = _UPLOAD_DIR

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401

PASSWORD = "correct-horse"


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine on an empty schema; everything is dropped after the test."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'labrecords.db'}"
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """A session for tests that call storage or services directly."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to open request sessions on the per-test database.
    """

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(
    client: AsyncClient,
    email: str = "alice@example.com",
    password: str = PASSWORD,
    first_name: str = "Alice",
    last_name: str = "Archer",
) -> Dict[str, Any]:
    """Register a user and return the ``{user, token}`` body."""
    resp = await client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


async def create_record(
    client: AsyncClient,
    headers: Dict[str, str],
    title: str = "Ohm's Law",
    template_type: str = "physics",
) -> Dict[str, Any]:
    resp = await client.post(
        "/api/lab-records",
        json={"title": title, "templateType": template_type},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def list_sections(client: AsyncClient, headers: Dict[str, str], record_id: str):
    resp = await client.get(f"/api/lab-records/{record_id}/sections", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest_asyncio.fixture
async def auth_headers(client: AsyncClient) -> Dict[str, str]:
    body = await register(client)
    return bearer(body["token"])


@pytest_asyncio.fixture
async def other_auth_headers(client: AsyncClient) -> Dict[str, str]:
    body = await register(client, email="bob@example.com", first_name="Bob", last_name="Baker")
    return bearer(body["token"])
