"""Pytest fixtures for E2E tests.

Runs the full SiteTrack application over HTTP against an in-memory SQLite
database. Only the first admin is created directly, the way an operator
bootstraps a deployment with ``sitetrack actor create``; everything else
goes through the API.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator, Awaitable, Callable
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from sitetrack.config import SiteTrackConfig
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.base import Base
from sitetrack.web.app import create_app
from sitetrack.workflow import registry


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"


@pytest_asyncio.fixture
async def e2e_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite async engine for E2E testing."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def e2e_session_factory(e2e_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=e2e_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def e2e_config(tmp_path: Path) -> SiteTrackConfig:
    return SiteTrackConfig(
        database={"url": "sqlite+aiosqlite:///:memory:"},
        storage={
            "root_path": tmp_path / "evidence",
            "base_url": "http://test/evidence-files",
            "signing_secret": "e2e-secret",
        },
    )


@pytest_asyncio.fixture
async def e2e_client(
    e2e_config: SiteTrackConfig,
    e2e_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for an app wired to the E2E database."""
    app = create_app(e2e_config)
    app.state.session_factory = e2e_session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin_id(e2e_session_factory: async_sessionmaker[AsyncSession]) -> UUID:
    """Bootstrap the first admin outside the API."""
    async with e2e_session_factory() as session:
        actor = await registry.register_actor(session, None, ActorRole.ADMIN, "Amina Bello")
    return actor.id


@pytest_asyncio.fixture
async def register(
    e2e_client: AsyncClient, admin_id: UUID
) -> Callable[[str, str], Awaitable[UUID]]:
    """Register an actor through the API as the bootstrap admin."""

    async def _register(role: str, full_name: str) -> UUID:
        response = await e2e_client.post(
            "/actors/",
            json={"role": role, "full_name": full_name},
            headers={"X-Actor-Id": str(admin_id)},
        )
        assert response.status_code == 201, response.text
        return UUID(response.json()["id"])

    return _register
