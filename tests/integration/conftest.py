"""Pytest fixtures for integration tests.

Provides an in-memory SQLite database, the workflow collaborators wired to
a temporary evidence directory, registered actors in each role, a staged
project, and an HTTP client for the FastAPI app.

The production system runs on PostgreSQL; SQLite keeps these tests fast and
isolated while exercising the same query functions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import AsyncGenerator, Callable
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

from sitetrack.auth import ActorContext
from sitetrack.config import SiteTrackConfig
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.base import Base
from sitetrack.storage import LocalEvidenceStore, StorageGateway
from sitetrack.web.app import create_app
from sitetrack.workflow import registry
from sitetrack.workflow.progress import ProgressAggregator
from sitetrack.workflow.registry import MilestoneDraft
from sitetrack.workflow.state_machine import SubmissionStateMachine


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite async engine with all tables.

    Yields:
        AsyncEngine sharing one connection so every session sees the same data.
    """
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
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a new async database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_config(tmp_path: Path) -> SiteTrackConfig:
    """Configuration pointing evidence storage at a temporary directory."""
    return SiteTrackConfig(
        database={"url": "sqlite+aiosqlite:///:memory:"},
        storage={
            "root_path": tmp_path / "evidence",
            "base_url": "http://test/evidence-files",
            "signing_secret": "test-secret",
            "url_ttl_seconds": 60,
        },
        web={"cors_origins": ["http://test"]},
    )


@pytest.fixture
def evidence_store(test_config: SiteTrackConfig) -> LocalEvidenceStore:
    """Filesystem evidence store rooted in tmp_path."""
    return LocalEvidenceStore(
        test_config.storage.root_path,
        test_config.storage.base_url,
        test_config.storage.signing_secret,
    )


@pytest.fixture
def state_machine(evidence_store: LocalEvidenceStore) -> SubmissionStateMachine:
    """Submission state machine using the temporary evidence store."""
    gateway = StorageGateway(evidence_store, timeout_seconds=5, max_retries=0)
    return SubmissionStateMachine(gateway, url_ttl_seconds=60)


@pytest.fixture
def aggregator() -> ProgressAggregator:
    """Progress aggregator with default staircase weights."""
    return ProgressAggregator()


async def _register(session: AsyncSession, role: ActorRole, name: str) -> ActorContext:
    actor = await registry.register_actor(session, None, role, name)
    return ActorContext(actor_id=actor.id, role=actor.role)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> ActorContext:
    """A registered admin."""
    return await _register(db_session, ActorRole.ADMIN, "Amina Bello")


@pytest_asyncio.fixture
async def consultant(db_session: AsyncSession) -> ActorContext:
    """A registered consultant."""
    return await _register(db_session, ActorRole.CONSULTANT, "Chinedu Okafor")


@pytest_asyncio.fixture
async def other_consultant(db_session: AsyncSession) -> ActorContext:
    """A consultant who supervises no project in these tests."""
    return await _register(db_session, ActorRole.CONSULTANT, "Ngozi Eze")


@pytest_asyncio.fixture
async def contractor(db_session: AsyncSession) -> ActorContext:
    """A registered contractor."""
    return await _register(db_session, ActorRole.CONTRACTOR, "Bayo Builders Ltd")


@pytest_asyncio.fixture
async def other_contractor(db_session: AsyncSession) -> ActorContext:
    """A contractor outside the staged project's section."""
    return await _register(db_session, ActorRole.CONTRACTOR, "Kano Civil Works")


@dataclass
class StagedProject:
    """A project with a consultant, one section and an assigned contractor.

    Only ids are kept; ORM instances expire when a failing call rolls back.
    """

    project_id: UUID
    milestone_ids: list[UUID]
    section_id: UUID


@pytest_asyncio.fixture
async def staged_project(
    db_session: AsyncSession,
    admin: ActorContext,
    consultant: ActorContext,
    contractor: ActorContext,
) -> StagedProject:
    """Create a three-milestone project; the first two form a section.

    The consultant supervises the project and the contractor works the
    section. The third milestone stays unassigned.
    """
    created = await registry.create_project(
        db_session,
        admin,
        title="ICT Center",
        total_budget="1000000",
        milestones=[
            MilestoneDraft(title="Foundation", due_date=date(2026, 3, 1), budget="300000"),
            MilestoneDraft(title="Superstructure", due_date=date(2026, 6, 1), budget="400000"),
            MilestoneDraft(title="Finishing", due_date=date(2026, 9, 1), budget="300000"),
        ],
        location="Abuja",
    )
    project = created.project
    await registry.assign_consultant(db_session, admin, project.id, consultant.actor_id)
    section = await registry.create_section(
        db_session,
        consultant,
        project.id,
        "Civil Works",
        [created.milestones[0].id, created.milestones[1].id],
    )
    await registry.assign_contractor(
        db_session, consultant, section.section.id, contractor.actor_id
    )
    return StagedProject(
        project_id=project.id,
        milestone_ids=[m.id for m in created.milestones],
        section_id=section.section.id,
    )


@pytest_asyncio.fixture
async def api_client(
    test_config: SiteTrackConfig,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app, bound to the test database.

    ASGITransport does not run the lifespan, so the session factory is
    placed on app.state directly.
    """
    app = create_app(test_config)
    app.state.session_factory = session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> Callable[[ActorContext], dict[str, str]]:
    """Build request headers identifying an actor."""

    def build(actor: ActorContext) -> dict[str, str]:
        return {"X-Actor-Id": str(actor.actor_id)}

    return build
