"""Unit tests for FastAPI application setup.

Tests cover:
- Application factory wiring of config and workflow collaborators
- CORS and request logging middleware registration
- Health and readiness endpoints
- Mapping of workflow errors to HTTP responses
- X-Actor-Id resolution
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from httpx import ASGITransport, AsyncClient

from sitetrack.config import SiteTrackConfig, WebConfig
from sitetrack.database.models.actor import ActorRole
from sitetrack.errors import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from sitetrack.web.app import create_app
from sitetrack.web.middleware import RequestLoggingMiddleware
from sitetrack.workflow.progress import ProgressAggregator
from sitetrack.workflow.state_machine import SubmissionStateMachine


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def app_with_mock_db() -> FastAPI:
    app = create_app()
    app.state.session_factory = MagicMock()
    return app


class TestCreateApp:
    """Test application factory function."""

    def test_returns_fastapi_instance(self) -> None:
        app = create_app()
        assert isinstance(app, FastAPI)
        assert app.title == "SiteTrack"

    def test_app_state_wiring(self) -> None:
        config = SiteTrackConfig()
        app = create_app(config)
        assert app.state.config is config
        assert app.state.session_factory is None
        assert isinstance(app.state.state_machine, SubmissionStateMachine)
        assert isinstance(app.state.aggregator, ProgressAggregator)
        assert app.state.state_machine.url_ttl_seconds == config.storage.url_ttl_seconds

    def test_middleware_registered(self) -> None:
        origins = ["https://monitor.example.gov.ng"]
        app = create_app(SiteTrackConfig(web=WebConfig(cors_origins=origins)))

        classes = [m.cls for m in app.user_middleware]
        assert RequestLoggingMiddleware in classes
        cors = next(m for m in app.user_middleware if m.cls == CORSMiddleware)
        assert cors.kwargs["allow_origins"] == origins


class TestHealthEndpoints:
    """Test liveness and readiness checks."""

    @pytest.mark.asyncio
    async def test_health_ok(self, app_with_mock_db: FastAPI) -> None:
        async with _client(app_with_mock_db) as client:
            response = await client.get("/health/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "X-Correlation-ID" in response.headers

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, app_with_mock_db: FastAPI) -> None:
        async with _client(app_with_mock_db) as client:
            response = await client.get("/health/", headers={"X-Correlation-ID": "corr-1"})
        assert response.headers["X-Correlation-ID"] == "corr-1"

    @pytest.mark.asyncio
    async def test_readiness_connected(self) -> None:
        app = create_app()
        mock_session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=mock_session)
        factory.return_value.__aexit__ = AsyncMock(return_value=None)
        app.state.session_factory = factory

        async with _client(app) as client:
            response = await client.get("/health/ready")
        assert response.json() == {"status": "ok", "database": "connected"}

    @pytest.mark.asyncio
    async def test_readiness_disconnected(self) -> None:
        app = create_app()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(side_effect=OSError("refused"))
        factory.return_value.__aexit__ = AsyncMock(return_value=None)
        app.state.session_factory = factory

        async with _client(app) as client:
            response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "unhealthy", "database": "disconnected"}


class TestErrorMapping:
    """Test that workflow errors render with their status codes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status_code,code",
        [
            (ValidationError("Evidence is required"), 422, "validation_error"),
            (NotFoundError("Project", "p-1"), 404, "not_found"),
            (AuthorizationError("Only consultants review"), 403, "forbidden"),
            (ConflictError("Submission already reviewed"), 409, "conflict"),
            (DependencyError("evidence_store", "Upload failed"), 503, "dependency_error"),
        ],
    )
    async def test_error_response(self, app_with_mock_db, error, status_code, code) -> None:
        @app_with_mock_db.get("/boom")
        async def boom() -> None:
            raise error

        async with _client(app_with_mock_db) as client:
            response = await client.get("/boom")

        assert response.status_code == status_code
        body = response.json()
        assert body["error"] == code
        assert body["message"] == error.message
        assert body["details"] == error.details


class TestActorResolution:
    """Test the X-Actor-Id header dependency."""

    @pytest.mark.asyncio
    async def test_missing_header_is_401(self, app_with_mock_db: FastAPI) -> None:
        async with _client(app_with_mock_db) as client:
            response = await client.get("/projects/")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_header_is_401(self, app_with_mock_db: FastAPI) -> None:
        async with _client(app_with_mock_db) as client:
            response = await client.get("/projects/", headers={"X-Actor-Id": "nobody"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "actor",
        [None, SimpleNamespace(id=uuid4(), role=ActorRole.ADMIN, is_active=False)],
    )
    async def test_unknown_or_inactive_actor_is_401(self, app_with_mock_db, actor) -> None:
        with patch(
            "sitetrack.web.deps.actor_queries.get_actor", AsyncMock(return_value=actor)
        ):
            async with _client(app_with_mock_db) as client:
                response = await client.get(
                    "/projects/", headers={"X-Actor-Id": str(uuid4())}
                )
        assert response.status_code == 401
