"""FastAPI application factory for SiteTrack.

This module provides the main application factory function that creates
and configures a FastAPI application with:
- CORS middleware for cross-origin requests
- Request logging middleware with correlation IDs
- Database connection lifecycle management
- Workflow collaborators (state machine, progress aggregator, evidence store)
- One exception handler mapping SiteTrackError subclasses to HTTP statuses

Example usage:
    >>> from sitetrack.config import SiteTrackConfig
    >>> from sitetrack.web.app import create_app
    >>>
    >>> app = create_app(SiteTrackConfig())
    >>>
    >>> import uvicorn
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sitetrack import __version__
from sitetrack.config import SiteTrackConfig
from sitetrack.database.connection import get_engine, get_session_factory
from sitetrack.errors import SiteTrackError
from sitetrack.logging import get_logger
from sitetrack.storage import create_local_gateway
from sitetrack.web.middleware import RequestLoggingMiddleware
from sitetrack.web.routes.actors import create_actors_router
from sitetrack.web.routes.comments import create_comments_router
from sitetrack.web.routes.dashboard import create_dashboard_router
from sitetrack.web.routes.evidence import create_evidence_router
from sitetrack.web.routes.health import create_health_router
from sitetrack.web.routes.projects import create_projects_router
from sitetrack.web.routes.sections import create_sections_router
from sitetrack.web.routes.submissions import create_submissions_router
from sitetrack.workflow.progress import ProgressAggregator
from sitetrack.workflow.state_machine import SubmissionStateMachine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle with database connections.

    Creates the engine and session factory on startup unless one was
    already placed on app.state, and disposes the engine on shutdown.

    Args:
        app: FastAPI application instance

    Yields:
        None after startup, cleans up on context exit
    """
    config: SiteTrackConfig = app.state.config

    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)

    engine = None
    if getattr(app.state, "session_factory", None) is None:
        engine = get_engine(config.database)
        app.state.engine = engine
        app.state.session_factory = get_session_factory(engine)
        logger.info(
            "database_pool_initialized",
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
        )

    yield

    logger.info("app_shutdown_begin")
    if engine is not None:
        await engine.dispose()
        logger.info("database_pool_disposed")


async def handle_sitetrack_error(request: Request, exc: SiteTrackError) -> JSONResponse:
    """Render a workflow error as a JSON response with its status code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_rejected",
        path=request.url.path,
        error_code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message, "details": exc.details},
    )


def create_app(config: SiteTrackConfig | None = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Args:
        config: Optional SiteTrackConfig. If None, creates default config.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = SiteTrackConfig()

    app = FastAPI(
        title="SiteTrack",
        version=__version__,
        description="Milestone verification for infrastructure project monitoring",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.session_factory = None

    evidence_store, storage_gateway = create_local_gateway(config.storage)
    app.state.evidence_store = evidence_store
    app.state.state_machine = SubmissionStateMachine(
        storage_gateway,
        url_ttl_seconds=config.storage.url_ttl_seconds,
    )
    app.state.aggregator = ProgressAggregator(config.workflow.progress_weights)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(SiteTrackError, handle_sitetrack_error)  # type: ignore[arg-type]

    app.include_router(create_health_router())
    app.include_router(create_actors_router())
    app.include_router(create_projects_router())
    app.include_router(create_sections_router())
    app.include_router(create_comments_router())
    app.include_router(create_submissions_router())
    app.include_router(create_dashboard_router())
    app.include_router(create_evidence_router())

    logger.info(
        "app_created",
        cors_origins=config.web.cors_origins,
        version=__version__,
    )

    return app
