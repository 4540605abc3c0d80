"""FastAPI dependencies shared by SiteTrack routers.

Application-wide collaborators live on ``app.state`` (set by create_app and
the lifespan handler); these functions hand them to route handlers. The
acting user is resolved per request from the ``X-Actor-Id`` header.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import Header, HTTPException, Request
from fastapi import status as http_status

from sitetrack.auth import ActorContext
from sitetrack.database.queries import actor as actor_queries
from sitetrack.logging import bind_actor_context, get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sitetrack.config import SiteTrackConfig
    from sitetrack.workflow.progress import ProgressAggregator
    from sitetrack.workflow.state_machine import SubmissionStateMachine

logger = get_logger(__name__)


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Dependency that retrieves session factory from app state.

    Args:
        request: FastAPI request object

    Returns:
        Session factory from app.state
    """
    return request.app.state.session_factory  # type: ignore[return-value]


def get_config(request: Request) -> SiteTrackConfig:
    """Dependency that retrieves the application config."""
    return request.app.state.config  # type: ignore[return-value]


def get_state_machine(request: Request) -> SubmissionStateMachine:
    """Dependency that retrieves the submission state machine."""
    return request.app.state.state_machine  # type: ignore[return-value]


def get_aggregator(request: Request) -> ProgressAggregator:
    """Dependency that retrieves the progress aggregator."""
    return request.app.state.aggregator  # type: ignore[return-value]


async def get_current_actor(
    request: Request,
    x_actor_id: str | None = Header(default=None),
) -> ActorContext:
    """Resolve the acting user from the ``X-Actor-Id`` header.

    The identity provider authenticates the caller upstream; SiteTrack only
    looks the id up in its actor profiles to learn the role.

    Raises:
        HTTPException: 401 if the header is missing, malformed, or names an
            unknown or inactive actor.
    """
    if not x_actor_id:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header",
        )
    try:
        actor_id = UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Malformed X-Actor-Id header",
        ) from None

    session_factory = get_session_factory(request)
    async with session_factory() as session:
        actor = await actor_queries.get_actor(session, actor_id)

    if actor is None or not actor.is_active:
        logger.warning("actor_not_recognized", actor_id=str(actor_id))
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Unknown actor",
        )

    bind_actor_context(actor_id=str(actor.id), role=actor.role.value)
    return ActorContext(actor_id=actor.id, role=actor.role)
