"""Actor profile endpoints for SiteTrack.

Identity is owned by an external provider; these endpoints keep the local
profile table that maps actor ids to roles and display names.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi import status as http_status
from pydantic import BaseModel, Field

from sitetrack.auth import ActorContext, require_role
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.queries import actor as actor_queries
from sitetrack.logging import get_logger
from sitetrack.web.deps import get_current_actor, get_session_factory
from sitetrack.workflow import registry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class ActorCreate(BaseModel):
    """Request schema for registering an actor."""

    role: ActorRole
    full_name: str = Field(..., min_length=1, max_length=255)
    email: str | None = None
    id: UUID | None = Field(default=None, description="Identity-provider id to reuse")


class ActorResponse(BaseModel):
    """Response schema for actor profiles."""

    id: UUID
    role: ActorRole
    full_name: str
    email: str | None
    is_active: bool
    created_at: Any

    model_config = {"from_attributes": True}


def create_actors_router() -> APIRouter:
    """Create actors router.

    Routes:
        GET /actors/ - List actor profiles (admin)
        POST /actors/ - Register an actor (admin)
    """
    router = APIRouter(prefix="/actors", tags=["actors"])

    @router.get("/", response_model=list[ActorResponse])
    async def list_actors(
        role: ActorRole | None = None,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[ActorResponse]:
        """List actor profiles, optionally filtered by role."""
        require_role(actor, ActorRole.ADMIN, action="list actors")
        async with session_factory() as session:
            actors = await actor_queries.list_actors(session, role_filter=role)
        return [ActorResponse.model_validate(a) for a in actors]

    @router.post(
        "/",
        response_model=ActorResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def register_actor(
        body: ActorCreate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> ActorResponse:
        """Register an actor profile."""
        async with session_factory() as session:
            created = await registry.register_actor(
                session,
                actor,
                role=body.role,
                full_name=body.full_name,
                email=body.email,
                actor_id=body.id,
            )
        return ActorResponse.model_validate(created)

    return router
