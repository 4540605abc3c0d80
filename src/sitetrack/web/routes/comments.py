"""Project comment endpoints for SiteTrack."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi import status as http_status
from pydantic import BaseModel

from sitetrack.auth import ActorContext
from sitetrack.database.models.actor import ActorRole
from sitetrack.logging import get_logger
from sitetrack.web.deps import get_current_actor, get_session_factory
from sitetrack.workflow import comments

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class CommentCreate(BaseModel):
    """Request schema for posting a comment."""

    body: str


class CommentResponse(BaseModel):
    """A comment with author details when they could be resolved."""

    id: UUID
    project_id: UUID
    author_id: UUID
    body: str
    sequence: int
    created_at: Any
    author_name: str | None = None
    author_role: ActorRole | None = None

    model_config = {"from_attributes": True}


def create_comments_router() -> APIRouter:
    """Create comments router.

    Routes:
        GET /projects/{project_id}/comments - List comments, newest first
        POST /projects/{project_id}/comments - Post a comment
    """
    router = APIRouter(prefix="/projects", tags=["comments"])

    @router.get("/{project_id}/comments", response_model=list[CommentResponse])
    async def list_comments(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[CommentResponse]:
        """List a project's comments, newest first."""
        async with session_factory() as session:
            views = await comments.list_comments(session, actor, project_id)
        return [CommentResponse.model_validate(v) for v in views]

    @router.post(
        "/{project_id}/comments",
        response_model=CommentResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def add_comment(
        project_id: UUID,
        body: CommentCreate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> CommentResponse:
        """Post a comment to a project."""
        async with session_factory() as session:
            comment = await comments.add_comment(session, actor, project_id, body.body)
        response = CommentResponse.model_validate(comment)
        response.author_role = actor.role
        return response

    return router
