"""Section endpoints for SiteTrack.

Sections group a project's milestones into work packages, each worked by
one contractor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi import status as http_status
from pydantic import BaseModel, Field

from sitetrack.auth import ActorContext
from sitetrack.logging import get_logger
from sitetrack.web.deps import get_aggregator, get_current_actor, get_session_factory
from sitetrack.web.routes.projects import SectionProgressResponse
from sitetrack.workflow import notices, registry
from sitetrack.workflow.progress import ProgressAggregator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class SectionCreate(BaseModel):
    """Request schema for creating a section."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    milestone_ids: list[UUID] = Field(default_factory=list)


class SectionResponse(BaseModel):
    """Response schema for section rows."""

    id: UUID
    project_id: UUID
    name: str
    description: str | None
    created_at: Any

    model_config = {"from_attributes": True}


class SectionCreatedResponse(BaseModel):
    """Response schema for section creation."""

    section: SectionResponse
    milestone_ids: list[UUID]


class ContractorAssign(BaseModel):
    """Request schema for assigning a section contractor."""

    contractor_id: UUID


class AssignmentResponse(BaseModel):
    """Outcome of a contractor assignment."""

    section_id: UUID
    contractor_id: UUID
    previous_contractor_id: UUID | None
    changed: bool

    model_config = {"from_attributes": True}


class NoticeCreate(BaseModel):
    """Request schema for a section notice."""

    title: str
    message: str


class NoticeResponse(BaseModel):
    """A queued section notice."""

    id: UUID
    event_type: str
    recipient_id: UUID | None
    payload: dict[str, Any]

    model_config = {"from_attributes": True}


def create_sections_router() -> APIRouter:
    """Create sections router.

    Routes:
        GET /projects/{project_id}/sections - List sections
        POST /projects/{project_id}/sections - Create section
        PUT /sections/{section_id}/contractor - Assign contractor
        GET /sections/{section_id}/progress - Section progress
        POST /sections/{section_id}/notices - Notify section contractor
    """
    router = APIRouter(tags=["sections"])

    @router.get("/projects/{project_id}/sections", response_model=list[SectionResponse])
    async def list_sections(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[SectionResponse]:
        """List a project's sections."""
        async with session_factory() as session:
            sections = await registry.list_sections(session, actor, project_id)
        return [SectionResponse.model_validate(s) for s in sections]

    @router.post(
        "/projects/{project_id}/sections",
        response_model=SectionCreatedResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def create_section(
        project_id: UUID,
        body: SectionCreate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SectionCreatedResponse:
        """Create a section and map milestones to it."""
        async with session_factory() as session:
            created = await registry.create_section(
                session,
                actor,
                project_id,
                name=body.name,
                milestone_ids=body.milestone_ids,
                description=body.description,
            )
        return SectionCreatedResponse(
            section=SectionResponse.model_validate(created.section),
            milestone_ids=created.milestone_ids,
        )

    @router.put("/sections/{section_id}/contractor", response_model=AssignmentResponse)
    async def assign_contractor(
        section_id: UUID,
        body: ContractorAssign,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> AssignmentResponse:
        """Assign or replace the section's contractor."""
        async with session_factory() as session:
            assignment = await registry.assign_contractor(
                session, actor, section_id, body.contractor_id
            )
        return AssignmentResponse.model_validate(assignment)

    @router.get("/sections/{section_id}/progress", response_model=SectionProgressResponse)
    async def section_progress(
        section_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        aggregator: ProgressAggregator = Depends(get_aggregator),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SectionProgressResponse:
        """Status and progress over the section's mapped milestones."""
        async with session_factory() as session:
            report = await aggregator.section_progress(session, actor, section_id)
        return SectionProgressResponse.model_validate(report)

    @router.post(
        "/sections/{section_id}/notices",
        response_model=NoticeResponse,
        status_code=http_status.HTTP_202_ACCEPTED,
    )
    async def send_notice(
        section_id: UUID,
        body: NoticeCreate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> NoticeResponse:
        """Queue a notice for the section's contractor."""
        async with session_factory() as session:
            event = await notices.send_section_notice(
                session, actor, section_id, body.title, body.message
            )
        return NoticeResponse.model_validate(event)

    return router
