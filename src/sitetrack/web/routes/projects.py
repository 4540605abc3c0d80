"""Project endpoints for SiteTrack.

This module provides REST API endpoints for projects and their registry
edges:
- List visible projects and create projects with their milestone plan
- Change project status and assign the supervising consultant
- Read and extend the contractor pool
- Read milestones, progress rollups and the budget summary

Workflow errors raised by the registry propagate to the application's
SiteTrackError handler.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi import status as http_status
from pydantic import BaseModel, Field

from sitetrack.auth import ActorContext
from sitetrack.config import SiteTrackConfig
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.milestone import MilestoneStatus
from sitetrack.database.models.project import ProjectStatus
from sitetrack.database.models.submission import SubmissionStatus
from sitetrack.logging import get_logger
from sitetrack.web.deps import (
    get_aggregator,
    get_config,
    get_current_actor,
    get_session_factory,
)
from sitetrack.workflow import registry
from sitetrack.workflow.progress import ProgressAggregator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class MilestoneCreate(BaseModel):
    """A milestone in a new project's plan."""

    title: str
    due_date: date | None = None
    budget: Decimal = Decimal("0")
    description: str | None = None
    sort_order: int | None = None


class ProjectCreate(BaseModel):
    """Request schema for creating a project.

    Attributes:
        title: Project title
        total_budget: Approved budget
        currency: ISO 4217 code; defaults to the configured currency
        milestones: Ordered milestone plan
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    location: str | None = None
    total_budget: Decimal = Field(..., ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    milestones: list[MilestoneCreate] = Field(default_factory=list)


class ProjectStatusUpdate(BaseModel):
    """Request schema for changing project status."""

    status: ProjectStatus


class ConsultantAssign(BaseModel):
    """Request schema for assigning the project consultant."""

    consultant_id: UUID


class ContractorAdd(BaseModel):
    """Request schema for adding a contractor to the pool."""

    contractor_id: UUID


class ProjectResponse(BaseModel):
    """Response schema for project data."""

    id: UUID
    title: str
    description: str | None
    location: str | None
    total_budget: Decimal
    currency: str
    status: ProjectStatus
    consultant_id: UUID | None
    created_by: UUID | None
    created_at: Any
    updated_at: Any

    model_config = {"from_attributes": True}


class MilestoneResponse(BaseModel):
    """Response schema for milestone rows."""

    id: UUID
    project_id: UUID
    title: str
    description: str | None
    sort_order: int
    due_date: date
    budget: Decimal
    status: MilestoneStatus | None

    model_config = {"from_attributes": True}


class ProjectCreatedResponse(BaseModel):
    """Response schema for project creation."""

    project: ProjectResponse
    milestones: list[MilestoneResponse]
    allocated_budget: Decimal
    budget_warning: str | None


class ContractorResponse(BaseModel):
    """A contractor in a project's pool."""

    id: UUID
    full_name: str
    email: str | None
    role: ActorRole

    model_config = {"from_attributes": True}


class MilestoneProgressResponse(BaseModel):
    """Derived view of one milestone."""

    milestone_id: UUID
    title: str
    sort_order: int
    budget: Decimal
    raw_status: MilestoneStatus | None
    latest_submission_status: SubmissionStatus | None
    status: MilestoneStatus
    progress: int
    section_id: UUID | None

    model_config = {"from_attributes": True}


class SectionProgressResponse(BaseModel):
    """Derived view of a section."""

    section_id: UUID
    name: str
    contractor_id: UUID | None
    status: MilestoneStatus
    completion_percentage: int
    progress_percentage: int
    milestones: list[MilestoneProgressResponse]

    model_config = {"from_attributes": True}


class ProjectProgressResponse(BaseModel):
    """Derived view of a project with section groups."""

    project_id: UUID
    status: MilestoneStatus
    completion_percentage: int
    progress_percentage: int
    milestone_count: int
    sections: list[SectionProgressResponse]
    unassigned: list[MilestoneProgressResponse]

    model_config = {"from_attributes": True}


class BudgetResponse(BaseModel):
    """Budget position of a project."""

    project_id: UUID
    currency: str
    total_budget: Decimal
    allocated: Decimal
    approved_value: Decimal
    pending_value: Decimal
    remaining: Decimal
    over_allocated: bool

    model_config = {"from_attributes": True}


def create_projects_router() -> APIRouter:
    """Create projects router.

    Routes:
        GET /projects/ - List visible projects
        POST /projects/ - Create project with milestones
        GET /projects/{project_id} - Get project
        PUT /projects/{project_id}/status - Change project status
        PUT /projects/{project_id}/consultant - Assign consultant
        GET /projects/{project_id}/contractors - List contractor pool
        POST /projects/{project_id}/contractors - Add to contractor pool
        GET /projects/{project_id}/milestones - List milestones
        GET /projects/{project_id}/milestones/unassigned - Unmapped milestones
        GET /projects/{project_id}/progress - Progress report
        GET /projects/{project_id}/budget - Budget summary
    """
    router = APIRouter(prefix="/projects", tags=["projects"])

    @router.get("/", response_model=list[ProjectResponse])
    async def list_projects(
        status: ProjectStatus | None = None,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[ProjectResponse]:
        """List the projects visible to the caller."""
        async with session_factory() as session:
            projects = await registry.list_projects(session, actor, status_filter=status)

        logger.info("projects_listed", count=len(projects), status_filter=status)
        return [ProjectResponse.model_validate(p) for p in projects]

    @router.post(
        "/",
        response_model=ProjectCreatedResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def create_project(
        body: ProjectCreate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        config: SiteTrackConfig = Depends(get_config),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> ProjectCreatedResponse:
        """Create a project and its milestone plan."""
        drafts = [
            registry.MilestoneDraft(
                title=m.title,
                due_date=m.due_date,
                budget=m.budget,
                description=m.description,
                sort_order=m.sort_order,
            )
            for m in body.milestones
        ]
        async with session_factory() as session:
            created = await registry.create_project(
                session,
                actor,
                title=body.title,
                total_budget=body.total_budget,
                milestones=drafts,
                description=body.description,
                location=body.location,
                currency=body.currency or config.workflow.default_currency,
                strict_budget=config.workflow.strict_budget,
            )

        return ProjectCreatedResponse(
            project=ProjectResponse.model_validate(created.project),
            milestones=[MilestoneResponse.model_validate(m) for m in created.milestones],
            allocated_budget=created.allocated_budget,
            budget_warning=created.budget_warning,
        )

    @router.get("/{project_id}", response_model=ProjectResponse)
    async def get_project(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> ProjectResponse:
        """Get a project by ID."""
        async with session_factory() as session:
            project = await registry.get_project(session, actor, project_id)
        return ProjectResponse.model_validate(project)

    @router.put("/{project_id}/status", response_model=ProjectResponse)
    async def update_project_status(
        project_id: UUID,
        body: ProjectStatusUpdate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> ProjectResponse:
        """Change a project's lifecycle status."""
        async with session_factory() as session:
            project = await registry.update_project_status(
                session, actor, project_id, body.status
            )
        return ProjectResponse.model_validate(project)

    @router.put("/{project_id}/consultant", response_model=ProjectResponse)
    async def assign_consultant(
        project_id: UUID,
        body: ConsultantAssign,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> ProjectResponse:
        """Assign the project's supervising consultant."""
        async with session_factory() as session:
            project = await registry.assign_consultant(
                session, actor, project_id, body.consultant_id
            )
        return ProjectResponse.model_validate(project)

    @router.get("/{project_id}/contractors", response_model=list[ContractorResponse])
    async def list_contractors(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[ContractorResponse]:
        """List the project's contractor pool."""
        async with session_factory() as session:
            contractors = await registry.get_project_contractors(session, actor, project_id)
        return [ContractorResponse.model_validate(c) for c in contractors]

    @router.post("/{project_id}/contractors", response_model=dict[str, bool])
    async def add_contractor(
        project_id: UUID,
        body: ContractorAdd,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> dict[str, bool]:
        """Add a contractor to the project's pool."""
        async with session_factory() as session:
            added = await registry.add_project_contractor(
                session, actor, project_id, body.contractor_id
            )
        return {"added": added}

    @router.get("/{project_id}/milestones", response_model=list[MilestoneResponse])
    async def list_milestones(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[MilestoneResponse]:
        """List the project's milestones in plan order."""
        async with session_factory() as session:
            milestones = await registry.list_milestones(session, actor, project_id)
        return [MilestoneResponse.model_validate(m) for m in milestones]

    @router.get(
        "/{project_id}/milestones/unassigned",
        response_model=list[MilestoneResponse],
    )
    async def list_unassigned_milestones(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[MilestoneResponse]:
        """List milestones not mapped to any section."""
        async with session_factory() as session:
            milestones = await registry.list_unassigned_milestones(session, actor, project_id)
        return [MilestoneResponse.model_validate(m) for m in milestones]

    @router.get("/{project_id}/progress", response_model=ProjectProgressResponse)
    async def project_progress(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        aggregator: ProgressAggregator = Depends(get_aggregator),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> ProjectProgressResponse:
        """Project rollup with sections and the unassigned bucket."""
        async with session_factory() as session:
            report = await aggregator.project_progress(session, actor, project_id)
        return ProjectProgressResponse.model_validate(report)

    @router.get("/{project_id}/budget", response_model=BudgetResponse)
    async def budget_summary(
        project_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        aggregator: ProgressAggregator = Depends(get_aggregator),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> BudgetResponse:
        """Allocated, approved and pending value for the project."""
        async with session_factory() as session:
            summary = await aggregator.budget_summary(session, actor, project_id)
        return BudgetResponse.model_validate(summary)

    return router
