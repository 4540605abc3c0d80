"""Submission workflow endpoints for SiteTrack.

This module exposes the submission state machine over HTTP:
- Milestone submission history and creation (evidence as base64 JSON)
- Submission detail and short-lived evidence URLs
- Consultant review: approve, query, reject
- The consultant verification queue
- Administrative milestone status override
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header
from fastapi import status as http_status
from pydantic import Base64Bytes, BaseModel, Field

from sitetrack.auth import ActorContext
from sitetrack.database.models.milestone import MilestoneStatus
from sitetrack.database.models.submission import SubmissionStatus
from sitetrack.logging import get_logger
from sitetrack.storage import EvidenceFile
from sitetrack.web.deps import get_current_actor, get_session_factory, get_state_machine
from sitetrack.web.routes.projects import MilestoneResponse
from sitetrack.workflow import registry
from sitetrack.workflow.state_machine import MaterialEntry, SubmissionStateMachine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class EvidenceUpload(BaseModel):
    """An evidence file sent inline as base64."""

    file_name: str
    content_type: str = "application/octet-stream"
    content: Base64Bytes


class MaterialCreate(BaseModel):
    """A material usage line."""

    material_name: str
    quantity: Decimal
    unit: str


class SubmissionCreate(BaseModel):
    """Request schema for creating a submission."""

    work_description: str
    evidence: list[EvidenceUpload] = Field(default_factory=list)
    materials: list[MaterialCreate] = Field(default_factory=list)


class ReviewNote(BaseModel):
    """Consultant note for query and reject decisions."""

    note: str


class MilestoneStatusUpdate(BaseModel):
    """Request schema for overriding a milestone's raw status."""

    status: MilestoneStatus


class EvidenceResponse(BaseModel):
    """Evidence metadata; file contents are fetched via signed URLs."""

    id: UUID
    file_name: str
    file_type: str
    file_size: int
    created_at: Any

    model_config = {"from_attributes": True}


class MaterialResponse(BaseModel):
    """A recorded material usage line."""

    id: UUID
    material_name: str
    quantity: Decimal
    unit: str

    model_config = {"from_attributes": True}


class SubmissionResponse(BaseModel):
    """Response schema for submissions."""

    id: UUID
    milestone_id: UUID
    contractor_id: UUID
    status: SubmissionStatus
    work_description: str
    query_note: str | None
    submitted_at: datetime
    reviewed_at: datetime | None
    reviewed_by_consultant_id: UUID | None
    sequence: int
    evidence: list[EvidenceResponse]
    materials: list[MaterialResponse]

    model_config = {"from_attributes": True}


class EvidenceUrlResponse(BaseModel):
    """A signed evidence download link."""

    evidence_id: UUID
    file_name: str
    file_type: str
    file_size: int
    url: str
    expires_in: int

    model_config = {"from_attributes": True}


class QueueItemResponse(BaseModel):
    """A verification queue entry."""

    submission_id: UUID
    status: SubmissionStatus
    submitted_at: datetime
    work_description: str
    milestone_id: UUID
    milestone_title: str
    project_id: UUID
    project_title: str
    contractor_id: UUID
    contractor_name: str
    evidence_count: int

    model_config = {"from_attributes": True}


def create_submissions_router() -> APIRouter:
    """Create submissions router.

    Routes:
        PUT /milestones/{milestone_id}/status - Override raw status (admin)
        GET /milestones/{milestone_id}/submissions - Submission history
        POST /milestones/{milestone_id}/submissions - Create submission
        GET /submissions/{submission_id} - Submission detail
        GET /submissions/{submission_id}/evidence-urls - Signed evidence URLs
        POST /submissions/{submission_id}/approve - Approve
        POST /submissions/{submission_id}/query - Query
        POST /submissions/{submission_id}/reject - Reject
        GET /verification-queue - Consultant verification queue
    """
    router = APIRouter(tags=["submissions"])

    @router.put("/milestones/{milestone_id}/status", response_model=MilestoneResponse)
    async def mark_milestone_status(
        milestone_id: UUID,
        body: MilestoneStatusUpdate,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> MilestoneResponse:
        """Administratively override a milestone's raw status."""
        async with session_factory() as session:
            milestone = await registry.mark_milestone_status(
                session, actor, milestone_id, body.status
            )
        return MilestoneResponse.model_validate(milestone)

    @router.get(
        "/milestones/{milestone_id}/submissions",
        response_model=list[SubmissionResponse],
    )
    async def list_submissions(
        milestone_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[SubmissionResponse]:
        """List a milestone's submissions, newest first."""
        async with session_factory() as session:
            submissions = await machine.list_milestone_submissions(session, actor, milestone_id)
        return [SubmissionResponse.model_validate(s) for s in submissions]

    @router.post(
        "/milestones/{milestone_id}/submissions",
        response_model=SubmissionResponse,
        status_code=http_status.HTTP_201_CREATED,
    )
    async def create_submission(
        milestone_id: UUID,
        body: SubmissionCreate,
        idempotency_key: str | None = Header(default=None),
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SubmissionResponse:
        """Create a submission with inline evidence and materials."""
        async with session_factory() as session:
            submission = await machine.create_submission(
                session,
                actor,
                milestone_id,
                work_description=body.work_description,
                evidence_files=[
                    EvidenceFile(
                        file_name=e.file_name,
                        content_type=e.content_type,
                        data=e.content,
                    )
                    for e in body.evidence
                ],
                materials=[
                    MaterialEntry(
                        material_name=m.material_name,
                        quantity=m.quantity,
                        unit=m.unit,
                    )
                    for m in body.materials
                ],
                idempotency_key=idempotency_key,
            )
        return SubmissionResponse.model_validate(submission)

    @router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
    async def get_submission(
        submission_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SubmissionResponse:
        """Get a submission with evidence and materials."""
        async with session_factory() as session:
            submission = await machine.get_submission(session, actor, submission_id)
        return SubmissionResponse.model_validate(submission)

    @router.get(
        "/submissions/{submission_id}/evidence-urls",
        response_model=list[EvidenceUrlResponse],
    )
    async def evidence_urls(
        submission_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[EvidenceUrlResponse]:
        """Issue short-lived URLs for a submission's evidence files."""
        async with session_factory() as session:
            urls = await machine.get_evidence_urls(session, actor, submission_id)
        return [EvidenceUrlResponse.model_validate(u) for u in urls]

    @router.post("/submissions/{submission_id}/approve", response_model=SubmissionResponse)
    async def approve(
        submission_id: UUID,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SubmissionResponse:
        """Approve a pending submission."""
        async with session_factory() as session:
            submission = await machine.approve_submission(session, actor, submission_id)
        return SubmissionResponse.model_validate(submission)

    @router.post("/submissions/{submission_id}/query", response_model=SubmissionResponse)
    async def query(
        submission_id: UUID,
        body: ReviewNote,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SubmissionResponse:
        """Query a pending submission."""
        async with session_factory() as session:
            submission = await machine.query_submission(
                session, actor, submission_id, body.note
            )
        return SubmissionResponse.model_validate(submission)

    @router.post("/submissions/{submission_id}/reject", response_model=SubmissionResponse)
    async def reject(
        submission_id: UUID,
        body: ReviewNote,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> SubmissionResponse:
        """Reject a pending submission."""
        async with session_factory() as session:
            submission = await machine.reject_submission(
                session, actor, submission_id, body.note
            )
        return SubmissionResponse.model_validate(submission)

    @router.get("/verification-queue", response_model=list[QueueItemResponse])
    async def verification_queue(
        status: SubmissionStatus = SubmissionStatus.PENDING_APPROVAL,
        project_id: UUID | None = None,
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        machine: SubmissionStateMachine = Depends(get_state_machine),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> list[QueueItemResponse]:
        """List submissions awaiting review across the caller's projects."""
        async with session_factory() as session:
            items = await machine.get_verification_queue(
                session, actor, status=status, project_id=project_id
            )
        logger.info("verification_queue_listed", count=len(items), status=status.value)
        return [QueueItemResponse.model_validate(i) for i in items]

    return router
