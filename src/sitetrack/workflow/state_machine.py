"""Submission state machine for SiteTrack.

This module implements the milestone submission lifecycle: a contractor
creates a submission with evidence and materials, and the project's
consultant approves, queries or rejects it. A queried or rejected milestone
is resubmitted by creating a new submission; reviewed submissions are never
reopened, so the full history is retained.

Each mutating operation runs as one unit of work. The submission row, its
evidence and material rows, the milestone's raw status and the outbox event
are committed together or not at all. Reviews use a status-guarded UPDATE so
that only the first of two racing reviewers succeeds.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.auth import ActorContext, require_role
from sitetrack.database.connection import unit_of_work
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.base import utcnow
from sitetrack.database.models.milestone import Milestone, MilestoneStatus
from sitetrack.database.models.notification import EventType
from sitetrack.database.models.project import Project
from sitetrack.database.models.submission import (
    Evidence,
    MaterialUsage,
    Submission,
    SubmissionStatus,
)
from sitetrack.database.queries import actor as actor_queries
from sitetrack.database.queries import milestone as milestone_queries
from sitetrack.database.queries import notification as notification_queries
from sitetrack.database.queries import project as project_queries
from sitetrack.database.queries import section as section_queries
from sitetrack.database.queries import submission as submission_queries
from sitetrack.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from sitetrack.storage import EvidenceFile, StorageGateway, evidence_path
from sitetrack.workflow import registry

logger = structlog.get_logger(__name__)

UNKNOWN_CONTRACTOR = "Unknown Contractor"


class InvalidTransitionError(ConflictError):
    """Raised when a submission cannot move to the requested status.

    Attributes:
        current: The submission's current status.
        target: The attempted target status.
        submission_id: The submission that failed to transition.
    """

    def __init__(
        self,
        current: SubmissionStatus,
        target: SubmissionStatus,
        submission_id: str | None = None,
    ) -> None:
        self.current = current
        self.target = target
        self.submission_id = submission_id
        msg = f"Invalid transition from {current.value} to {target.value}"
        if submission_id:
            msg += f" for submission {submission_id}"
        super().__init__(
            msg,
            {"current": current.value, "target": target.value, "submission_id": submission_id},
        )


# Authoritative state machine definition
VALID_TRANSITIONS: dict[SubmissionStatus, set[SubmissionStatus]] = {
    SubmissionStatus.PENDING_APPROVAL: {
        SubmissionStatus.APPROVED,
        SubmissionStatus.QUERIED,
        SubmissionStatus.REJECTED,
    },
    SubmissionStatus.APPROVED: set(),  # Terminal for this submission
    SubmissionStatus.QUERIED: set(),  # Resubmit with a new submission
    SubmissionStatus.REJECTED: set(),
}


def validate_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    """Validate if a submission state transition is allowed.

    Args:
        current: Current submission status.
        target: Target submission status.

    Returns:
        True if the transition is valid according to VALID_TRANSITIONS.
    """
    return target in VALID_TRANSITIONS.get(current, set())


@dataclass
class MaterialEntry:
    """Caller-supplied material usage for a submission."""

    material_name: str
    quantity: Any
    unit: str


@dataclass
class EvidenceUrl:
    """A short-lived download link for one evidence file."""

    evidence_id: UUID
    file_name: str
    file_type: str
    file_size: int
    url: str
    expires_in: int


@dataclass
class QueueItem:
    """A submission awaiting (or past) consultant review."""

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


# Review outcome per target status: milestone raw status and outbox event
_REVIEW_EFFECTS: dict[SubmissionStatus, tuple[MilestoneStatus, EventType]] = {
    SubmissionStatus.APPROVED: (MilestoneStatus.COMPLETED, EventType.SUBMISSION_APPROVED),
    SubmissionStatus.QUERIED: (MilestoneStatus.QUERIED, EventType.SUBMISSION_QUERIED),
    SubmissionStatus.REJECTED: (MilestoneStatus.IN_PROGRESS, EventType.SUBMISSION_REJECTED),
}


def _validate_materials(materials: list[MaterialEntry]) -> list[MaterialUsage]:
    rows = []
    for index, entry in enumerate(materials):
        if not entry.material_name or not entry.material_name.strip():
            raise ValidationError(f"Material {index + 1} is missing a name", {"index": index})
        if not entry.unit or not entry.unit.strip():
            raise ValidationError(
                f"Material '{entry.material_name}' is missing a unit", {"index": index}
            )
        try:
            quantity = Decimal(str(entry.quantity))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(
                f"Material '{entry.material_name}' quantity must be numeric",
                {"index": index},
            ) from e
        if not quantity.is_finite() or quantity <= 0:
            raise ValidationError(
                f"Material '{entry.material_name}' quantity must be positive",
                {"index": index},
            )
        rows.append(
            MaterialUsage(
                material_name=entry.material_name.strip(),
                quantity=quantity,
                unit=entry.unit.strip(),
            )
        )
    return rows


def _validate_evidence(files: list[EvidenceFile]) -> None:
    for index, evidence in enumerate(files):
        if not evidence.file_name or not evidence.file_name.strip():
            raise ValidationError(f"Evidence file {index + 1} has no name", {"index": index})
        if not evidence.data:
            raise ValidationError(
                f"Evidence file '{evidence.file_name}' is empty", {"index": index}
            )


class SubmissionStateMachine:
    """Manages submission creation and review with their side effects.

    This class handles:
    - Authorization of contractors and consultants against assignments
    - Validation of transitions against VALID_TRANSITIONS
    - Evidence upload ahead of the submission write
    - Milestone raw status and outbox events in the same transaction
    - Signed evidence URLs and the consultant verification queue
    """

    def __init__(self, storage: StorageGateway, url_ttl_seconds: int = 60) -> None:
        """Initialize the submission state machine.

        Args:
            storage: Gateway to the evidence blob store.
            url_ttl_seconds: Lifetime of signed evidence URLs.
        """
        self.storage = storage
        self.url_ttl_seconds = url_ttl_seconds
        self.logger = logger.bind(component="SubmissionStateMachine")

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _ensure_contractor_may_submit(
        self,
        session: AsyncSession,
        actor: ActorContext,
        milestone: Milestone,
    ) -> None:
        section_id = await section_queries.get_section_for_milestone(session, milestone.id)
        if section_id is not None:
            assignment = await section_queries.get_assignment(session, section_id)
            if assignment is None or assignment.contractor_id != actor.actor_id:
                raise AuthorizationError(
                    "Only the contractor assigned to this section may submit",
                    {"milestone_id": str(milestone.id), "section_id": str(section_id)},
                )
            return

        if not await project_queries.is_in_pool(session, milestone.project_id, actor.actor_id):
            raise AuthorizationError(
                "Only contractors on this project may submit",
                {"milestone_id": str(milestone.id)},
            )

    async def create_submission(
        self,
        session: AsyncSession,
        actor: ActorContext,
        milestone_id: UUID,
        work_description: str,
        evidence_files: list[EvidenceFile] | None = None,
        materials: list[MaterialEntry] | None = None,
        idempotency_key: str | None = None,
    ) -> Submission:
        """Create a submission claiming a milestone's work is done.

        Evidence files are stored before any row is written; a storage
        failure aborts the call with nothing persisted.

        Args:
            session: Database session for the transaction.
            actor: Submitting contractor.
            milestone_id: Milestone being claimed.
            work_description: Description of the work done.
            evidence_files: Evidence payloads to store.
            materials: Material usage entries.
            idempotency_key: Client key; a repeated key returns the earlier
                submission instead of creating another.

        Returns:
            The PENDING_APPROVAL submission.

        Raises:
            AuthorizationError: If the actor may not submit for the milestone.
            ValidationError: For an empty description, material or evidence.
            ConflictError: If the milestone is completed or already pending.
            DependencyError: If the evidence store fails.
        """
        require_role(actor, ActorRole.CONTRACTOR, action="create submissions")

        evidence_files = evidence_files or []
        if not work_description or not work_description.strip():
            raise ValidationError("Work description is required")
        material_rows = _validate_materials(materials or [])
        _validate_evidence(evidence_files)

        if idempotency_key:
            existing = await submission_queries.find_by_idempotency_key(
                session, actor.actor_id, idempotency_key
            )
            if existing is not None:
                if existing.milestone_id != milestone_id:
                    raise ConflictError(
                        "Idempotency key was already used for another milestone",
                        {"idempotency_key": idempotency_key},
                    )
                self.logger.info(
                    "submission_idempotent_replay",
                    submission_id=str(existing.id),
                    milestone_id=str(milestone_id),
                )
                return existing

        try:
            async with unit_of_work(session):
                milestone, project = await registry.load_visible_milestone(
                    session, actor, milestone_id
                )
                await self._ensure_contractor_may_submit(session, actor, milestone)

                latest = await submission_queries.get_latest_submission(session, milestone_id)
                if milestone.status == MilestoneStatus.COMPLETED or (
                    latest is not None and latest.status == SubmissionStatus.APPROVED
                ):
                    raise ConflictError(
                        "Milestone is already completed",
                        {"milestone_id": str(milestone_id)},
                    )
                if latest is not None and latest.status == SubmissionStatus.PENDING_APPROVAL:
                    raise ConflictError(
                        "Milestone already has a submission awaiting review",
                        {"milestone_id": str(milestone_id), "submission_id": str(latest.id)},
                    )

                token = uuid.uuid4().hex
                evidence_rows = []
                for index, evidence in enumerate(evidence_files):
                    key = await self.storage.put(
                        evidence_path(project.id, milestone_id, token, index, evidence.file_name),
                        evidence.data,
                    )
                    evidence_rows.append(
                        Evidence(
                            file_path=key,
                            file_name=evidence.file_name,
                            file_type=evidence.content_type,
                            file_size=len(evidence.data),
                        )
                    )

                submission = Submission(
                    milestone_id=milestone_id,
                    contractor_id=actor.actor_id,
                    status=SubmissionStatus.PENDING_APPROVAL,
                    work_description=work_description.strip(),
                    submitted_at=utcnow(),
                    sequence=await submission_queries.next_sequence(session, milestone_id),
                    idempotency_key=idempotency_key,
                    evidence=evidence_rows,
                    materials=material_rows,
                )
                await submission_queries.insert_submission(session, submission)
                await milestone_queries.set_milestone_status(
                    session, milestone_id, MilestoneStatus.PENDING_APPROVAL
                )
                await notification_queries.record_event(
                    session,
                    EventType.SUBMISSION_CREATED,
                    project_id=project.id,
                    subject_id=submission.id,
                    recipient_id=project.consultant_id,
                    payload={
                        "milestone_id": str(milestone_id),
                        "milestone_title": milestone.title,
                        "contractor_id": str(actor.actor_id),
                        "sequence": submission.sequence,
                    },
                )
        except IntegrityError as e:
            raise ConflictError(
                "A concurrent submission was created for this milestone",
                {"milestone_id": str(milestone_id)},
            ) from e

        self.logger.info(
            "submission_created",
            submission_id=str(submission.id),
            milestone_id=str(milestone_id),
            sequence=submission.sequence,
            evidence_count=len(evidence_rows),
            material_count=len(material_rows),
        )
        return submission

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def _load_for_review(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
    ) -> tuple[Submission, Milestone, Project]:
        submission = await submission_queries.get_submission(session, submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        milestone = await milestone_queries.get_milestone(session, submission.milestone_id)
        project = (
            await project_queries.get_project(session, milestone.project_id)
            if milestone is not None
            else None
        )
        if milestone is None or project is None or project.consultant_id != actor.actor_id:
            raise NotFoundError("Submission", submission_id)
        return submission, milestone, project

    async def _review(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
        target: SubmissionStatus,
        note: str | None = None,
    ) -> Submission:
        require_role(actor, ActorRole.CONSULTANT, action="review submissions")
        milestone_status, event_type = _REVIEW_EFFECTS[target]

        async with unit_of_work(session):
            submission, milestone, project = await self._load_for_review(
                session, actor, submission_id
            )
            current = submission.status

            if not validate_transition(current, target):
                raise InvalidTransitionError(current, target, str(submission_id))

            latest = await submission_queries.get_latest_submission(session, milestone.id)
            if latest is None or latest.id != submission.id:
                raise ConflictError(
                    "Only the latest submission of a milestone can be reviewed",
                    {"submission_id": str(submission_id)},
                )

            applied = await submission_queries.apply_review(
                session,
                submission_id,
                target,
                consultant_id=actor.actor_id,
                reviewed_at=utcnow(),
                query_note=note,
            )
            if not applied:
                raise ConflictError(
                    "Submission was already reviewed by another request",
                    {"submission_id": str(submission_id)},
                )

            await milestone_queries.set_milestone_status(session, milestone.id, milestone_status)
            await notification_queries.record_event(
                session,
                event_type,
                project_id=project.id,
                subject_id=submission_id,
                recipient_id=submission.contractor_id,
                payload={
                    "milestone_id": str(milestone.id),
                    "milestone_title": milestone.title,
                    "note": note,
                },
            )

        await session.refresh(submission)
        await session.refresh(milestone)

        self.logger.info(
            "submission_transition",
            submission_id=str(submission_id),
            from_status=current.value,
            to_status=target.value,
            milestone_id=str(milestone.id),
            milestone_status=milestone_status.value,
        )
        return submission

    async def approve_submission(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
    ) -> Submission:
        """Approve the latest pending submission and complete its milestone.

        Raises:
            AuthorizationError: If the actor is not a consultant.
            NotFoundError: If the submission is unknown or belongs to a
                project the consultant does not supervise.
            ConflictError: If the submission is not pending, not the latest,
                or was reviewed concurrently.
        """
        return await self._review(session, actor, submission_id, SubmissionStatus.APPROVED)

    async def query_submission(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
        query_note: str,
    ) -> Submission:
        """Ask the contractor for more information on a pending submission."""
        if not query_note or not query_note.strip():
            raise ValidationError("A query note is required")
        return await self._review(
            session, actor, submission_id, SubmissionStatus.QUERIED, query_note.strip()
        )

    async def reject_submission(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
        note: str,
    ) -> Submission:
        """Reject a pending submission; the milestone returns to IN_PROGRESS."""
        if not note or not note.strip():
            raise ValidationError("A rejection note is required")
        return await self._review(
            session, actor, submission_id, SubmissionStatus.REJECTED, note.strip()
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_submission(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
    ) -> Submission:
        """Return a submission with evidence and materials."""
        submission = await submission_queries.get_submission(session, submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        try:
            await registry.load_visible_milestone(session, actor, submission.milestone_id)
        except NotFoundError:
            raise NotFoundError("Submission", submission_id) from None
        return submission

    async def list_milestone_submissions(
        self,
        session: AsyncSession,
        actor: ActorContext,
        milestone_id: UUID,
    ) -> list[Submission]:
        """Return a milestone's submission history, newest first."""
        await registry.load_visible_milestone(session, actor, milestone_id)
        return await submission_queries.list_milestone_submissions(session, milestone_id)

    async def get_evidence_urls(
        self,
        session: AsyncSession,
        actor: ActorContext,
        submission_id: UUID,
    ) -> list[EvidenceUrl]:
        """Sign a short-lived URL for each evidence file of a submission.

        Raises:
            DependencyError: If the blob store cannot sign a URL.
        """
        submission = await self.get_submission(session, actor, submission_id)
        urls = []
        for evidence in submission.evidence:
            url = await self.storage.sign(evidence.file_path, self.url_ttl_seconds)
            urls.append(
                EvidenceUrl(
                    evidence_id=evidence.id,
                    file_name=evidence.file_name,
                    file_type=evidence.file_type,
                    file_size=evidence.file_size,
                    url=url,
                    expires_in=self.url_ttl_seconds,
                )
            )
        return urls

    async def _contractor_names(
        self,
        session: AsyncSession,
        contractor_ids: set[UUID],
    ) -> dict[UUID, str]:
        try:
            actors = await actor_queries.get_actors_by_ids(session, contractor_ids)
        except SQLAlchemyError as e:
            self.logger.warning("contractor_lookup_failed", error=str(e))
            return {}
        return {actor_id: actor.full_name for actor_id, actor in actors.items()}

    async def get_verification_queue(
        self,
        session: AsyncSession,
        actor: ActorContext,
        status: SubmissionStatus = SubmissionStatus.PENDING_APPROVAL,
        project_id: UUID | None = None,
    ) -> list[QueueItem]:
        """List submissions for review across the actor's projects.

        Consultants see the projects they supervise, admins see all.
        Contractor names that cannot be resolved read "Unknown Contractor".
        """
        require_role(
            actor, ActorRole.CONSULTANT, ActorRole.ADMIN, action="view the verification queue"
        )

        if project_id is not None:
            projects = [await registry.load_visible_project(session, actor, project_id)]
        else:
            projects = await registry.list_projects(session, actor)
        by_id = {p.id: p for p in projects}

        rows = await submission_queries.list_submissions_by_status(
            session, status, project_ids=by_id.keys()
        )
        names = await self._contractor_names(session, {s.contractor_id for s, _ in rows})

        return [
            QueueItem(
                submission_id=submission.id,
                status=submission.status,
                submitted_at=submission.submitted_at,
                work_description=submission.work_description,
                milestone_id=milestone.id,
                milestone_title=milestone.title,
                project_id=milestone.project_id,
                project_title=by_id[milestone.project_id].title,
                contractor_id=submission.contractor_id,
                contractor_name=names.get(submission.contractor_id, UNKNOWN_CONTRACTOR),
                evidence_count=len(submission.evidence),
            )
            for submission, milestone in rows
        ]
