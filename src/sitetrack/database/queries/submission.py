"""Submission query functions for SiteTrack.

Provides async functions for inserting submissions with their evidence and
materials, locating the latest submission of a milestone, and applying a
review decision with a status-guarded UPDATE.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.milestone import Milestone
from sitetrack.database.models.submission import Submission, SubmissionStatus

logger = structlog.get_logger(__name__)


async def insert_submission(
    session: AsyncSession,
    submission: Submission,
) -> Submission:
    """Insert a fully constructed submission with its child rows."""
    session.add(submission)
    await session.flush()

    logger.info(
        "submission_inserted",
        submission_id=str(submission.id),
        milestone_id=str(submission.milestone_id),
        sequence=submission.sequence,
        evidence_count=len(submission.evidence),
    )
    return submission


async def get_submission(
    session: AsyncSession,
    submission_id: UUID,
) -> Submission | None:
    """Retrieve a submission by ID, with evidence and materials loaded."""
    result = await session.execute(
        select(Submission).where(Submission.id == submission_id)
    )
    return result.scalar_one_or_none()


async def get_latest_submission(
    session: AsyncSession,
    milestone_id: UUID,
) -> Submission | None:
    """Return the milestone's most recent submission, or None."""
    result = await session.execute(
        select(Submission)
        .where(Submission.milestone_id == milestone_id)
        .order_by(Submission.submitted_at.desc(), Submission.sequence.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def next_sequence(session: AsyncSession, milestone_id: UUID) -> int:
    """Return the next attempt number for a milestone."""
    result = await session.execute(
        select(func.max(Submission.sequence)).where(Submission.milestone_id == milestone_id)
    )
    current = result.scalar_one_or_none()
    return (current or 0) + 1


async def find_by_idempotency_key(
    session: AsyncSession,
    contractor_id: UUID,
    idempotency_key: str,
) -> Submission | None:
    """Find a contractor's earlier submission created with the same key."""
    result = await session.execute(
        select(Submission).where(
            Submission.contractor_id == contractor_id,
            Submission.idempotency_key == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def list_milestone_submissions(
    session: AsyncSession,
    milestone_id: UUID,
) -> list[Submission]:
    """List every submission of a milestone, newest first."""
    result = await session.execute(
        select(Submission)
        .where(Submission.milestone_id == milestone_id)
        .order_by(Submission.submitted_at.desc(), Submission.sequence.desc())
    )
    return list(result.scalars().all())


async def apply_review(
    session: AsyncSession,
    submission_id: UUID,
    new_status: SubmissionStatus,
    consultant_id: UUID,
    reviewed_at: datetime,
    query_note: str | None = None,
) -> bool:
    """Record a review decision if the submission is still pending.

    The UPDATE is guarded on the current status so that two concurrent
    reviewers cannot both decide the same submission.

    Returns:
        True if this call made the transition, False if another writer
        already moved the submission out of PENDING_APPROVAL.
    """
    values: dict[str, object] = {
        "status": new_status,
        "reviewed_at": reviewed_at,
        "reviewed_by_consultant_id": consultant_id,
    }
    if query_note is not None:
        values["query_note"] = query_note

    result = await session.execute(
        update(Submission)
        .where(
            Submission.id == submission_id,
            Submission.status == SubmissionStatus.PENDING_APPROVAL,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    applied = result.rowcount == 1

    logger.info(
        "submission_review_applied" if applied else "submission_review_lost_race",
        submission_id=str(submission_id),
        new_status=new_status.value,
    )
    return applied


async def list_submissions_by_status(
    session: AsyncSession,
    status: SubmissionStatus,
    project_ids: Iterable[UUID] | None = None,
) -> list[tuple[Submission, Milestone]]:
    """List submissions in a given status with their milestones, newest first.

    Args:
        session: Active async database session.
        status: Submission status to match.
        project_ids: Restrict to milestones of these projects; all projects
            when None.

    Returns:
        (submission, milestone) pairs, most recent submission first.
    """
    stmt = (
        select(Submission, Milestone)
        .join(Milestone, Milestone.id == Submission.milestone_id)
        .where(Submission.status == status)
    )
    if project_ids is not None:
        ids = set(project_ids)
        if not ids:
            return []
        stmt = stmt.where(Milestone.project_id.in_(ids))

    stmt = stmt.order_by(Submission.submitted_at.desc(), Submission.sequence.desc())
    result = await session.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def count_submissions_by_status(
    session: AsyncSession,
    project_ids: Iterable[UUID] | None = None,
) -> dict[SubmissionStatus, int]:
    """Count submissions grouped by status."""
    stmt = select(Submission.status, func.count(Submission.id)).join(
        Milestone, Milestone.id == Submission.milestone_id
    )
    if project_ids is not None:
        stmt = stmt.where(Milestone.project_id.in_(set(project_ids)))
    stmt = stmt.group_by(Submission.status)

    result = await session.execute(stmt)
    return {status: count for status, count in result.all()}
