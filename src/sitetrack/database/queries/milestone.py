"""Milestone query functions for SiteTrack.

Provides async functions for inserting and reading milestones and for
resolving each milestone's latest submission status, which the progress
aggregator needs to derive displayed statuses.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.milestone import Milestone, MilestoneStatus
from sitetrack.database.models.submission import Submission, SubmissionStatus

logger = structlog.get_logger(__name__)


async def insert_milestones(
    session: AsyncSession,
    milestones: list[Milestone],
) -> list[Milestone]:
    """Insert already-constructed milestones and flush to assign IDs."""
    session.add_all(milestones)
    await session.flush()
    return milestones


async def get_milestone(
    session: AsyncSession,
    milestone_id: UUID,
) -> Milestone | None:
    """Retrieve a milestone by ID."""
    result = await session.execute(select(Milestone).where(Milestone.id == milestone_id))
    return result.scalar_one_or_none()


async def get_milestones_by_ids(
    session: AsyncSession,
    milestone_ids: Iterable[UUID],
) -> list[Milestone]:
    """Retrieve milestones by ID, ordered by sort_order."""
    ids = set(milestone_ids)
    if not ids:
        return []
    result = await session.execute(
        select(Milestone).where(Milestone.id.in_(ids)).order_by(Milestone.sort_order.asc())
    )
    return list(result.scalars().all())


async def list_project_milestones(
    session: AsyncSession,
    project_id: UUID,
) -> list[Milestone]:
    """List a project's milestones in plan order."""
    result = await session.execute(
        select(Milestone)
        .where(Milestone.project_id == project_id)
        .order_by(Milestone.sort_order.asc(), Milestone.created_at.asc())
    )
    return list(result.scalars().all())


async def set_milestone_status(
    session: AsyncSession,
    milestone_id: UUID,
    status: MilestoneStatus | None,
) -> None:
    """Write a milestone's raw status marker."""
    await session.execute(
        update(Milestone).where(Milestone.id == milestone_id).values(status=status)
    )
    logger.debug(
        "milestone_status_set",
        milestone_id=str(milestone_id),
        status=status.value if status else None,
    )


async def latest_submission_statuses(
    session: AsyncSession,
    milestone_ids: Iterable[UUID],
) -> dict[UUID, SubmissionStatus]:
    """Map each milestone to the status of its most recent submission.

    The most recent submission is the last by (submitted_at, sequence);
    ordering is done in SQL. Milestones without submissions are omitted.
    """
    ids = set(milestone_ids)
    if not ids:
        return {}

    result = await session.execute(
        select(Submission.milestone_id, Submission.status)
        .where(Submission.milestone_id.in_(ids))
        .order_by(Submission.submitted_at.asc(), Submission.sequence.asc())
    )

    latest: dict[UUID, SubmissionStatus] = {}
    for milestone_id, status in result.all():
        latest[milestone_id] = status
    return latest
