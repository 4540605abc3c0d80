"""Section, section-assignment and milestone-mapping query functions.

Provides async functions for creating sections, mapping milestones to
sections, and maintaining each section's contractor assignment.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.milestone import Milestone
from sitetrack.database.models.section import (
    Section,
    SectionAssignment,
    SectionMilestone,
)

logger = structlog.get_logger(__name__)


async def insert_section(
    session: AsyncSession,
    project_id: UUID,
    name: str,
    description: str | None = None,
) -> Section:
    """Insert a section into a project."""
    section = Section(project_id=project_id, name=name, description=description)
    session.add(section)
    await session.flush()

    logger.info(
        "section_inserted",
        section_id=str(section.id),
        project_id=str(project_id),
        name=name,
    )
    return section


async def get_section(session: AsyncSession, section_id: UUID) -> Section | None:
    """Retrieve a section by ID."""
    result = await session.execute(select(Section).where(Section.id == section_id))
    return result.scalar_one_or_none()


async def list_sections(session: AsyncSession, project_id: UUID) -> list[Section]:
    """List a project's sections in creation order."""
    result = await session.execute(
        select(Section)
        .where(Section.project_id == project_id)
        .order_by(Section.created_at.asc())
    )
    return list(result.scalars().all())


async def map_milestones(
    session: AsyncSession,
    section_id: UUID,
    milestone_ids: Iterable[UUID],
) -> None:
    """Link milestones to a section.

    The milestone_id primary key on section_milestones makes the database
    reject a milestone that is already linked; the flush raises
    IntegrityError in that case.
    """
    session.add_all(
        SectionMilestone(section_id=section_id, milestone_id=milestone_id)
        for milestone_id in milestone_ids
    )
    await session.flush()


async def find_mapped(
    session: AsyncSession,
    milestone_ids: Iterable[UUID],
) -> dict[UUID, UUID]:
    """Return the section of each given milestone that is already mapped."""
    ids = set(milestone_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(SectionMilestone.milestone_id, SectionMilestone.section_id).where(
            SectionMilestone.milestone_id.in_(ids)
        )
    )
    return {milestone_id: section_id for milestone_id, section_id in result.all()}


async def get_section_for_milestone(
    session: AsyncSession,
    milestone_id: UUID,
) -> UUID | None:
    """Return the section containing a milestone, or None if unmapped."""
    mapped = await find_mapped(session, [milestone_id])
    return mapped.get(milestone_id)


async def project_section_map(
    session: AsyncSession,
    project_id: UUID,
) -> dict[UUID, UUID]:
    """Map every mapped milestone of a project to its section."""
    result = await session.execute(
        select(SectionMilestone.milestone_id, SectionMilestone.section_id)
        .join(Milestone, Milestone.id == SectionMilestone.milestone_id)
        .where(Milestone.project_id == project_id)
    )
    return {milestone_id: section_id for milestone_id, section_id in result.all()}


async def section_milestone_ids(
    session: AsyncSession,
    section_id: UUID,
) -> list[UUID]:
    """Return the IDs of the milestones mapped to a section."""
    result = await session.execute(
        select(SectionMilestone.milestone_id).where(SectionMilestone.section_id == section_id)
    )
    return list(result.scalars().all())


async def get_assignment(
    session: AsyncSession,
    section_id: UUID,
) -> SectionAssignment | None:
    """Return the section's contractor assignment, if any."""
    result = await session.execute(
        select(SectionAssignment).where(SectionAssignment.section_id == section_id)
    )
    return result.scalar_one_or_none()


async def list_assignments(
    session: AsyncSession,
    section_ids: Iterable[UUID],
) -> dict[UUID, UUID]:
    """Map each assigned section to its contractor."""
    ids = set(section_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(SectionAssignment.section_id, SectionAssignment.contractor_id).where(
            SectionAssignment.section_id.in_(ids)
        )
    )
    return {section_id: contractor_id for section_id, contractor_id in result.all()}


async def upsert_assignment(
    session: AsyncSession,
    section_id: UUID,
    contractor_id: UUID,
) -> UUID | None:
    """Point a section at a contractor.

    Returns:
        The previously assigned contractor, or None if there was none.
    """
    assignment = await get_assignment(session, section_id)
    if assignment is None:
        session.add(SectionAssignment(section_id=section_id, contractor_id=contractor_id))
        await session.flush()
        return None

    previous = assignment.contractor_id
    assignment.contractor_id = contractor_id
    await session.flush()
    return previous
