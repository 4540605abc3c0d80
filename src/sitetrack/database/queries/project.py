"""Project and contractor-pool query functions for SiteTrack.

Provides async functions for creating, reading, and updating Project
records and for maintaining the project's contractor pool.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.actor import Actor
from sitetrack.database.models.project import Project, ProjectContractor, ProjectStatus

logger = structlog.get_logger(__name__)


async def insert_project(
    session: AsyncSession,
    title: str,
    total_budget: Decimal,
    currency: str,
    description: str | None = None,
    location: str | None = None,
    created_by: UUID | None = None,
) -> Project:
    """Insert a new project in DRAFT status.

    Args:
        session: Active async database session.
        title: Project title.
        total_budget: Approved project budget.
        currency: ISO 4217 currency code.
        description: Optional description.
        location: Optional site location.
        created_by: Admin who created the project.

    Returns:
        The newly created Project instance.
    """
    project = Project(
        title=title,
        description=description,
        location=location,
        total_budget=total_budget,
        currency=currency,
        status=ProjectStatus.DRAFT,
        created_by=created_by,
    )
    session.add(project)
    await session.flush()

    logger.info(
        "project_inserted",
        project_id=str(project.id),
        title=title,
        status=project.status.value,
    )
    return project


async def get_project(
    session: AsyncSession,
    project_id: UUID,
) -> Project | None:
    """Retrieve a project by ID.

    Args:
        session: Active async database session.
        project_id: UUID of the project to retrieve.

    Returns:
        The Project instance if found, None otherwise.
    """
    result = await session.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def list_projects(
    session: AsyncSession,
    status_filter: ProjectStatus | None = None,
    consultant_id: UUID | None = None,
    contractor_id: UUID | None = None,
) -> list[Project]:
    """List projects, newest first.

    Args:
        session: Active async database session.
        status_filter: Optional status to filter by.
        consultant_id: Restrict to projects supervised by this consultant.
        contractor_id: Restrict to projects whose pool contains this contractor.

    Returns:
        List of matching Project instances.
    """
    stmt = select(Project)

    if status_filter is not None:
        stmt = stmt.where(Project.status == status_filter)
    if consultant_id is not None:
        stmt = stmt.where(Project.consultant_id == consultant_id)
    if contractor_id is not None:
        stmt = stmt.where(
            Project.id.in_(
                select(ProjectContractor.project_id).where(
                    ProjectContractor.contractor_id == contractor_id
                )
            )
        )

    stmt = stmt.order_by(Project.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_project(
    session: AsyncSession,
    project_id: UUID,
    **updates: Any,
) -> None:
    """Update a project's fields.

    Args:
        session: Active async database session.
        project_id: UUID of the project to update.
        **updates: Field names and values to update.
    """
    await session.execute(
        update(Project).where(Project.id == project_id).values(**updates)
    )
    logger.info(
        "project_updated",
        project_id=str(project_id),
        fields_updated=list(updates.keys()),
    )


async def is_in_pool(
    session: AsyncSession,
    project_id: UUID,
    contractor_id: UUID,
) -> bool:
    """Return True if the contractor belongs to the project's pool."""
    result = await session.execute(
        select(ProjectContractor.id).where(
            ProjectContractor.project_id == project_id,
            ProjectContractor.contractor_id == contractor_id,
        )
    )
    return result.first() is not None


async def add_to_pool(
    session: AsyncSession,
    project_id: UUID,
    contractor_id: UUID,
) -> bool:
    """Add a contractor to the project pool.

    Returns:
        True if the contractor was added, False if already a member.
    """
    if await is_in_pool(session, project_id, contractor_id):
        return False

    session.add(ProjectContractor(project_id=project_id, contractor_id=contractor_id))
    await session.flush()

    logger.info(
        "project_contractor_added",
        project_id=str(project_id),
        contractor_id=str(contractor_id),
    )
    return True


async def list_pool(
    session: AsyncSession,
    project_id: UUID,
) -> list[Actor]:
    """List the contractors in a project's pool in insertion order."""
    stmt = (
        select(Actor)
        .join(ProjectContractor, ProjectContractor.contractor_id == Actor.id)
        .where(ProjectContractor.project_id == project_id)
        .order_by(ProjectContractor.added_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
