"""Project registry: work breakdown and assignment edges.

The registry owns Projects, their ordered Milestones, Sections grouping those
milestones, and the assignment edges between them and actors:

- Section -> Contractor (at most one per section, upserted)
- Project -> Consultant
- Project -> contractor pool

Every function takes the session first and the acting ActorContext second.
Mutations run in a single unit of work; visibility failures are reported as
NotFoundError so that callers cannot probe for projects they cannot see.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.auth import ActorContext, require_role
from sitetrack.database.connection import unit_of_work
from sitetrack.database.models.actor import Actor, ActorRole
from sitetrack.database.models.milestone import Milestone, MilestoneStatus
from sitetrack.database.models.notification import EventType
from sitetrack.database.models.project import Project, ProjectStatus
from sitetrack.database.models.section import Section
from sitetrack.database.models.submission import SubmissionStatus
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

logger = structlog.get_logger(__name__)


@dataclass
class MilestoneDraft:
    """Caller-supplied milestone data for create_project."""

    title: str
    due_date: date | None
    budget: Any = Decimal("0")
    description: str | None = None
    sort_order: int | None = None


@dataclass
class ProjectCreated:
    """Result of create_project."""

    project: Project
    milestones: list[Milestone]
    allocated_budget: Decimal
    budget_warning: str | None = None


@dataclass
class SectionCreated:
    """Result of create_section."""

    section: Section
    milestone_ids: list[UUID] = field(default_factory=list)


@dataclass
class ContractorAssignment:
    """Result of assign_contractor."""

    section_id: UUID
    contractor_id: UUID
    previous_contractor_id: UUID | None
    changed: bool


# ---------------------------------------------------------------------------
# Visibility helpers
# ---------------------------------------------------------------------------


async def can_view_project(
    session: AsyncSession,
    actor: ActorContext,
    project: Project,
) -> bool:
    """Return True if the actor may see the project.

    Admins see every project, consultants the projects they supervise and
    contractors the projects whose pool they belong to.
    """
    if actor.is_admin:
        return True
    if actor.is_consultant:
        return project.consultant_id == actor.actor_id
    return await project_queries.is_in_pool(session, project.id, actor.actor_id)


async def load_visible_project(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> Project:
    """Load a project the actor may see.

    Raises:
        NotFoundError: If the project does not exist or is not visible.
    """
    project = await project_queries.get_project(session, project_id)
    if project is None or not await can_view_project(session, actor, project):
        raise NotFoundError("Project", project_id)
    return project


def ensure_can_manage(actor: ActorContext, project: Project, action: str) -> None:
    """Allow admins and the project's own consultant.

    Raises:
        AuthorizationError: For any other actor.
    """
    if actor.is_admin:
        return
    if actor.is_consultant and project.consultant_id == actor.actor_id:
        return
    raise AuthorizationError(
        f"Only an admin or the project's consultant may {action}",
        {"action": action, "project_id": str(project.id)},
    )


async def load_visible_section(
    session: AsyncSession,
    actor: ActorContext,
    section_id: UUID,
) -> tuple[Section, Project]:
    """Load a section and its project, both visible to the actor."""
    section = await section_queries.get_section(session, section_id)
    if section is None:
        raise NotFoundError("Section", section_id)
    project = await project_queries.get_project(session, section.project_id)
    if project is None or not await can_view_project(session, actor, project):
        raise NotFoundError("Section", section_id)
    return section, project


async def load_visible_milestone(
    session: AsyncSession,
    actor: ActorContext,
    milestone_id: UUID,
) -> tuple[Milestone, Project]:
    """Load a milestone and its project, both visible to the actor."""
    milestone = await milestone_queries.get_milestone(session, milestone_id)
    if milestone is None:
        raise NotFoundError("Milestone", milestone_id)
    project = await project_queries.get_project(session, milestone.project_id)
    if project is None or not await can_view_project(session, actor, project):
        raise NotFoundError("Milestone", milestone_id)
    return milestone, project


async def _require_actor_with_role(
    session: AsyncSession,
    actor_id: UUID,
    role: ActorRole,
) -> Actor:
    target = await actor_queries.get_actor(session, actor_id)
    if target is None:
        raise NotFoundError("Actor", actor_id)
    if target.role != role:
        raise ValidationError(
            f"Actor {actor_id} is a {target.role.value}, not a {role.value}",
            {"actor_id": str(actor_id), "role": target.role.value},
        )
    if not target.is_active:
        raise ValidationError(f"Actor {actor_id} is inactive", {"actor_id": str(actor_id)})
    return target


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


async def register_actor(
    session: AsyncSession,
    actor: ActorContext | None,
    role: ActorRole,
    full_name: str,
    email: str | None = None,
    actor_id: UUID | None = None,
) -> Actor:
    """Create a local actor profile.

    Args:
        session: Active async database session.
        actor: Acting admin, or None for system bootstrap from the CLI.
        role: Role of the new actor.
        full_name: Display name.
        email: Optional contact address.
        actor_id: Identity-provider id to reuse.

    Raises:
        AuthorizationError: If a non-admin registers an actor.
        ValidationError: If the name is empty.
        ConflictError: If the actor id is already registered.
    """
    if actor is not None:
        require_role(actor, ActorRole.ADMIN, action="register actors")
    if not full_name or not full_name.strip():
        raise ValidationError("Actor full name is required")

    if actor_id is not None and await actor_queries.get_actor(session, actor_id) is not None:
        raise ConflictError(f"Actor {actor_id} already exists", {"actor_id": str(actor_id)})

    try:
        async with unit_of_work(session):
            return await actor_queries.create_actor(
                session, role, full_name.strip(), email=email, actor_id=actor_id
            )
    except IntegrityError as exc:
        raise ConflictError(
            f"Actor {actor_id} already exists", {"actor_id": str(actor_id)}
        ) from exc


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def _parse_budget(value: Any, label: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be numeric", {"value": str(value)})
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{label} must be numeric", {"value": str(value)}) from exc
    if not amount.is_finite():
        raise ValidationError(f"{label} must be numeric", {"value": str(value)})
    if amount < 0:
        raise ValidationError(f"{label} must not be negative", {"value": str(value)})
    return amount


async def create_project(
    session: AsyncSession,
    actor: ActorContext,
    title: str,
    total_budget: Any,
    milestones: list[MilestoneDraft],
    description: str | None = None,
    location: str | None = None,
    currency: str = "NGN",
    strict_budget: bool = False,
) -> ProjectCreated:
    """Create a project with its ordered milestone plan.

    Args:
        session: Active async database session.
        actor: Acting admin.
        title: Project title.
        total_budget: Approved project budget.
        milestones: Milestone drafts, in plan order.
        description: Optional description.
        location: Optional site location.
        currency: ISO 4217 currency code.
        strict_budget: Reject plans whose milestone budgets exceed the total.

    Returns:
        ProjectCreated with the project, its milestones and any budget warning.

    Raises:
        AuthorizationError: If the actor is not an admin.
        ValidationError: For an empty title, a milestone without title or due
            date, a negative or non-numeric budget, or (strict mode only) an
            over-allocated plan.
    """
    require_role(actor, ActorRole.ADMIN, action="create projects")

    if not title or not title.strip():
        raise ValidationError("Project title is required")
    total = _parse_budget(total_budget, "Project budget")

    rows: list[Milestone] = []
    for index, draft in enumerate(milestones):
        if not draft.title or not draft.title.strip():
            raise ValidationError(
                f"Milestone {index + 1} is missing a title", {"index": index}
            )
        if draft.due_date is None:
            raise ValidationError(
                f"Milestone '{draft.title}' is missing a due date", {"index": index}
            )
        rows.append(
            Milestone(
                title=draft.title.strip(),
                description=draft.description,
                due_date=draft.due_date,
                budget=_parse_budget(draft.budget, f"Milestone '{draft.title}' budget"),
                sort_order=draft.sort_order if draft.sort_order is not None else index,
            )
        )

    allocated = sum((row.budget for row in rows), Decimal("0"))
    budget_warning = None
    if allocated > total:
        budget_warning = (
            f"Milestone budgets ({allocated}) exceed the project budget ({total})"
        )
        if strict_budget:
            raise ValidationError(
                budget_warning,
                {"allocated": str(allocated), "total_budget": str(total)},
            )
        logger.warning(
            "project_budget_over_allocated",
            title=title,
            allocated=str(allocated),
            total_budget=str(total),
        )

    async with unit_of_work(session):
        project = await project_queries.insert_project(
            session,
            title=title.strip(),
            total_budget=total,
            currency=currency,
            description=description,
            location=location,
            created_by=actor.actor_id,
        )
        for row in rows:
            row.project_id = project.id
        await milestone_queries.insert_milestones(session, rows)

    logger.info(
        "project_created",
        project_id=str(project.id),
        milestone_count=len(rows),
        allocated=str(allocated),
    )
    return ProjectCreated(
        project=project,
        milestones=rows,
        allocated_budget=allocated,
        budget_warning=budget_warning,
    )


async def get_project(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> Project:
    """Return a project visible to the actor."""
    return await load_visible_project(session, actor, project_id)


async def list_projects(
    session: AsyncSession,
    actor: ActorContext,
    status_filter: ProjectStatus | None = None,
) -> list[Project]:
    """List the projects the actor may see, newest first."""
    if actor.is_admin:
        return await project_queries.list_projects(session, status_filter=status_filter)
    if actor.is_consultant:
        return await project_queries.list_projects(
            session, status_filter=status_filter, consultant_id=actor.actor_id
        )
    return await project_queries.list_projects(
        session, status_filter=status_filter, contractor_id=actor.actor_id
    )


async def update_project_status(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
    status: ProjectStatus,
) -> Project:
    """Set a project's lifecycle status (admin only)."""
    require_role(actor, ActorRole.ADMIN, action="change project status")

    async with unit_of_work(session):
        project = await load_visible_project(session, actor, project_id)
        previous = project.status
        project.status = status
        await session.flush()

    logger.info(
        "project_status_changed",
        project_id=str(project_id),
        from_status=previous.value,
        to_status=status.value,
    )
    return project


async def assign_consultant(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
    consultant_id: UUID,
) -> Project:
    """Point a project at its supervising consultant (admin only).

    Raises:
        ValidationError: If the target actor is not an active consultant.
    """
    require_role(actor, ActorRole.ADMIN, action="assign consultants")

    async with unit_of_work(session):
        project = await load_visible_project(session, actor, project_id)
        await _require_actor_with_role(session, consultant_id, ActorRole.CONSULTANT)
        previous = project.consultant_id
        project.consultant_id = consultant_id
        await session.flush()

    logger.info(
        "project_consultant_assigned",
        project_id=str(project_id),
        previous_consultant_id=str(previous) if previous else None,
        consultant_id=str(consultant_id),
    )
    return project


async def add_project_contractor(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
    contractor_id: UUID,
) -> bool:
    """Add a contractor to a project's pool.

    Returns:
        True if added, False if the contractor was already in the pool.
    """
    async with unit_of_work(session):
        project = await load_visible_project(session, actor, project_id)
        ensure_can_manage(actor, project, "manage the contractor pool")
        await _require_actor_with_role(session, contractor_id, ActorRole.CONTRACTOR)
        return await project_queries.add_to_pool(session, project_id, contractor_id)


async def get_project_contractors(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> list[Actor]:
    """List a project's contractor pool in insertion order."""
    await load_visible_project(session, actor, project_id)
    return await project_queries.list_pool(session, project_id)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


async def create_section(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
    name: str,
    milestone_ids: list[UUID],
    description: str | None = None,
) -> SectionCreated:
    """Create a section and map milestones to it.

    Raises:
        NotFoundError: If the project does not exist or is not visible.
        AuthorizationError: If the actor is not an admin or the consultant.
        ValidationError: For an empty name or a milestone of another project.
        ConflictError: If a milestone already belongs to a section.
    """
    if not name or not name.strip():
        raise ValidationError("Section name is required")
    unique_ids = list(dict.fromkeys(milestone_ids))

    try:
        async with unit_of_work(session):
            project = await load_visible_project(session, actor, project_id)
            ensure_can_manage(actor, project, "create sections")

            found = await milestone_queries.get_milestones_by_ids(session, unique_ids)
            found_ids = {m.id for m in found if m.project_id == project_id}
            foreign = [str(mid) for mid in unique_ids if mid not in found_ids]
            if foreign:
                raise ValidationError(
                    "Milestones do not belong to this project",
                    {"milestone_ids": foreign},
                )

            already = await section_queries.find_mapped(session, unique_ids)
            if already:
                raise ConflictError(
                    "Milestones are already assigned to a section",
                    {"milestone_ids": [str(mid) for mid in already]},
                )

            section = await section_queries.insert_section(
                session, project_id, name.strip(), description
            )
            await section_queries.map_milestones(session, section.id, unique_ids)
    except IntegrityError as exc:
        raise ConflictError(
            "Milestones are already assigned to a section",
            {"milestone_ids": [str(mid) for mid in unique_ids]},
        ) from exc

    logger.info(
        "section_created",
        section_id=str(section.id),
        project_id=str(project_id),
        milestone_count=len(unique_ids),
    )
    return SectionCreated(section=section, milestone_ids=unique_ids)


async def list_sections(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> list[Section]:
    """List a project's sections in creation order."""
    await load_visible_project(session, actor, project_id)
    return await section_queries.list_sections(session, project_id)


async def assign_contractor(
    session: AsyncSession,
    actor: ActorContext,
    section_id: UUID,
    contractor_id: UUID,
) -> ContractorAssignment:
    """Assign or replace the contractor responsible for a section.

    Assigning the current contractor again is a no-op. The contractor also
    joins the project's pool.
    """
    async with unit_of_work(session):
        section, project = await load_visible_section(session, actor, section_id)
        ensure_can_manage(actor, project, "assign contractors")
        await _require_actor_with_role(session, contractor_id, ActorRole.CONTRACTOR)

        current = await section_queries.get_assignment(session, section_id)
        if current is not None and current.contractor_id == contractor_id:
            return ContractorAssignment(
                section_id=section_id,
                contractor_id=contractor_id,
                previous_contractor_id=contractor_id,
                changed=False,
            )

        previous = await section_queries.upsert_assignment(session, section_id, contractor_id)
        await project_queries.add_to_pool(session, project.id, contractor_id)
        await notification_queries.record_event(
            session,
            EventType.CONTRACTOR_ASSIGNED,
            project_id=project.id,
            subject_id=section_id,
            recipient_id=contractor_id,
            payload={
                "section_name": section.name,
                "previous_contractor_id": str(previous) if previous else None,
            },
        )

    if previous is not None:
        logger.warning(
            "contractor_reassigned",
            section_id=str(section_id),
            previous_contractor_id=str(previous),
            contractor_id=str(contractor_id),
            assigned_by=str(actor.actor_id),
        )
    else:
        logger.info(
            "contractor_assigned",
            section_id=str(section_id),
            contractor_id=str(contractor_id),
        )
    return ContractorAssignment(
        section_id=section_id,
        contractor_id=contractor_id,
        previous_contractor_id=previous,
        changed=True,
    )


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------


async def list_milestones(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> list[Milestone]:
    """List a project's milestones in plan order."""
    await load_visible_project(session, actor, project_id)
    return await milestone_queries.list_project_milestones(session, project_id)


async def list_unassigned_milestones(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> list[Milestone]:
    """List milestones of a project that no section contains."""
    milestones = await list_milestones(session, actor, project_id)
    mapped = await section_queries.project_section_map(session, project_id)
    return [m for m in milestones if m.id not in mapped]


async def mark_milestone_status(
    session: AsyncSession,
    actor: ActorContext,
    milestone_id: UUID,
    status: MilestoneStatus,
) -> Milestone:
    """Administratively set a milestone's raw status.

    Only IN_PROGRESS (work has started) and COMPLETED are accepted. Marking
    complete is allowed only for milestones without submissions, and work
    under review or already approved cannot be reset.

    Raises:
        ValidationError: For any other status.
        ConflictError: If the submission history forbids the change.
    """
    require_role(actor, ActorRole.ADMIN, action="override milestone status")
    if status not in (MilestoneStatus.IN_PROGRESS, MilestoneStatus.COMPLETED):
        raise ValidationError(
            "Milestone status can only be set to IN_PROGRESS or COMPLETED",
            {"status": status.value},
        )

    async with unit_of_work(session):
        milestone, _ = await load_visible_milestone(session, actor, milestone_id)
        latest = await submission_queries.get_latest_submission(session, milestone_id)

        if status == MilestoneStatus.COMPLETED and latest is not None:
            raise ConflictError(
                "Milestones with submissions are completed by approval",
                {"milestone_id": str(milestone_id)},
            )
        if status == MilestoneStatus.IN_PROGRESS and (
            milestone.status == MilestoneStatus.COMPLETED
            or (
                latest is not None
                and latest.status
                in (SubmissionStatus.PENDING_APPROVAL, SubmissionStatus.APPROVED)
            )
        ):
            raise ConflictError(
                "Milestone is under review or already completed",
                {"milestone_id": str(milestone_id)},
            )

        previous = milestone.status
        milestone.status = status
        await session.flush()

    logger.info(
        "milestone_status_overridden",
        milestone_id=str(milestone_id),
        from_status=previous.value if previous else None,
        to_status=status.value,
    )
    return milestone
