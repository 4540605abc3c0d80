"""Progress aggregation for milestones, sections and projects.

Nothing here is cached: every figure is recomputed from milestone rows and
their latest submissions on each read.

Derivation rules:

- A milestone is COMPLETED when its raw status says so; otherwise its status
  follows its latest submission (APPROVED -> COMPLETED, PENDING_APPROVAL ->
  PENDING_APPROVAL, QUERIED -> QUERIED, REJECTED -> IN_PROGRESS); without
  submissions it is IN_PROGRESS.
- A group of milestones (section or project) is QUERIED if any milestone is,
  else PENDING_APPROVAL if any is, else COMPLETED if all of at least one are,
  else IN_PROGRESS.
- completion_percentage is the rounded share of COMPLETED milestones.
- progress_percentage is the rounded mean of per-milestone weights.

Sections only see their mapped milestones; the project rollup sees every
milestone of the project, mapped or not.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.auth import ActorContext
from sitetrack.config import ProgressWeights
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.milestone import Milestone, MilestoneStatus
from sitetrack.database.models.project import ProjectStatus
from sitetrack.database.models.submission import SubmissionStatus
from sitetrack.database.queries import actor as actor_queries
from sitetrack.database.queries import milestone as milestone_queries
from sitetrack.database.queries import section as section_queries
from sitetrack.database.queries import submission as submission_queries
from sitetrack.workflow import registry

logger = structlog.get_logger(__name__)

_SUBMISSION_TO_MILESTONE: dict[SubmissionStatus, MilestoneStatus] = {
    SubmissionStatus.APPROVED: MilestoneStatus.COMPLETED,
    SubmissionStatus.PENDING_APPROVAL: MilestoneStatus.PENDING_APPROVAL,
    SubmissionStatus.QUERIED: MilestoneStatus.QUERIED,
    SubmissionStatus.REJECTED: MilestoneStatus.IN_PROGRESS,
}

# Highest precedence first
_GROUP_PRECEDENCE = (MilestoneStatus.QUERIED, MilestoneStatus.PENDING_APPROVAL)


def derive_milestone_status(
    raw_status: MilestoneStatus | None,
    latest_submission_status: SubmissionStatus | None,
) -> MilestoneStatus:
    """Return the status shown for a milestone."""
    if raw_status == MilestoneStatus.COMPLETED:
        return MilestoneStatus.COMPLETED
    if latest_submission_status is not None:
        return _SUBMISSION_TO_MILESTONE[latest_submission_status]
    return MilestoneStatus.IN_PROGRESS


def milestone_weight(
    status: MilestoneStatus,
    raw_status: MilestoneStatus | None,
    weights: ProgressWeights,
) -> int:
    """Return a milestone's progress weight on the 0-100 staircase.

    IN_PROGRESS milestones count as started only when their raw status
    records that work has begun.
    """
    if status == MilestoneStatus.COMPLETED:
        return weights.completed
    if status == MilestoneStatus.PENDING_APPROVAL:
        return weights.pending_approval
    if status == MilestoneStatus.QUERIED:
        return weights.queried
    if raw_status == MilestoneStatus.IN_PROGRESS:
        return weights.in_progress_started
    return weights.in_progress_not_started


def derive_group_status(statuses: Sequence[MilestoneStatus]) -> MilestoneStatus:
    """Apply the section precedence rule to a group of milestone statuses."""
    for candidate in _GROUP_PRECEDENCE:
        if candidate in statuses:
            return candidate
    if statuses and all(s == MilestoneStatus.COMPLETED for s in statuses):
        return MilestoneStatus.COMPLETED
    return MilestoneStatus.IN_PROGRESS


def round_percentage(value: Decimal | float) -> int:
    """Round half up to a whole percentage."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def completion_percentage(statuses: Sequence[MilestoneStatus]) -> int:
    """Share of COMPLETED milestones, 0 for an empty group."""
    if not statuses:
        return 0
    completed = sum(1 for s in statuses if s == MilestoneStatus.COMPLETED)
    return round_percentage(Decimal(100 * completed) / Decimal(len(statuses)))


def progress_percentage(weights: Sequence[int]) -> int:
    """Mean staircase weight, 0 for an empty group."""
    if not weights:
        return 0
    return round_percentage(Decimal(sum(weights)) / Decimal(len(weights)))


@dataclass
class MilestoneProgress:
    """Derived view of one milestone."""

    milestone_id: UUID
    title: str
    sort_order: int
    budget: Decimal
    raw_status: MilestoneStatus | None
    latest_submission_status: SubmissionStatus | None
    status: MilestoneStatus
    progress: int
    section_id: UUID | None = None


@dataclass
class GroupProgress:
    """Status and percentages of a group of milestones."""

    status: MilestoneStatus
    completion_percentage: int
    progress_percentage: int
    milestone_count: int


@dataclass
class SectionProgress:
    """Derived view of a section and its mapped milestones."""

    section_id: UUID
    name: str
    contractor_id: UUID | None
    status: MilestoneStatus
    completion_percentage: int
    progress_percentage: int
    milestones: list[MilestoneProgress] = field(default_factory=list)


@dataclass
class ProjectProgress:
    """Derived view of a project, grouped by section."""

    project_id: UUID
    status: MilestoneStatus
    completion_percentage: int
    progress_percentage: int
    milestone_count: int
    sections: list[SectionProgress] = field(default_factory=list)
    unassigned: list[MilestoneProgress] = field(default_factory=list)


@dataclass
class BudgetSummary:
    """Budget position of a project."""

    project_id: UUID
    currency: str
    total_budget: Decimal
    allocated: Decimal
    approved_value: Decimal
    pending_value: Decimal
    remaining: Decimal
    over_allocated: bool


@dataclass
class DashboardStats:
    """Headline counts for the dashboard."""

    total_projects: int
    active_projects: int
    completed_projects: int
    pending_submissions: int
    completion_rate: int
    active_consultants: int


def summarize(milestones: Sequence[MilestoneProgress]) -> GroupProgress:
    """Aggregate derived milestone views into group figures."""
    statuses = [m.status for m in milestones]
    return GroupProgress(
        status=derive_group_status(statuses),
        completion_percentage=completion_percentage(statuses),
        progress_percentage=progress_percentage([m.progress for m in milestones]),
        milestone_count=len(milestones),
    )


class ProgressAggregator:
    """Loads milestone state and derives progress views.

    Attributes:
        weights: Staircase weights per milestone status.
    """

    def __init__(self, weights: ProgressWeights | None = None) -> None:
        self.weights = weights or ProgressWeights()
        self.logger = logger.bind(component="ProgressAggregator")

    async def describe_milestones(
        self,
        session: AsyncSession,
        milestones: Sequence[Milestone],
        section_map: dict[UUID, UUID] | None = None,
    ) -> list[MilestoneProgress]:
        """Derive status and weight for each milestone."""
        latest = await milestone_queries.latest_submission_statuses(
            session, [m.id for m in milestones]
        )
        section_map = section_map or {}

        views = []
        for milestone in milestones:
            latest_status = latest.get(milestone.id)
            status = derive_milestone_status(milestone.status, latest_status)
            views.append(
                MilestoneProgress(
                    milestone_id=milestone.id,
                    title=milestone.title,
                    sort_order=milestone.sort_order,
                    budget=milestone.budget,
                    raw_status=milestone.status,
                    latest_submission_status=latest_status,
                    status=status,
                    progress=milestone_weight(status, milestone.status, self.weights),
                    section_id=section_map.get(milestone.id),
                )
            )
        return views

    async def milestone_status(
        self,
        session: AsyncSession,
        actor: ActorContext,
        milestone_id: UUID,
    ) -> MilestoneProgress:
        """Derived view of a single milestone."""
        milestone, _ = await registry.load_visible_milestone(session, actor, milestone_id)
        section_id = await section_queries.get_section_for_milestone(session, milestone_id)
        section_map = {milestone_id: section_id} if section_id else {}
        views = await self.describe_milestones(session, [milestone], section_map)
        return views[0]

    async def section_progress(
        self,
        session: AsyncSession,
        actor: ActorContext,
        section_id: UUID,
    ) -> SectionProgress:
        """Status and progress of a section over its mapped milestones."""
        section, _ = await registry.load_visible_section(session, actor, section_id)
        milestone_ids = await section_queries.section_milestone_ids(session, section_id)
        milestones = await milestone_queries.get_milestones_by_ids(session, milestone_ids)
        assignment = await section_queries.get_assignment(session, section_id)

        views = await self.describe_milestones(
            session, milestones, {mid: section_id for mid in milestone_ids}
        )
        group = summarize(views)
        return SectionProgress(
            section_id=section.id,
            name=section.name,
            contractor_id=assignment.contractor_id if assignment else None,
            status=group.status,
            completion_percentage=group.completion_percentage,
            progress_percentage=group.progress_percentage,
            milestones=views,
        )

    async def project_progress(
        self,
        session: AsyncSession,
        actor: ActorContext,
        project_id: UUID,
    ) -> ProjectProgress:
        """Project rollup with per-section groups and the unassigned bucket."""
        await registry.load_visible_project(session, actor, project_id)
        milestones = await milestone_queries.list_project_milestones(session, project_id)
        sections = await section_queries.list_sections(session, project_id)
        section_map = await section_queries.project_section_map(session, project_id)
        assignments = await section_queries.list_assignments(session, [s.id for s in sections])

        views = await self.describe_milestones(session, milestones, section_map)

        section_views = []
        for section in sections:
            members = [v for v in views if v.section_id == section.id]
            group = summarize(members)
            section_views.append(
                SectionProgress(
                    section_id=section.id,
                    name=section.name,
                    contractor_id=assignments.get(section.id),
                    status=group.status,
                    completion_percentage=group.completion_percentage,
                    progress_percentage=group.progress_percentage,
                    milestones=members,
                )
            )

        project_group = summarize(views)
        self.logger.debug(
            "project_progress_computed",
            project_id=str(project_id),
            milestone_count=project_group.milestone_count,
            progress=project_group.progress_percentage,
        )
        return ProjectProgress(
            project_id=project_id,
            status=project_group.status,
            completion_percentage=project_group.completion_percentage,
            progress_percentage=project_group.progress_percentage,
            milestone_count=project_group.milestone_count,
            sections=section_views,
            unassigned=[v for v in views if v.section_id is None],
        )

    async def budget_summary(
        self,
        session: AsyncSession,
        actor: ActorContext,
        project_id: UUID,
    ) -> BudgetSummary:
        """Allocated, approved and pending value against the project budget."""
        project = await registry.load_visible_project(session, actor, project_id)
        milestones = await milestone_queries.list_project_milestones(session, project_id)
        views = await self.describe_milestones(session, milestones)

        zero = Decimal("0")
        total = Decimal(project.total_budget)
        allocated = sum((v.budget for v in views), zero)
        approved = sum(
            (v.budget for v in views if v.status == MilestoneStatus.COMPLETED), zero
        )
        pending = sum(
            (v.budget for v in views if v.status == MilestoneStatus.PENDING_APPROVAL), zero
        )
        return BudgetSummary(
            project_id=project_id,
            currency=project.currency,
            total_budget=total,
            allocated=allocated,
            approved_value=approved,
            pending_value=pending,
            remaining=total - approved,
            over_allocated=allocated > total,
        )

    async def dashboard_stats(
        self,
        session: AsyncSession,
        actor: ActorContext,
    ) -> DashboardStats:
        """Headline counts over the projects visible to the actor."""
        projects = await registry.list_projects(session, actor)
        project_ids = [p.id for p in projects]
        counts = await submission_queries.count_submissions_by_status(session, project_ids)
        consultants = await actor_queries.count_active_actors(session, ActorRole.CONSULTANT)

        total = len(projects)
        completed = sum(1 for p in projects if p.status == ProjectStatus.COMPLETED)
        return DashboardStats(
            total_projects=total,
            active_projects=sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
            completed_projects=completed,
            pending_submissions=counts.get(SubmissionStatus.PENDING_APPROVAL, 0),
            completion_rate=round_percentage(Decimal(100 * completed) / Decimal(total))
            if total
            else 0,
            active_consultants=consultants,
        )
