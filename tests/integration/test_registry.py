"""Integration tests for the project, section and milestone registry.

Covers project creation with budget checks, role guards, visibility rules
per role, section mapping exclusivity, contractor (re)assignment and the
admin milestone status override.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.milestone import MilestoneStatus
from sitetrack.database.models.notification import EventType
from sitetrack.database.models.project import ProjectStatus
from sitetrack.database.queries import notification as notification_queries
from sitetrack.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from sitetrack.storage import EvidenceFile
from sitetrack.workflow import registry
from sitetrack.workflow.registry import MilestoneDraft


class TestRegisterActor:
    """Test actor profile registration."""

    @pytest.mark.asyncio
    async def test_bootstrap_without_actor(self, db_session):
        actor = await registry.register_actor(db_session, None, ActorRole.ADMIN, "  Root  ")
        assert actor.full_name == "Root"
        assert actor.role == ActorRole.ADMIN
        assert actor.is_active is True

    @pytest.mark.asyncio
    async def test_non_admin_cannot_register(self, db_session, consultant):
        with pytest.raises(AuthorizationError):
            await registry.register_actor(
                db_session, consultant, ActorRole.CONTRACTOR, "Someone"
            )

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, db_session, admin):
        with pytest.raises(ValidationError):
            await registry.register_actor(db_session, admin, ActorRole.CONTRACTOR, "   ")

    @pytest.mark.asyncio
    async def test_duplicate_id_is_conflict(self, db_session, admin):
        actor_id = uuid4()
        await registry.register_actor(
            db_session, admin, ActorRole.CONTRACTOR, "First", actor_id=actor_id
        )
        with pytest.raises(ConflictError):
            await registry.register_actor(
                db_session, admin, ActorRole.CONTRACTOR, "Second", actor_id=actor_id
            )


class TestCreateProject:
    """Test project creation with milestone plans."""

    @pytest.mark.asyncio
    async def test_creates_draft_project_with_ordered_milestones(self, db_session, admin):
        result = await registry.create_project(
            db_session,
            admin,
            title="Primary Health Centre",
            total_budget=Decimal("500000"),
            milestones=[
                MilestoneDraft(title="Site clearing", due_date=date(2026, 1, 10), budget=100),
                MilestoneDraft(title="Roofing", due_date=date(2026, 4, 10), budget=200),
            ],
        )

        assert result.project.status == ProjectStatus.DRAFT
        assert result.project.created_by == admin.actor_id
        assert result.project.currency == "NGN"
        assert [m.title for m in result.milestones] == ["Site clearing", "Roofing"]
        assert [m.sort_order for m in result.milestones] == [0, 1]
        assert all(m.status is None for m in result.milestones)
        assert result.allocated_budget == Decimal("300")
        assert result.budget_warning is None

    @pytest.mark.asyncio
    async def test_non_admin_cannot_create(self, db_session, consultant):
        with pytest.raises(AuthorizationError):
            await registry.create_project(
                db_session, consultant, title="X", total_budget=1, milestones=[]
            )

    @pytest.mark.asyncio
    async def test_milestone_without_due_date_rejected(self, db_session, admin):
        with pytest.raises(ValidationError, match="due date"):
            await registry.create_project(
                db_session,
                admin,
                title="Borehole",
                total_budget=100,
                milestones=[MilestoneDraft(title="Drilling", due_date=None)],
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("budget", ["-1", "abc", "NaN", True])
    async def test_invalid_budget_rejected(self, db_session, admin, budget):
        with pytest.raises(ValidationError):
            await registry.create_project(
                db_session, admin, title="Borehole", total_budget=budget, milestones=[]
            )

    @pytest.mark.asyncio
    async def test_over_allocation_warns_by_default(self, db_session, admin):
        result = await registry.create_project(
            db_session,
            admin,
            title="Market stalls",
            total_budget=100,
            milestones=[MilestoneDraft(title="Stalls", due_date=date(2026, 2, 1), budget=150)],
        )
        assert result.budget_warning is not None
        assert result.allocated_budget == Decimal("150")

    @pytest.mark.asyncio
    async def test_over_allocation_rejected_in_strict_mode(self, db_session, admin):
        with pytest.raises(ValidationError, match="exceed"):
            await registry.create_project(
                db_session,
                admin,
                title="Market stalls",
                total_budget=100,
                milestones=[
                    MilestoneDraft(title="Stalls", due_date=date(2026, 2, 1), budget=150)
                ],
                strict_budget=True,
            )


class TestVisibility:
    """Test which actors can see a project."""

    @pytest.mark.asyncio
    async def test_consultant_sees_supervised_project(self, db_session, staged_project, consultant):
        project = await registry.get_project(db_session, consultant, staged_project.project_id)
        assert project.id == staged_project.project_id

    @pytest.mark.asyncio
    async def test_other_consultant_gets_not_found(
        self, db_session, staged_project, other_consultant
    ):
        with pytest.raises(NotFoundError):
            await registry.get_project(db_session, other_consultant, staged_project.project_id)

    @pytest.mark.asyncio
    async def test_pool_contractor_sees_project(self, db_session, staged_project, contractor):
        projects = await registry.list_projects(db_session, contractor)
        assert [p.id for p in projects] == [staged_project.project_id]

    @pytest.mark.asyncio
    async def test_outside_contractor_sees_nothing(
        self, db_session, staged_project, other_contractor
    ):
        assert await registry.list_projects(db_session, other_contractor) == []
        with pytest.raises(NotFoundError):
            await registry.list_milestones(
                db_session, other_contractor, staged_project.project_id
            )

    @pytest.mark.asyncio
    async def test_admin_lists_with_status_filter(self, db_session, staged_project, admin):
        assert await registry.list_projects(
            db_session, admin, status_filter=ProjectStatus.ACTIVE
        ) == []
        await registry.update_project_status(
            db_session, admin, staged_project.project_id, ProjectStatus.ACTIVE
        )
        active = await registry.list_projects(db_session, admin, status_filter=ProjectStatus.ACTIVE)
        assert [p.id for p in active] == [staged_project.project_id]


class TestProjectAdministration:
    """Test consultant assignment and the contractor pool."""

    @pytest.mark.asyncio
    async def test_assign_consultant_requires_consultant_role(
        self, db_session, staged_project, admin, contractor
    ):
        with pytest.raises(ValidationError):
            await registry.assign_consultant(
                db_session, admin, staged_project.project_id, contractor.actor_id
            )

    @pytest.mark.asyncio
    async def test_reassigning_consultant_moves_visibility(
        self, db_session, staged_project, admin, consultant, other_consultant
    ):
        await registry.assign_consultant(
            db_session, admin, staged_project.project_id, other_consultant.actor_id
        )
        await registry.get_project(db_session, other_consultant, staged_project.project_id)
        with pytest.raises(NotFoundError):
            await registry.get_project(db_session, consultant, staged_project.project_id)

    @pytest.mark.asyncio
    async def test_pool_add_is_idempotent(
        self, db_session, staged_project, consultant, other_contractor
    ):
        added = await registry.add_project_contractor(
            db_session, consultant, staged_project.project_id, other_contractor.actor_id
        )
        again = await registry.add_project_contractor(
            db_session, consultant, staged_project.project_id, other_contractor.actor_id
        )
        pool = await registry.get_project_contractors(
            db_session, consultant, staged_project.project_id
        )
        assert added is True
        assert again is False
        assert [a.full_name for a in pool] == ["Bayo Builders Ltd", "Kano Civil Works"]

    @pytest.mark.asyncio
    async def test_contractor_cannot_manage_pool(
        self, db_session, staged_project, contractor, other_contractor
    ):
        with pytest.raises(AuthorizationError):
            await registry.add_project_contractor(
                db_session, contractor, staged_project.project_id, other_contractor.actor_id
            )


class TestSections:
    """Test section creation and contractor assignment."""

    @pytest.mark.asyncio
    async def test_milestone_in_two_sections_is_conflict(
        self, db_session, staged_project, consultant
    ):
        with pytest.raises(ConflictError):
            await registry.create_section(
                db_session,
                consultant,
                staged_project.project_id,
                "Electrical",
                [staged_project.milestone_ids[0], staged_project.milestone_ids[2]],
            )
        unassigned = await registry.list_unassigned_milestones(
            db_session, consultant, staged_project.project_id
        )
        assert [m.title for m in unassigned] == ["Finishing"]

    @pytest.mark.asyncio
    async def test_foreign_milestone_rejected(self, db_session, staged_project, consultant):
        with pytest.raises(ValidationError):
            await registry.create_section(
                db_session, consultant, staged_project.project_id, "Electrical", [uuid4()]
            )

    @pytest.mark.asyncio
    async def test_contractor_cannot_create_section(
        self, db_session, staged_project, contractor
    ):
        with pytest.raises(AuthorizationError):
            await registry.create_section(
                db_session,
                contractor,
                staged_project.project_id,
                "Electrical",
                [staged_project.milestone_ids[2]],
            )

    @pytest.mark.asyncio
    async def test_reassignment_replaces_contractor(
        self, db_session, staged_project, consultant, contractor, other_contractor
    ):
        result = await registry.assign_contractor(
            db_session, consultant, staged_project.section_id, other_contractor.actor_id
        )
        assert result.changed is True
        assert result.previous_contractor_id == contractor.actor_id

        # New contractor joins the pool and therefore sees the project
        projects = await registry.list_projects(db_session, other_contractor)
        assert [p.id for p in projects] == [staged_project.project_id]

        events = await notification_queries.list_events(
            db_session,
            project_id=staged_project.project_id,
            event_type=EventType.CONTRACTOR_ASSIGNED,
        )
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_same_contractor_is_noop(
        self, db_session, staged_project, consultant, contractor
    ):
        result = await registry.assign_contractor(
            db_session, consultant, staged_project.section_id, contractor.actor_id
        )
        assert result.changed is False


class TestMilestoneStatusOverride:
    """Test the admin override of a milestone's raw status."""

    @pytest.mark.asyncio
    async def test_mark_started(self, db_session, staged_project, admin):
        milestone = await registry.mark_milestone_status(
            db_session, admin, staged_project.milestone_ids[0], MilestoneStatus.IN_PROGRESS
        )
        assert milestone.status == MilestoneStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_only_admin_may_override(self, db_session, staged_project, consultant):
        with pytest.raises(AuthorizationError):
            await registry.mark_milestone_status(
                db_session,
                consultant,
                staged_project.milestone_ids[0],
                MilestoneStatus.COMPLETED,
            )

    @pytest.mark.asyncio
    async def test_pending_status_not_settable(self, db_session, staged_project, admin):
        with pytest.raises(ValidationError):
            await registry.mark_milestone_status(
                db_session,
                admin,
                staged_project.milestone_ids[0],
                MilestoneStatus.PENDING_APPROVAL,
            )

    @pytest.mark.asyncio
    async def test_cannot_complete_milestone_with_submissions(
        self, db_session, staged_project, admin, contractor, state_machine
    ):
        milestone_id = staged_project.milestone_ids[0]
        await state_machine.create_submission(
            db_session,
            contractor,
            milestone_id,
            "Foundation poured",
            evidence_files=[EvidenceFile("slab.jpg", "image/jpeg", b"jpeg-bytes")],
        )
        with pytest.raises(ConflictError):
            await registry.mark_milestone_status(
                db_session, admin, milestone_id, MilestoneStatus.COMPLETED
            )
        with pytest.raises(ConflictError):
            await registry.mark_milestone_status(
                db_session, admin, milestone_id, MilestoneStatus.IN_PROGRESS
            )
