"""Initial schema for SiteTrack.

Creates the actor, project, section, milestone, submission, comment and
notification outbox tables together with their enum types.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTOR_ROLES = ("ADMIN", "CONSULTANT", "CONTRACTOR")
PROJECT_STATUSES = ("DRAFT", "ACTIVE", "COMPLETED", "SUSPENDED")
MILESTONE_STATUSES = ("IN_PROGRESS", "PENDING_APPROVAL", "QUERIED", "COMPLETED")
SUBMISSION_STATUSES = ("PENDING_APPROVAL", "APPROVED", "QUERIED", "REJECTED")
DELIVERY_STATUSES = ("pending", "delivered", "failed")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, labels in (
        ("actorrole", ACTOR_ROLES),
        ("projectstatus", PROJECT_STATUSES),
        ("milestonestatus", MILESTONE_STATUSES),
        ("submissionstatus", SUBMISSION_STATUSES),
        ("deliverystatus", DELIVERY_STATUSES),
    ):
        sa.Enum(*labels, name=name).create(bind, checkfirst=True)

    def enum(name: str, labels: tuple[str, ...]) -> sa.Enum:
        return sa.Enum(*labels, name=name, create_type=False)

    # Actors table
    op.create_table(
        "actors",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("role", enum("actorrole", ACTOR_ROLES), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # Projects table
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("total_budget", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False, server_default="NGN"),
        sa.Column(
            "status",
            enum("projectstatus", PROJECT_STATUSES),
            nullable=False,
            server_default="DRAFT",
        ),
        sa.Column("consultant_id", sa.Uuid(), sa.ForeignKey("actors.id"), nullable=True),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("actors.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_projects_consultant", "projects", ["consultant_id"])

    # Contractor pool
    op.create_table(
        "project_contractors",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("contractor_id", sa.Uuid(), sa.ForeignKey("actors.id"), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("project_id", "contractor_id", name="uq_project_contractor"),
    )
    op.create_index(
        "idx_project_contractors_contractor", "project_contractors", ["contractor_id"]
    )

    # Milestones table
    op.create_table(
        "milestones",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("budget", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("status", enum("milestonestatus", MILESTONE_STATUSES), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_milestones_project_id", "milestones", ["project_id"])

    # Sections, their assignments and milestone mappings
    op.create_table(
        "sections",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sections_project_id", "sections", ["project_id"])

    op.create_table(
        "section_assignments",
        sa.Column("section_id", sa.Uuid(), sa.ForeignKey("sections.id"), primary_key=True),
        sa.Column("contractor_id", sa.Uuid(), sa.ForeignKey("actors.id"), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Primary key on milestone_id keeps each milestone in at most one section
    op.create_table(
        "section_milestones",
        sa.Column(
            "milestone_id", sa.Uuid(), sa.ForeignKey("milestones.id"), primary_key=True
        ),
        sa.Column("section_id", sa.Uuid(), sa.ForeignKey("sections.id"), nullable=False),
    )
    op.create_index("ix_section_milestones_section_id", "section_milestones", ["section_id"])

    # Submissions and their evidence and material rows
    op.create_table(
        "submissions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "milestone_id", sa.Uuid(), sa.ForeignKey("milestones.id"), nullable=False
        ),
        sa.Column("contractor_id", sa.Uuid(), sa.ForeignKey("actors.id"), nullable=False),
        sa.Column(
            "status",
            enum("submissionstatus", SUBMISSION_STATUSES),
            nullable=False,
            server_default="PENDING_APPROVAL",
        ),
        sa.Column("work_description", sa.Text(), nullable=False),
        sa.Column("query_note", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "reviewed_by_consultant_id",
            sa.Uuid(),
            sa.ForeignKey("actors.id"),
            nullable=True,
        ),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("milestone_id", "sequence", name="uq_submission_sequence"),
        sa.UniqueConstraint(
            "contractor_id", "idempotency_key", name="uq_submission_idempotency"
        ),
    )
    op.create_index("ix_submissions_milestone_id", "submissions", ["milestone_id"])
    op.create_index("idx_submissions_status", "submissions", ["status"])

    op.create_table(
        "evidence",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "submission_id", sa.Uuid(), sa.ForeignKey("submissions.id"), nullable=False
        ),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_type", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_evidence_submission_id", "evidence", ["submission_id"])

    op.create_table(
        "material_usages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "submission_id", sa.Uuid(), sa.ForeignKey("submissions.id"), nullable=False
        ),
        sa.Column("material_name", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("unit", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_material_usages_submission_id", "material_usages", ["submission_id"])

    # Project comments
    op.create_table(
        "project_comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("author_id", sa.Uuid(), sa.ForeignKey("actors.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_project_comments_project_id", "project_comments", ["project_id"])

    # Notification outbox
    op.create_table(
        "notification_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("subject_id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.Uuid(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            enum("deliverystatus", DELIVERY_STATUSES),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notification_events_project_id", "notification_events", ["project_id"])
    op.create_index("idx_notification_events_status", "notification_events", ["status"])


def downgrade() -> None:
    for table in (
        "notification_events",
        "project_comments",
        "material_usages",
        "evidence",
        "submissions",
        "section_milestones",
        "section_assignments",
        "sections",
        "milestones",
        "project_contractors",
        "projects",
        "actors",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in (
        "deliverystatus",
        "submissionstatus",
        "milestonestatus",
        "projectstatus",
        "actorrole",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)
