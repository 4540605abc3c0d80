"""Milestone model for SiteTrack.

A milestone is a unit of contracted work inside a project. Its stored
``status`` is only a raw marker; the status shown to users is derived from
the milestone's most recent submission by the progress aggregator.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from sitetrack.database.models.base import Base, TimestampMixin


class MilestoneStatus(enum.Enum):
    """Milestone status values.

    States:
        IN_PROGRESS: Work underway, no submission awaiting review.
        PENDING_APPROVAL: Latest submission awaits consultant review.
        QUERIED: Latest submission was queried by the consultant.
        COMPLETED: Latest submission approved (or completed by an admin).
    """

    IN_PROGRESS = "IN_PROGRESS"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    QUERIED = "QUERIED"
    COMPLETED = "COMPLETED"


class Milestone(TimestampMixin, Base):
    """A budgeted, dated unit of work within a project.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        project_id: Owning project.
        title: Short milestone title.
        description: Optional detailed description.
        sort_order: Position within the project's milestone plan.
        due_date: Contractual due date.
        budget: Amount allocated to this milestone.
        status: Raw status marker; None until work is recorded.
    """

    __tablename__ = "milestones"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    budget: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=0)
    status: Mapped[MilestoneStatus | None] = mapped_column(nullable=True)
