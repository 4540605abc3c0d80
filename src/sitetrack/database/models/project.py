"""Project model for SiteTrack.

Defines the Project table, the ProjectStatus enum, and the contractor pool
join table linking projects to the contractors working on them.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sitetrack.database.models.base import Base, TimestampMixin, utcnow


class ProjectStatus(enum.Enum):
    """Lifecycle status for a project.

    States:
        DRAFT: Project is being set up.
        ACTIVE: Work is underway.
        COMPLETED: All work finished and signed off.
        SUSPENDED: Work halted by the administrator.
    """

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    SUSPENDED = "SUSPENDED"


class Project(TimestampMixin, Base):
    """A government-funded infrastructure project.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        title: Project title.
        description: Free-text project description.
        location: Site location, e.g. "Lagos Mainland, Lagos".
        total_budget: Approved project budget.
        currency: ISO 4217 currency code.
        status: Current lifecycle status.
        consultant_id: The single consultant supervising the project, if any.
        created_by: Admin actor who created the project.
    """

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_budget: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="NGN")
    status: Mapped[ProjectStatus] = mapped_column(
        default=ProjectStatus.DRAFT,
        nullable=False,
    )
    consultant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("actors.id"),
        nullable=True,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("actors.id"),
        nullable=True,
    )


class ProjectContractor(Base):
    """Membership of a contractor in a project's contractor pool."""

    __tablename__ = "project_contractors"
    __table_args__ = (
        UniqueConstraint("project_id", "contractor_id", name="uq_project_contractor"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id"),
        nullable=False,
    )
    contractor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("actors.id"),
        nullable=False,
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
