"""Section models for SiteTrack.

A section groups milestones of one project and is worked by at most one
contractor. The milestone mapping is unique per milestone, so the store
itself rejects a milestone being mapped to two sections.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from sitetrack.database.models.base import Base, TimestampMixin, utcnow


class Section(TimestampMixin, Base):
    """A named work package inside a project.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        project_id: Owning project.
        name: Section name, e.g. "Civil Works".
        description: Optional description.
    """

    __tablename__ = "sections"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class SectionAssignment(Base):
    """The contractor currently responsible for a section."""

    __tablename__ = "section_assignments"

    section_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sections.id"),
        primary_key=True,
    )
    contractor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("actors.id"),
        nullable=False,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )


class SectionMilestone(Base):
    """Mapping of a milestone to the section that contains it."""

    __tablename__ = "section_milestones"

    milestone_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("milestones.id"),
        primary_key=True,
    )
    section_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sections.id"),
        nullable=False,
        index=True,
    )
