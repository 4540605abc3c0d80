"""Submission, evidence and material-usage models for SiteTrack.

A submission is a contractor's claim that a milestone's work is done,
backed by evidence files and a log of materials used. Submissions are
reviewed exactly once; a queried milestone gets a new submission rather
than a reopened one. Evidence and material rows are append-only and belong
to exactly one submission.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitetrack.database.models.base import Base, TimestampMixin, utcnow


class SubmissionStatus(enum.Enum):
    """State machine for a single submission.

    States:
        PENDING_APPROVAL: Awaiting consultant review.
        APPROVED: Accepted; the milestone is complete.
        QUERIED: Consultant asked for more information.
        REJECTED: Consultant rejected the claim outright.
    """

    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    QUERIED = "QUERIED"
    REJECTED = "REJECTED"


class Submission(TimestampMixin, Base):
    """A contractor's evidence-backed claim against a milestone.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        milestone_id: Milestone this submission claims.
        contractor_id: Submitting contractor.
        status: Current submission state.
        work_description: Contractor's description of the work done.
        query_note: Consultant's note, set when queried or rejected.
        submitted_at: Submission time.
        reviewed_at: Time of the consultant decision.
        reviewed_by_consultant_id: Consultant who made the decision.
        sequence: Attempt number for the milestone, starting at 1.
        idempotency_key: Optional client key deduplicating retried creates.
        evidence: Evidence files attached at creation.
        materials: Material usage entries attached at creation.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("milestone_id", "sequence", name="uq_submission_sequence"),
        UniqueConstraint(
            "contractor_id", "idempotency_key", name="uq_submission_idempotency"
        ),
    )

    milestone_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("milestones.id"),
        nullable=False,
        index=True,
    )
    contractor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("actors.id"),
        nullable=False,
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        default=SubmissionStatus.PENDING_APPROVAL,
        nullable=False,
    )
    work_description: Mapped[str] = mapped_column(Text, nullable=False)
    query_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reviewed_by_consultant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("actors.id"),
        nullable=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    evidence: Mapped[list["Evidence"]] = relationship(
        "Evidence",
        lazy="selectin",
        order_by="Evidence.created_at",
    )
    materials: Mapped[list["MaterialUsage"]] = relationship(
        "MaterialUsage",
        lazy="selectin",
        order_by="MaterialUsage.created_at",
    )


class Evidence(TimestampMixin, Base):
    """An evidence file stored in the blob store.

    Attributes:
        submission_id: Owning submission.
        file_path: Opaque blob store key; never a URL.
        file_name: Original file name.
        file_type: MIME type reported at upload.
        file_size: Size in bytes.
    """

    __tablename__ = "evidence"

    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id"),
        nullable=False,
        index=True,
    )
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)


class MaterialUsage(TimestampMixin, Base):
    """A material quantity consumed for the submitted work.

    Attributes:
        submission_id: Owning submission.
        material_name: Material, e.g. "Concrete".
        quantity: Amount used.
        unit: Unit of measure, e.g. "m³".
    """

    __tablename__ = "material_usages"

    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id"),
        nullable=False,
        index=True,
    )
    material_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
