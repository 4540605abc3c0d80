"""Notification outbox model for SiteTrack.

Every workflow state transition writes one NotificationEvent in the same
transaction as the transition itself. A relay later delivers pending events
to the configured webhook endpoints, so each transition is announced once
even if delivery is retried.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from sitetrack.database.models.base import Base, TimestampMixin


class EventType(str, enum.Enum):
    """Logical events emitted by the workflow engine."""

    SUBMISSION_CREATED = "submission.created"
    SUBMISSION_APPROVED = "submission.approved"
    SUBMISSION_QUERIED = "submission.queried"
    SUBMISSION_REJECTED = "submission.rejected"
    COMMENT_CREATED = "comment.created"
    SECTION_NOTICE = "section.notice"
    CONTRACTOR_ASSIGNED = "section.contractor_assigned"


class DeliveryStatus(enum.Enum):
    """Outbox delivery state."""

    pending = "pending"
    delivered = "delivered"
    failed = "failed"


class NotificationEvent(TimestampMixin, Base):
    """A workflow event awaiting (or done with) delivery.

    Attributes:
        event_type: Dotted event name, see EventType.
        project_id: Project the event concerns.
        subject_id: Entity that changed (submission, comment, section).
        recipient_id: Actor the event is addressed to, if any.
        payload: Event-specific data.
        status: Delivery state.
        attempts: Delivery attempts made so far.
        delivered_at: Time of successful delivery.
        error_message: Last delivery error.
    """

    __tablename__ = "notification_events"

    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    subject_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[DeliveryStatus] = mapped_column(
        default=DeliveryStatus.pending,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
