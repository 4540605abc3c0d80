"""Notification outbox query functions for SiteTrack.

Events are written with record_event inside the same transaction as the
state change they describe. The relay drains them with get_pending_events
and marks each delivery outcome.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.base import utcnow
from sitetrack.database.models.notification import (
    DeliveryStatus,
    EventType,
    NotificationEvent,
)

logger = structlog.get_logger(__name__)


async def record_event(
    session: AsyncSession,
    event_type: EventType,
    project_id: UUID,
    subject_id: UUID,
    recipient_id: UUID | None = None,
    payload: dict[str, Any] | None = None,
) -> NotificationEvent:
    """Add an outbox event to the current transaction.

    Args:
        session: Session whose transaction carries the state change.
        event_type: Logical event name.
        project_id: Project the event concerns.
        subject_id: Entity that changed.
        recipient_id: Actor to notify, if the event has a single recipient.
        payload: Event-specific JSON-serializable data.

    Returns:
        The pending NotificationEvent.
    """
    event = NotificationEvent(
        event_type=event_type.value,
        project_id=project_id,
        subject_id=subject_id,
        recipient_id=recipient_id,
        payload=payload or {},
        status=DeliveryStatus.pending,
        attempts=0,
    )
    session.add(event)
    await session.flush()

    logger.debug(
        "notification_event_recorded",
        event_id=str(event.id),
        event_type=event_type.value,
        project_id=str(project_id),
    )
    return event


async def get_pending_events(
    session: AsyncSession,
    limit: int = 50,
) -> list[NotificationEvent]:
    """Return undelivered events, oldest first."""
    result = await session.execute(
        select(NotificationEvent)
        .where(NotificationEvent.status == DeliveryStatus.pending)
        .order_by(NotificationEvent.created_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_events(
    session: AsyncSession,
    project_id: UUID | None = None,
    event_type: EventType | None = None,
) -> list[NotificationEvent]:
    """List outbox events, oldest first, optionally filtered."""
    stmt = select(NotificationEvent)
    if project_id is not None:
        stmt = stmt.where(NotificationEvent.project_id == project_id)
    if event_type is not None:
        stmt = stmt.where(NotificationEvent.event_type == event_type.value)
    stmt = stmt.order_by(NotificationEvent.created_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_delivered(
    session: AsyncSession,
    event_id: UUID,
    delivered_at: datetime | None = None,
) -> None:
    """Mark an event as delivered."""
    await session.execute(
        update(NotificationEvent)
        .where(NotificationEvent.id == event_id)
        .values(
            status=DeliveryStatus.delivered,
            attempts=NotificationEvent.attempts + 1,
            delivered_at=delivered_at or utcnow(),
            error_message=None,
        )
    )


async def mark_attempt_failed(
    session: AsyncSession,
    event_id: UUID,
    error_message: str,
    give_up: bool,
) -> None:
    """Record a failed delivery attempt.

    Args:
        session: Active async database session.
        event_id: Event that failed to deliver.
        error_message: Last error seen.
        give_up: Move the event to failed instead of leaving it pending.
    """
    values: dict[str, Any] = {
        "attempts": NotificationEvent.attempts + 1,
        "error_message": error_message,
    }
    if give_up:
        values["status"] = DeliveryStatus.failed

    await session.execute(
        update(NotificationEvent).where(NotificationEvent.id == event_id).values(**values)
    )


async def count_events_by_status(session: AsyncSession) -> dict[str, int]:
    """Count outbox events per delivery status."""
    result = await session.execute(
        select(NotificationEvent.status, func.count(NotificationEvent.id)).group_by(
            NotificationEvent.status
        )
    )
    counts = {status.value: 0 for status in DeliveryStatus}
    for status, count in result.all():
        counts[status.value] = count
    return counts
