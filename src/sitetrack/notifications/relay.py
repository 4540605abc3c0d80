"""Outbox relay: delivers pending notification events.

Workflow operations only write NotificationEvent rows. The relay drains
them in batches through the webhook dispatcher and records the outcome of
each attempt; events that keep failing are parked as failed after
max_attempts.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.connection import unit_of_work
from sitetrack.database.queries import notification as notification_queries
from sitetrack.notifications.webhooks import WebhookDispatcher

logger = structlog.get_logger(__name__)


@dataclass
class RelayReport:
    """Outcome of one relay pass."""

    attempted: int = 0
    delivered: int = 0
    retrying: int = 0
    failed: int = 0


class NotificationRelay:
    """Moves outbox events to the webhook dispatcher.

    Attributes:
        dispatcher: Webhook dispatcher used for delivery.
        max_attempts: Attempts before an event is marked failed.
    """

    def __init__(self, dispatcher: WebhookDispatcher, max_attempts: int = 5) -> None:
        self.dispatcher = dispatcher
        self.max_attempts = max_attempts
        self.logger = logger.bind(component="NotificationRelay")

    async def deliver_pending(self, session: AsyncSession, limit: int = 50) -> RelayReport:
        """Deliver up to ``limit`` pending events, oldest first.

        Args:
            session: Database session used to read and mark events.
            limit: Maximum number of events handled in this pass.

        Returns:
            Counts of delivered, retrying and failed events.
        """
        report = RelayReport()
        events = await notification_queries.get_pending_events(session, limit=limit)

        for event in events:
            report.attempted += 1
            data = {
                "project_id": str(event.project_id),
                "subject_id": str(event.subject_id),
                "recipient_id": str(event.recipient_id) if event.recipient_id else None,
                **event.payload,
            }
            delivered = await self.dispatcher.send(
                event.event_type, data, event_id=str(event.id)
            )

            async with unit_of_work(session):
                if delivered:
                    await notification_queries.mark_delivered(session, event.id)
                    report.delivered += 1
                else:
                    give_up = event.attempts + 1 >= self.max_attempts
                    await notification_queries.mark_attempt_failed(
                        session,
                        event.id,
                        error_message="webhook delivery failed",
                        give_up=give_up,
                    )
                    if give_up:
                        report.failed += 1
                    else:
                        report.retrying += 1

        self.logger.info(
            "relay_pass_complete",
            attempted=report.attempted,
            delivered=report.delivered,
            retrying=report.retrying,
            failed=report.failed,
        )
        return report
