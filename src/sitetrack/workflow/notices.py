"""Section notices sent to the assigned contractor."""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.auth import ActorContext
from sitetrack.database.connection import unit_of_work
from sitetrack.database.models.notification import EventType, NotificationEvent
from sitetrack.database.queries import notification as notification_queries
from sitetrack.database.queries import section as section_queries
from sitetrack.errors import ConflictError, ValidationError
from sitetrack.workflow import registry

logger = structlog.get_logger(__name__)


async def send_section_notice(
    session: AsyncSession,
    actor: ActorContext,
    section_id: UUID,
    title: str,
    message: str,
) -> NotificationEvent:
    """Queue a notice for the contractor working a section.

    Raises:
        ValidationError: If the title or message is empty.
        AuthorizationError: If the actor is not an admin or the consultant.
        ConflictError: If the section has no contractor.
    """
    if not title or not title.strip():
        raise ValidationError("Notice title is required")
    if not message or not message.strip():
        raise ValidationError("Notice message is required")

    async with unit_of_work(session):
        section, project = await registry.load_visible_section(session, actor, section_id)
        registry.ensure_can_manage(actor, project, "send section notices")

        assignment = await section_queries.get_assignment(session, section_id)
        if assignment is None:
            raise ConflictError(
                "Section has no assigned contractor",
                {"section_id": str(section_id)},
            )

        event = await notification_queries.record_event(
            session,
            EventType.SECTION_NOTICE,
            project_id=project.id,
            subject_id=section_id,
            recipient_id=assignment.contractor_id,
            payload={
                "section_name": section.name,
                "title": title.strip(),
                "message": message.strip(),
                "sent_by": str(actor.actor_id),
            },
        )

    logger.info(
        "section_notice_queued",
        section_id=str(section_id),
        recipient_id=str(assignment.contractor_id),
        event_id=str(event.id),
    )
    return event
