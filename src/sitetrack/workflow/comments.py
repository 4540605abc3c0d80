"""Project collaboration log.

Comments are append-only. Listing joins author names and roles from the
actor profiles; when that join fails the plain comment list is returned with
empty author fields so the discussion stays readable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.auth import ActorContext
from sitetrack.database.connection import unit_of_work
from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.comment import Comment
from sitetrack.database.models.notification import EventType
from sitetrack.database.queries import comment as comment_queries
from sitetrack.database.queries import notification as notification_queries
from sitetrack.errors import ConflictError, ValidationError
from sitetrack.workflow import registry

logger = structlog.get_logger(__name__)


@dataclass
class CommentView:
    """A comment with its author's display details, when known."""

    id: UUID
    project_id: UUID
    author_id: UUID
    body: str
    sequence: int
    created_at: datetime
    author_name: str | None = None
    author_role: ActorRole | None = None


async def add_comment(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
    body: str,
) -> Comment:
    """Append a comment to a project visible to the actor.

    Raises:
        ValidationError: If the body is empty.
        NotFoundError: If the project does not exist or is not visible.
        ConflictError: If another comment took the same sequence number.
    """
    if not body or not body.strip():
        raise ValidationError("Comment body is required")

    try:
        async with unit_of_work(session):
            await registry.load_visible_project(session, actor, project_id)
            comment = await comment_queries.insert_comment(
                session, project_id, actor.actor_id, body.strip()
            )
            await notification_queries.record_event(
                session,
                EventType.COMMENT_CREATED,
                project_id=project_id,
                subject_id=comment.id,
                payload={"author_id": str(actor.actor_id), "body": comment.body},
            )
    except IntegrityError as e:
        raise ConflictError(
            "A concurrent comment was posted on this project",
            {"project_id": str(project_id)},
        ) from e

    logger.info("comment_created", comment_id=str(comment.id), project_id=str(project_id))
    return comment


async def list_comments(
    session: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
) -> list[CommentView]:
    """List a project's comments, newest first."""
    await registry.load_visible_project(session, actor, project_id)

    try:
        rows = await comment_queries.list_comments_with_authors(session, project_id)
    except SQLAlchemyError as e:
        logger.warning(
            "comment_author_join_failed",
            project_id=str(project_id),
            error=str(e),
        )
        await session.rollback()
        plain = await comment_queries.list_comments(session, project_id)
        return [_view(comment) for comment in plain]

    return [_view(comment, name, role) for comment, name, role in rows]


def _view(
    comment: Comment,
    author_name: str | None = None,
    author_role: ActorRole | None = None,
) -> CommentView:
    return CommentView(
        id=comment.id,
        project_id=comment.project_id,
        author_id=comment.author_id,
        body=comment.body,
        sequence=comment.sequence,
        created_at=comment.created_at,
        author_name=author_name,
        author_role=author_role,
    )
