"""Project comment query functions for SiteTrack."""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.actor import Actor, ActorRole
from sitetrack.database.models.comment import Comment

logger = structlog.get_logger(__name__)


async def next_sequence(session: AsyncSession, project_id: UUID) -> int:
    """Return the next comment sequence number for a project."""
    result = await session.execute(
        select(func.max(Comment.sequence)).where(Comment.project_id == project_id)
    )
    current = result.scalar_one_or_none()
    return (current or 0) + 1


async def insert_comment(
    session: AsyncSession,
    project_id: UUID,
    author_id: UUID,
    body: str,
) -> Comment:
    """Append a comment to a project's stream."""
    comment = Comment(
        project_id=project_id,
        author_id=author_id,
        body=body,
        sequence=await next_sequence(session, project_id),
    )
    session.add(comment)
    await session.flush()

    logger.info(
        "comment_inserted",
        comment_id=str(comment.id),
        project_id=str(project_id),
        sequence=comment.sequence,
    )
    return comment


async def list_comments_with_authors(
    session: AsyncSession,
    project_id: UUID,
) -> list[tuple[Comment, str | None, ActorRole | None]]:
    """List a project's comments newest first with author name and role.

    Authors that no longer resolve yield None for name and role.
    """
    result = await session.execute(
        select(Comment, Actor.full_name, Actor.role)
        .outerjoin(Actor, Actor.id == Comment.author_id)
        .where(Comment.project_id == project_id)
        .order_by(Comment.created_at.desc(), Comment.sequence.desc())
    )
    return [(row[0], row[1], row[2]) for row in result.all()]


async def list_comments(
    session: AsyncSession,
    project_id: UUID,
) -> list[Comment]:
    """List a project's comments newest first, without author details."""
    result = await session.execute(
        select(Comment)
        .where(Comment.project_id == project_id)
        .order_by(Comment.created_at.desc(), Comment.sequence.desc())
    )
    return list(result.scalars().all())
