"""Actor query functions for SiteTrack.

Query functions in this package add and flush rows but never commit; the
calling workflow operation owns the transaction (see unit_of_work).
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitetrack.database.models.actor import Actor, ActorRole

logger = structlog.get_logger(__name__)


async def create_actor(
    session: AsyncSession,
    role: ActorRole,
    full_name: str,
    email: str | None = None,
    actor_id: UUID | None = None,
) -> Actor:
    """Create an actor profile.

    Args:
        session: Active async database session.
        role: Fixed actor role.
        full_name: Display name.
        email: Optional contact address.
        actor_id: Identity-provider id to reuse; generated when omitted.

    Returns:
        The newly created Actor instance.
    """
    actor = Actor(role=role, full_name=full_name, email=email)
    if actor_id is not None:
        actor.id = actor_id
    session.add(actor)
    await session.flush()

    logger.info("actor_created", actor_id=str(actor.id), role=role.value)
    return actor


async def get_actor(session: AsyncSession, actor_id: UUID) -> Actor | None:
    """Retrieve an actor by ID."""
    result = await session.execute(select(Actor).where(Actor.id == actor_id))
    return result.scalar_one_or_none()


async def get_actors_by_ids(
    session: AsyncSession,
    actor_ids: Iterable[UUID],
) -> dict[UUID, Actor]:
    """Retrieve several actors keyed by ID; unknown IDs are omitted."""
    ids = set(actor_ids)
    if not ids:
        return {}
    result = await session.execute(select(Actor).where(Actor.id.in_(ids)))
    return {actor.id: actor for actor in result.scalars().all()}


async def list_actors(
    session: AsyncSession,
    role_filter: ActorRole | None = None,
) -> list[Actor]:
    """List actors, optionally filtered by role, ordered by name."""
    stmt = select(Actor)
    if role_filter is not None:
        stmt = stmt.where(Actor.role == role_filter)
    stmt = stmt.order_by(Actor.full_name.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_active_actors(session: AsyncSession, role: ActorRole) -> int:
    """Count active actors holding a role."""
    result = await session.execute(
        select(func.count(Actor.id)).where(Actor.role == role, Actor.is_active.is_(True))
    )
    return result.scalar_one()
