"""CLI sub-command groups for SiteTrack."""

from __future__ import annotations

from uuid import UUID

from sitetrack.auth import ActorContext
from sitetrack.database.models.actor import ActorRole

# Operator identity used when a command runs without --as
SYSTEM_ACTOR = ActorContext(actor_id=UUID(int=0), role=ActorRole.ADMIN)

__all__ = ["SYSTEM_ACTOR"]
