"""Request-scoped actor context and role guards.

Authentication happens outside SiteTrack. Callers resolve who is acting and
pass an ActorContext into every workflow operation; nothing about the
current actor is held in module state.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sitetrack.database.models.actor import ActorRole
from sitetrack.errors import AuthorizationError


@dataclass(frozen=True)
class ActorContext:
    """The authenticated actor performing an operation.

    Attributes:
        actor_id: Actor's UUID as issued by the identity provider.
        role: Actor's fixed role.
    """

    actor_id: UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_consultant(self) -> bool:
        return self.role == ActorRole.CONSULTANT

    @property
    def is_contractor(self) -> bool:
        return self.role == ActorRole.CONTRACTOR


def require_role(actor: ActorContext, *roles: ActorRole, action: str) -> None:
    """Raise AuthorizationError unless the actor holds one of the roles.

    Args:
        actor: Acting actor.
        *roles: Roles allowed to perform the action.
        action: Short action name used in the error message.

    Raises:
        AuthorizationError: If the actor's role is not allowed.
    """
    if actor.role not in roles:
        allowed = ", ".join(role.value for role in roles)
        raise AuthorizationError(
            f"Role {actor.role.value} may not {action}; requires {allowed}",
            {"action": action, "role": actor.role.value},
        )
