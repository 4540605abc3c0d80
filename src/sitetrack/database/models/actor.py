"""Actor model for SiteTrack.

Actors are the local profile records of users authenticated by the external
identity provider. The role is fixed per actor and drives authorization.
"""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from sitetrack.database.models.base import Base, TimestampMixin


class ActorRole(enum.Enum):
    """Roles recognised by the workflow engine.

    States:
        ADMIN: Creates projects, assigns consultants, overrides milestone status.
        CONSULTANT: Structures sections and reviews contractor submissions.
        CONTRACTOR: Executes section work and submits milestone evidence.
    """

    ADMIN = "ADMIN"
    CONSULTANT = "CONSULTANT"
    CONTRACTOR = "CONTRACTOR"


class Actor(TimestampMixin, Base):
    """A user known to SiteTrack.

    Attributes:
        id: UUID primary key, shared with the identity provider.
        role: Fixed actor role.
        full_name: Display name shown on comments and queues.
        email: Optional contact address.
        is_active: Inactive actors cannot be assigned new work.
    """

    __tablename__ = "actors"

    role: Mapped[ActorRole] = mapped_column(nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
