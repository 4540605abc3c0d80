"""Project comment model for SiteTrack.

Comments form an append-only discussion stream per project.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sitetrack.database.models.base import Base, TimestampMixin


class Comment(TimestampMixin, Base):
    """A comment posted on a project.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        project_id: Project the comment belongs to.
        author_id: Actor who posted the comment.
        body: Comment text.
        sequence: Posting order within the project, starting at 1.
        created_at: Posting time (from TimestampMixin).
    """

    __tablename__ = "project_comments"
    __table_args__ = (
        UniqueConstraint("project_id", "sequence", name="uq_project_comment_sequence"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("actors.id"),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
