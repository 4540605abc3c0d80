"""Per-project comment sequence for SiteTrack.

Adds a monotonically increasing sequence number to project comments so that
comments posted within the same clock tick keep their posting order.
Existing rows are numbered by creation time.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("project_comments", sa.Column("sequence", sa.Integer(), nullable=True))

    # Number existing comments per project in posting order
    op.execute(
        """
        UPDATE project_comments
        SET sequence = numbered.rn
        FROM (
            SELECT id, ROW_NUMBER() OVER (
                PARTITION BY project_id ORDER BY created_at, id
            ) AS rn
            FROM project_comments
        ) AS numbered
        WHERE project_comments.id = numbered.id
        """
    )

    with op.batch_alter_table("project_comments") as batch:
        batch.alter_column("sequence", existing_type=sa.Integer(), nullable=False)
        batch.create_unique_constraint(
            "uq_project_comment_sequence", ["project_id", "sequence"]
        )


def downgrade() -> None:
    with op.batch_alter_table("project_comments") as batch:
        batch.drop_constraint("uq_project_comment_sequence", type_="unique")
        batch.drop_column("sequence")
