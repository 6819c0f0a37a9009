"""Tag recorded review links as real requests or manual follow-ups."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("tasks", sa.Column("review_state", sa.String(), nullable=True))
    op.execute(
        sa.text(
            """
            UPDATE tasks
            SET review_state = CASE
                WHEN pr_url LIKE '%/pull/%' THEN 'requested'
                ELSE 'manual'
            END
            WHERE pr_url IS NOT NULL
            """,
        ),
    )


def downgrade() -> None:
    with op.batch_alter_table("tasks") as batch_op:
        batch_op.drop_column("review_state")
