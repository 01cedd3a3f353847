"""user_characters: character lifecycle records

- status: pending|training|ready|error (monotonic, enforced by the store's conditional updates)
- display_name/description/keywords_json/model_ref: write-once at training -> ready
- revision: bumped per committed mutation
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_user_characters"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_characters",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("keywords_json", sa.Text(), nullable=False),
        sa.Column("model_ref", sa.Text(), nullable=True),
        sa.Column("preview_ref", sa.Text(), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending','training','ready','error')",
            name="ck_user_characters_status",
        ),
    )
    op.create_index("ix_user_characters_owner_id", "user_characters", ["owner_id"])
    op.create_index("ix_user_characters_status", "user_characters", ["status"])

    # terminal states are final (SQLite)
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_user_characters_terminal
        BEFORE UPDATE OF status ON user_characters
        WHEN OLD.status IN ('ready','error')
        BEGIN
            SELECT RAISE(ABORT, 'user_characters: terminal status');
        END;
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_user_characters_terminal;")
    op.drop_index("ix_user_characters_status", table_name="user_characters")
    op.drop_index("ix_user_characters_owner_id", table_name="user_characters")
    op.drop_table("user_characters")
