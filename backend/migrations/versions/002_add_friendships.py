"""Add friendships table for friend requests and accepted friendships.

Revision: 002_add_friendships
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.

Row shape:
  user_id   → the user who sent the request
  friend_id → the user who received it
  status    → pending | accepted | rejected

ON DELETE policies:
  friendships.user_id   → CASCADE
  friendships.friend_id → CASCADE

A user cannot befriend themselves (ck_friendships_not_self) and each
ordered pair appears at most once (uq_friendships_pair). The reverse
direction is checked in friend_service before inserting.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_friendships"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _cascade_fk(column: str, name: str) -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete="CASCADE", name=name),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "fk_friendships_user_id_users"),
        _cascade_fk("friend_id", "fk_friendships_friend_id_users"),
        sa.Column(
            "status",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_friendships"),
        sa.UniqueConstraint("user_id", "friend_id", name="uq_friendships_pair"),
        sa.CheckConstraint("user_id <> friend_id", name="ck_friendships_not_self"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_friendships_status",
        ),
    )
    op.create_index("idx_friendships_user", "friendships", ["user_id"])
    op.create_index("idx_friendships_friend", "friendships", ["friend_id"])


def downgrade() -> None:
    op.drop_index("idx_friendships_friend", table_name="friendships")
    op.drop_index("idx_friendships_user", table_name="friendships")
    op.drop_table("friendships")
