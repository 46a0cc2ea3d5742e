"""
models/friendship.py — Friend requests and friendships.

One row per unordered pair of users. user_id is whoever sent the request,
friend_id whoever received it; the direction is kept after acceptance so
"sent" and "received" lists can be answered from the same table.

  pending  → accepted   (receiver accepts)
  pending  → rejected   (receiver rejects; the sender may ask again later)
  accepted → (deleted)  (either side removes the friendship)

FK policy: both FKs ON DELETE CASCADE.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.musicbox.extensions import db


class FriendshipStatus(str, enum.Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Friendship(db.Model):
    __tablename__ = "friendships"

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friendships_pair"),
        CheckConstraint("user_id <> friend_id", name="ck_friendships_not_self"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_friendships_status",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    friend_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=FriendshipStatus.PENDING.value,
        server_default=FriendshipStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Friendship id={self.id} {self.user_id}->{self.friend_id} "
            f"status={self.status!r}>"
        )
