"""
models/password_reset_token.py — PasswordResetToken table definition.

No business logic. No imports from services or routes.

A row is created per forgot-password request for a known email and is
single-use: `used` flips to TRUE on a successful reset and never back.
Historical rows are kept; only unused, unexpired rows are redeemable.

FK policy: user_id ON DELETE CASCADE; tokens die with their user.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.musicbox.extensions import db


class PasswordResetToken(db.Model):
    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # secrets.token_hex(32): 256 random bits, hex encoded.
    token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="password_reset_tokens",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<PasswordResetToken id={self.id} "
            f"user_id={self.user_id} "
            f"used={self.used}>"
        )
