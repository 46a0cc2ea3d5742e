"""
models/interaction.py — Per-user interaction tables for songs and albums.

  song_ratings    UNIQUE(user_id, song_id)   rating in [0.5, 5.0], half steps
  song_favorites  UNIQUE(user_id, song_id)
  song_comments   UNIQUE(user_id, song_id)   one comment per user per song
  album_ratings   UNIQUE(user_id, album_id)
  album_favorites UNIQUE(user_id, album_id)

FK policy: every FK is ON DELETE CASCADE; interactions are owned by both
the user and the entity.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.musicbox.extensions import db

_RATING_RANGE = "rating >= 0.5 AND rating <= 5.0"


def _user_fk() -> Mapped[int]:
    return mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


def _updated_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class SongRating(db.Model):
    __tablename__ = "song_ratings"

    __table_args__ = (
        UniqueConstraint("user_id", "song_id", name="uq_song_ratings_user_song"),
        CheckConstraint(_RATING_RANGE, name="ck_song_ratings_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = _user_fk()
    song_id: Mapped[int] = mapped_column(
        ForeignKey("songs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rating: Mapped[Decimal] = mapped_column(Numeric(2, 1), nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class SongFavorite(db.Model):
    __tablename__ = "song_favorites"

    __table_args__ = (
        UniqueConstraint("user_id", "song_id", name="uq_song_favorites_user_song"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = _user_fk()
    song_id: Mapped[int] = mapped_column(
        ForeignKey("songs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = _created_at()


class SongComment(db.Model):
    __tablename__ = "song_comments"

    __table_args__ = (
        UniqueConstraint("user_id", "song_id", name="uq_song_comments_user_song"),
        CheckConstraint("LENGTH(TRIM(content)) > 0", name="ck_song_comments_nonempty"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = _user_fk()
    song_id: Mapped[int] = mapped_column(
        ForeignKey("songs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class AlbumRating(db.Model):
    __tablename__ = "album_ratings"

    __table_args__ = (
        UniqueConstraint("user_id", "album_id", name="uq_album_ratings_user_album"),
        CheckConstraint(_RATING_RANGE, name="ck_album_ratings_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = _user_fk()
    album_id: Mapped[int] = mapped_column(
        ForeignKey("albums.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rating: Mapped[Decimal] = mapped_column(Numeric(2, 1), nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class AlbumFavorite(db.Model):
    __tablename__ = "album_favorites"

    __table_args__ = (
        UniqueConstraint("user_id", "album_id", name="uq_album_favorites_user_album"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = _user_fk()
    album_id: Mapped[int] = mapped_column(
        ForeignKey("albums.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = _created_at()
