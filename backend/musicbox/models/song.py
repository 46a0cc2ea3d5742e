"""
models/song.py — Song table definition.

FK policy:
  artist_id ON DELETE RESTRICT
  album_id  ON DELETE SET NULL; a song may exist without an album
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.musicbox.extensions import db


class Song(db.Model):
    __tablename__ = "songs"

    id: Mapped[int] = mapped_column(primary_key=True)

    external_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    artist_id: Mapped[int] = mapped_column(
        ForeignKey("artists.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    album_id: Mapped[int | None] = mapped_column(
        ForeignKey("albums.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    preview_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    popularity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    artist: Mapped["Artist"] = relationship(  # noqa: F821
        "Artist",
        back_populates="songs",
    )

    album: Mapped["Album"] = relationship(  # noqa: F821
        "Album",
        back_populates="songs",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Song id={self.id} external_id={self.external_id!r}>"
