"""
models/album.py — Album table definition.

FK policy: artist_id ON DELETE RESTRICT; an artist with albums stays.
The per-track listing of an album is not persisted; it is served straight
from the (cached) catalog response.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.musicbox.extensions import db


class Album(db.Model):
    __tablename__ = "albums"

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

    # Catalog release dates come at varying precision ("1997", "1997-05", "1997-05-21").
    release_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    total_tracks: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    artist: Mapped["Artist"] = relationship(  # noqa: F821
        "Artist",
        back_populates="albums",
    )

    songs: Mapped[list["Song"]] = relationship(  # noqa: F821
        "Song",
        back_populates="album",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Album id={self.id} external_id={self.external_id!r}>"
