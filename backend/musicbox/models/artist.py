"""
models/artist.py — Artist table definition.

Rows are materialised lazily from the external catalog (see
services/catalog_service.py). `external_id` is the natural key: its UNIQUE
constraint is what keeps concurrent materialisation from creating duplicates.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.musicbox.extensions import db

# TEXT[] on PostgreSQL, JSON list elsewhere (SQLite test database).
GenreList = ARRAY(String(100)).with_variant(JSON(), "sqlite")


class Artist(db.Model):
    __tablename__ = "artists"

    id: Mapped[int] = mapped_column(primary_key=True)

    external_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    genres: Mapped[list[str]] = mapped_column(GenreList, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    albums: Mapped[list["Album"]] = relationship(  # noqa: F821
        "Album",
        back_populates="artist",
    )

    songs: Mapped[list["Song"]] = relationship(  # noqa: F821
        "Song",
        back_populates="artist",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Artist id={self.id} external_id={self.external_id!r}>"
