"""
services/catalog_service.py — Lazy materialisation of catalog entities.

Given an external catalog id, ensure_artist / ensure_album / ensure_song make
sure a matching local row exists and return it. The catalog is only called on
a local miss, and parents are created first:

  ensure_song:  track detail → ensure_artist → ensure_album (if any) → song row
  ensure_album: album detail → album row (artist id supplied by the caller)

Concurrency:
  No locks. Each insert is INSERT .. ON CONFLICT (external_id) DO NOTHING
  followed by a re-select, so two requests materialising the same id both end
  up with the single row that won. Dialects without ON CONFLICT fall back to
  a SAVEPOINT + IntegrityError + re-select.

Atomicity:
  Nothing is committed here (commits are the route's job). If any catalog
  call in a chain raises CatalogUnavailable, rows flushed earlier in the same
  chain are rolled back with the request's session. Re-running a chain later
  is always safe because every step is an idempotent upsert.
"""

from __future__ import annotations

from sqlalchemy import insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.musicbox.errors import CatalogUnavailable
from backend.musicbox.models.album import Album
from backend.musicbox.models.artist import Artist
from backend.musicbox.models.song import Song

_ON_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# ── Private helpers ────────────────────────────────────────────────────────

def _find_by_external_id(model, external_id: str, session: Session):
    return session.execute(
        select(model).where(model.external_id == external_id)
    ).scalar_one_or_none()


def _insert_or_fetch(model, values: dict, session: Session):
    """
    Inserts `values` unless a row with the same external_id exists, then
    returns whichever row is now stored for that external_id.
    """
    dialect = session.get_bind(model).dialect.name
    dialect_insert = _ON_CONFLICT_INSERTS.get(dialect)

    if dialect_insert is not None:
        session.execute(
            dialect_insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["external_id"])
        )
    else:
        try:
            with session.begin_nested():
                session.execute(insert(model).values(**values))
        except IntegrityError:
            pass  # lost the race; the winner's row is read below

    return session.execute(
        select(model)
        .where(model.external_id == values["external_id"])
        .execution_options(populate_existing=True)
    ).scalar_one()


def _require_reference(entity: dict | None, what: str, external_id: str) -> dict:
    if not entity or not entity.get("external_id"):
        raise CatalogUnavailable(
            f"The music catalog returned no {what} for '{external_id}'."
        )
    return entity


# ── Public service functions ───────────────────────────────────────────────

def ensure_artist(external_id: str, catalog, session: Session) -> Artist:
    existing = _find_by_external_id(Artist, external_id, session)
    if existing is not None:
        return existing

    artist_data = catalog.get_artist(external_id)
    return _insert_or_fetch(
        Artist,
        {
            "external_id": external_id,
            "name": artist_data["name"],
            "image_url": artist_data.get("image_url"),
            "genres": list(artist_data.get("genres") or []),
        },
        session,
    )


def ensure_album(external_id: str, artist_id: int, catalog, session: Session) -> Album:
    """
    `artist_id` is the LOCAL id of the album's (already materialised) artist.
    Only album-level fields are persisted; the track listing is not.
    """
    existing = _find_by_external_id(Album, external_id, session)
    if existing is not None:
        return existing

    album_data = catalog.get_album(external_id)
    return _insert_or_fetch(
        Album,
        {
            "external_id": external_id,
            "name": album_data["name"],
            "artist_id": artist_id,
            "release_date": album_data.get("release_date"),
            "image_url": album_data.get("image_url"),
            "total_tracks": album_data.get("total_tracks"),
        },
        session,
    )


def ensure_song(external_id: str, catalog, session: Session) -> Song:
    existing = _find_by_external_id(Song, external_id, session)
    if existing is not None:
        return existing

    track = catalog.get_track(external_id)
    artist_ref = _require_reference(track.get("artist"), "artist", external_id)
    artist = ensure_artist(artist_ref["external_id"], catalog, session)

    album = None
    album_ref = track.get("album")
    if album_ref and album_ref.get("external_id"):
        album = ensure_album(album_ref["external_id"], artist.id, catalog, session)

    return _insert_or_fetch(
        Song,
        {
            "external_id": external_id,
            "name": track["name"],
            "artist_id": artist.id,
            "album_id": album.id if album is not None else None,
            "duration_ms": track.get("duration_ms"),
            "preview_url": track.get("preview_url"),
            "popularity": track.get("popularity"),
        },
        session,
    )


def get_album_detail(external_id: str, catalog, session: Session) -> tuple[Album, Artist, dict]:
    """
    Materialises an album (and its artist) and returns it together with the
    catalog payload, whose `tracks` list is served to the client unpersisted.
    """
    album_data = catalog.get_album(external_id)
    artist_ref = _require_reference(album_data.get("artist"), "artist", external_id)
    artist = ensure_artist(artist_ref["external_id"], catalog, session)
    album = ensure_album(external_id, artist.id, catalog, session)
    return album, artist, album_data
