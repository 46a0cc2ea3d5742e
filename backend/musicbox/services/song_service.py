"""
services/song_service.py — Song detail and per-user song interactions.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter and
    the catalog client passed in by the route.
  - Commits are the route's responsibility; only flush here.

Every write that targets a song by external id materialises the song first
(catalog_service.ensure_song). Deletes never materialise: an unknown song
is SONG_NOT_FOUND.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Float, delete, func, select
from sqlalchemy.orm import Session

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.models.album import Album
from backend.musicbox.models.artist import Artist
from backend.musicbox.models.interaction import SongComment, SongFavorite, SongRating
from backend.musicbox.models.song import Song
from backend.musicbox.services import catalog_service


# ── Private helpers ────────────────────────────────────────────────────────

def _get_song_or_404(external_id: str, session: Session) -> Song:
    song = session.execute(
        select(Song).where(Song.external_id == external_id)
    ).scalar_one_or_none()
    if song is None:
        raise AppError(
            ErrorCode.SONG_NOT_FOUND,
            f"Song '{external_id}' not found.",
            404,
        )
    return song


def _user_row(model, user_id: int, song_id: int, session: Session):
    return session.execute(
        select(model).where(model.user_id == user_id, model.song_id == song_id)
    ).scalar_one_or_none()


def round_average(value) -> Decimal | None:
    """AVG() result rounded half-up to one decimal; None when nothing was rated."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def build_song_dict(song: Song, artist: Artist | None, album: Album | None) -> dict:
    return {
        "id": song.id,
        "external_id": song.external_id,
        "name": song.name,
        "duration_ms": song.duration_ms,
        "preview_url": song.preview_url,
        "popularity": song.popularity,
        "artist_id": song.artist_id,
        "artist_external_id": artist.external_id if artist else None,
        "artist_name": artist.name if artist else None,
        "artist_image": artist.image_url if artist else None,
        "album_id": song.album_id,
        "album_external_id": album.external_id if album else None,
        "album_name": album.name if album else None,
        "album_image": album.image_url if album else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def search_songs(query: str, limit: int, offset: int, catalog) -> dict:
    return {
        "songs": catalog.search_songs(query, limit, offset),
        "query": query,
        "limit": limit,
        "offset": offset,
    }


def get_song_detail(external_id: str, user_id: int, catalog, session: Session) -> dict:
    """
    Materialises the song if needed and returns it with rating stats and the
    caller's own rating / favourite / comment.
    """
    song = catalog_service.ensure_song(external_id, catalog, session)

    artist = session.get(Artist, song.artist_id)
    album = session.get(Album, song.album_id) if song.album_id is not None else None

    avg_rating, total_ratings = session.execute(
        select(func.avg(SongRating.rating, type_=Float), func.count(SongRating.id))
        .where(SongRating.song_id == song.id)
    ).one()

    rating = _user_row(SongRating, user_id, song.id, session)
    favorite = _user_row(SongFavorite, user_id, song.id, session)
    comment = _user_row(SongComment, user_id, song.id, session)

    return {
        "song": build_song_dict(song, artist, album),
        "stats": {
            "avg_rating": round_average(avg_rating),
            "total_ratings": int(total_ratings or 0),
        },
        "user_interaction": {
            "rating": rating.rating if rating else None,
            "favorited": favorite is not None,
            "comment": {
                "content": comment.content,
                "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
            } if comment else None,
        },
    }


def rate_song(
        external_id: str,
        user_id: int,
        rating: Decimal,
        catalog,
        session: Session,
) -> dict:
    """Creates or replaces the caller's rating. `rating` is schema-validated."""
    song = catalog_service.ensure_song(external_id, catalog, session)

    row = _user_row(SongRating, user_id, song.id, session)
    if row is None:
        row = SongRating(user_id=user_id, song_id=song.id, rating=rating)
        session.add(row)
    else:
        row.rating = rating
    session.flush()

    return {
        "id": row.id,
        "user_id": user_id,
        "song_id": song.id,
        "rating": row.rating,
    }


def remove_song_rating(external_id: str, user_id: int, session: Session) -> None:
    song = _get_song_or_404(external_id, session)
    session.execute(
        delete(SongRating).where(
            SongRating.user_id == user_id,
            SongRating.song_id == song.id,
        )
    )


def toggle_song_favorite(external_id: str, user_id: int, catalog, session: Session) -> dict:
    song = catalog_service.ensure_song(external_id, catalog, session)

    existing = _user_row(SongFavorite, user_id, song.id, session)
    if existing is not None:
        session.delete(existing)
        session.flush()
        return {"favorited": False}

    session.add(SongFavorite(user_id=user_id, song_id=song.id))
    session.flush()
    return {"favorited": True}


def upsert_song_comment(
        external_id: str,
        user_id: int,
        content: str,
        catalog,
        session: Session,
) -> dict:
    """One comment per user per song; posting again replaces it."""
    song = catalog_service.ensure_song(external_id, catalog, session)

    row = _user_row(SongComment, user_id, song.id, session)
    if row is None:
        row = SongComment(user_id=user_id, song_id=song.id, content=content)
        session.add(row)
    else:
        row.content = content
    session.flush()

    return {
        "id": row.id,
        "user_id": user_id,
        "song_id": song.id,
        "content": row.content,
    }


def delete_song_comment(external_id: str, user_id: int, session: Session) -> None:
    song = _get_song_or_404(external_id, session)
    session.execute(
        delete(SongComment).where(
            SongComment.user_id == user_id,
            SongComment.song_id == song.id,
        )
    )
