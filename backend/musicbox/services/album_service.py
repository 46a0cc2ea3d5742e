"""
services/album_service.py — Album detail and per-user album interactions.

Album detail materialises the album (artist first). Rating and favouriting
require the album to exist locally already. An album nobody has opened is
ALBUM_NOT_FOUND.

Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Float, func, select
from sqlalchemy.orm import Session

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.models.album import Album
from backend.musicbox.models.interaction import AlbumFavorite, AlbumRating
from backend.musicbox.services import catalog_service
from backend.musicbox.services.song_service import round_average


def _get_album_or_404(external_id: str, session: Session) -> Album:
    album = session.execute(
        select(Album).where(Album.external_id == external_id)
    ).scalar_one_or_none()
    if album is None:
        raise AppError(
            ErrorCode.ALBUM_NOT_FOUND,
            f"Album '{external_id}' not found.",
            404,
        )
    return album


def _user_row(model, user_id: int, album_id: int, session: Session):
    return session.execute(
        select(model).where(model.user_id == user_id, model.album_id == album_id)
    ).scalar_one_or_none()


def search_albums(query: str, limit: int, offset: int, catalog) -> dict:
    return {
        "albums": catalog.search_albums(query, limit, offset),
        "query": query,
        "limit": limit,
        "offset": offset,
    }


def get_album_detail(external_id: str, user_id: int, catalog, session: Session) -> dict:
    album, artist, album_data = catalog_service.get_album_detail(external_id, catalog, session)

    avg_rating, total_ratings = session.execute(
        select(func.avg(AlbumRating.rating, type_=Float), func.count(AlbumRating.id))
        .where(AlbumRating.album_id == album.id)
    ).one()

    rating = _user_row(AlbumRating, user_id, album.id, session)
    favorite = _user_row(AlbumFavorite, user_id, album.id, session)

    return {
        "album": {
            "id": album.id,
            "external_id": album.external_id,
            "name": album.name,
            "release_date": album.release_date,
            "image_url": album.image_url,
            "total_tracks": album.total_tracks,
            "genres": album_data.get("genres", []),
            "artist": {
                "id": artist.id,
                "external_id": artist.external_id,
                "name": artist.name,
                "image_url": artist.image_url,
            },
            "tracks": album_data.get("tracks", []),
        },
        "stats": {
            "avg_rating": round_average(avg_rating),
            "total_ratings": int(total_ratings or 0),
        },
        "user_interaction": {
            "rating": rating.rating if rating else None,
            "favorited": favorite is not None,
        },
    }


def rate_album(external_id: str, user_id: int, rating: Decimal, session: Session) -> dict:
    album = _get_album_or_404(external_id, session)

    row = _user_row(AlbumRating, user_id, album.id, session)
    if row is None:
        row = AlbumRating(user_id=user_id, album_id=album.id, rating=rating)
        session.add(row)
    else:
        row.rating = rating
    session.flush()

    return {
        "id": row.id,
        "user_id": user_id,
        "album_id": album.id,
        "rating": row.rating,
    }


def toggle_album_favorite(external_id: str, user_id: int, session: Session) -> dict:
    album = _get_album_or_404(external_id, session)

    existing = _user_row(AlbumFavorite, user_id, album.id, session)
    if existing is not None:
        session.delete(existing)
        session.flush()
        return {"favorited": False}

    session.add(AlbumFavorite(user_id=user_id, album_id=album.id))
    session.flush()
    return {"favorited": True}
