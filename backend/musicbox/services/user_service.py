"""
services/user_service.py — Profiles and the personal song catalog.

Layer rules:
  - No Flask imports. Commits are the route's responsibility.

Another user's profile shows listening stats and top songs only to an
accepted friend; everyone else sees the public fields.
"""

from __future__ import annotations

from collections import Counter

from sqlalchemy import Float, func, select
from sqlalchemy.orm import Session

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.models.album import Album
from backend.musicbox.models.artist import Artist
from backend.musicbox.models.interaction import SongComment, SongFavorite, SongRating
from backend.musicbox.models.song import Song
from backend.musicbox.models.user import User
from backend.musicbox.services import friend_service
from backend.musicbox.services.auth_service import build_user_dict, get_user_or_404
from backend.musicbox.services.song_service import round_average

TOP_SONGS_LIMIT = 10
TOP_GENRES_LIMIT = 5

PROFILE_FIELDS = ("display_name", "bio", "profile_picture_url")


# ── Private helpers ────────────────────────────────────────────────────────

def _count(model, user_id: int, session: Session) -> int:
    return session.execute(
        select(func.count(model.id)).where(model.user_id == user_id)
    ).scalar_one()


def _rating_stats(user_id: int, session: Session) -> dict:
    avg_rating = session.execute(
        select(func.avg(SongRating.rating, type_=Float)).where(SongRating.user_id == user_id)
    ).scalar_one()
    return {
        "total_ratings": _count(SongRating, user_id, session),
        "avg_rating": round_average(avg_rating),
        "total_favorites": _count(SongFavorite, user_id, session),
    }


def _top_songs(user_id: int, session: Session) -> list[dict]:
    rows = session.execute(
        select(Song, Artist.name, Album.image_url, SongRating.rating)
        .join(SongRating, SongRating.song_id == Song.id)
        .join(Artist, Song.artist_id == Artist.id)
        .outerjoin(Album, Song.album_id == Album.id)
        .where(SongRating.user_id == user_id)
        .order_by(SongRating.rating.desc(), SongRating.updated_at.desc(), Song.id)
        .limit(TOP_SONGS_LIMIT)
    ).all()
    return [
        {
            "id": song.id,
            "external_id": song.external_id,
            "name": song.name,
            "artist_name": artist_name,
            "album_image": album_image,
            "rating": rating,
        }
        for song, artist_name, album_image, rating in rows
    ]


def _top_genres(user_id: int, session: Session) -> list[dict]:
    """Genres of the artists behind the user's rated songs, most frequent first."""
    genre_lists = session.execute(
        select(Artist.genres)
        .join(Song, Song.artist_id == Artist.id)
        .join(SongRating, SongRating.song_id == Song.id)
        .where(SongRating.user_id == user_id)
    ).scalars().all()

    counts = Counter(genre for genres in genre_lists for genre in (genres or []))
    return [
        {"genre": genre, "count": count}
        for genre, count in counts.most_common(TOP_GENRES_LIMIT)
    ]


def build_public_user_dict(user: User) -> dict:
    """What any signed-in user may see about another: no email, no role."""
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "bio": user.bio,
        "profile_picture_url": user.profile_picture_url,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _by_song(model, user_id: int, session: Session) -> dict:
    rows = session.execute(select(model).where(model.user_id == user_id)).scalars()
    return {row.song_id: row for row in rows}


def _sort_catalog(items: list[dict], sort: str, order: str) -> list[dict]:
    """Unrated songs always come last when sorting by rating."""
    reverse = order == "desc"
    if sort == "rating":
        rated = [i for i in items if i["rating"] is not None]
        unrated = [i for i in items if i["rating"] is None]
        return (
            sorted(rated, key=lambda i: (i["rating"], i["id"]), reverse=reverse)
            + sorted(unrated, key=lambda i: i["id"])
        )
    if sort == "name":
        return sorted(items, key=lambda i: (i["name"].lower(), i["id"]), reverse=reverse)
    return sorted(items, key=lambda i: (i["_last_interaction"], i["id"]), reverse=reverse)


# ── Public service functions ───────────────────────────────────────────────

def get_profile(user_id: int, session: Session) -> dict:
    user = get_user_or_404(user_id, session)
    return {
        "user": build_user_dict(user),
        "stats": {
            **_rating_stats(user_id, session),
            "total_comments": _count(SongComment, user_id, session),
        },
        "top_songs": _top_songs(user_id, session),
        "top_genres": _top_genres(user_id, session),
    }


def get_public_profile(viewer_id: int, user_id: int, session: Session) -> dict:
    """
    Public fields for anyone; stats and top songs only for an accepted
    friend. Viewing yourself here gives the public view.

    Raises:
      AppError(USER_NOT_FOUND, 404)
    """
    user = get_user_or_404(user_id, session)
    is_friend = viewer_id != user_id and friend_service.are_friends(viewer_id, user_id, session)

    result = {"user": build_public_user_dict(user), "is_friend": is_friend}
    if is_friend:
        result["stats"] = _rating_stats(user_id, session)
        result["top_songs"] = _top_songs(user_id, session)
    return result


def get_catalog(
        user_id: int,
        page: int,
        limit: int,
        sort: str,
        filter_by: str,
        order: str,
        session: Session,
) -> dict:
    """
    Every song the user has rated, favourited or commented on, one entry
    per song with all three interactions folded in.

    filter_by narrows to songs with that interaction; sort is recent
    (latest interaction), rating or name.
    """
    ratings = _by_song(SongRating, user_id, session)
    favorites = _by_song(SongFavorite, user_id, session)
    comments = _by_song(SongComment, user_id, session)

    song_ids = {
        "all": set(ratings) | set(favorites) | set(comments),
        "rated": set(ratings),
        "favorited": set(favorites),
        "commented": set(comments),
    }[filter_by]

    rows = session.execute(
        select(Song, Artist.name, Album.name, Album.image_url)
        .join(Artist, Song.artist_id == Artist.id)
        .outerjoin(Album, Song.album_id == Album.id)
        .where(Song.id.in_(song_ids))
    ).all() if song_ids else []

    items = []
    for song, artist_name, album_name, album_image in rows:
        rating = ratings.get(song.id)
        favorite = favorites.get(song.id)
        comment = comments.get(song.id)
        stamps = [
            stamp for stamp in (
                rating.updated_at if rating else None,
                favorite.created_at if favorite else None,
                comment.updated_at if comment else None,
            )
            if stamp is not None
        ]
        last_interaction = max(stamps)
        items.append({
            "id": song.id,
            "external_id": song.external_id,
            "name": song.name,
            "artist_name": artist_name,
            "album_name": album_name,
            "album_image": album_image,
            "rating": rating.rating if rating else None,
            "favorited": favorite is not None,
            "comment": comment.content if comment else None,
            "last_interaction": last_interaction.isoformat(),
            "_last_interaction": last_interaction,
        })

    total = len(items)
    start = (page - 1) * limit
    songs = _sort_catalog(items, sort, order)[start:start + limit]
    for item in songs:
        del item["_last_interaction"]

    return {
        "songs": songs,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


def update_profile(user_id: int, changes: dict, session: Session) -> dict:
    """
    Applies only the profile fields present in `changes`.

    Raises:
      AppError(NO_FIELDS_TO_UPDATE, 400)
      AppError(USER_NOT_FOUND, 404)
    """
    updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
    if not updates:
        raise AppError(
            ErrorCode.NO_FIELDS_TO_UPDATE,
            "Provide at least one of: " + ", ".join(PROFILE_FIELDS) + ".",
            400,
        )

    user = get_user_or_404(user_id, session)
    for field, value in updates.items():
        setattr(user, field, value)
    session.flush()
    return build_user_dict(user)


def get_user(user_id: int, session: Session) -> dict:
    return build_user_dict(get_user_or_404(user_id, session))
