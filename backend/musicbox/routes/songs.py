"""
routes/songs.py — Song route handlers.

Parse, validate, call ONE service, commit, return envelope.

Endpoints (url_prefix=/api/v1/songs):
  GET    /songs/search?q=&limit=&offset=  → 200  (auth optional)
  GET    /songs/:external_id              → 200  materialises the song
  POST   /songs/:external_id/rate         → 200
  DELETE /songs/:external_id/rate         → 200
  POST   /songs/:external_id/favorite     → 200  toggle
  POST   /songs/:external_id/comment      → 200
  DELETE /songs/:external_id/comment      → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.musicbox.extensions import db, get_catalog_client
from backend.musicbox.middleware.auth_middleware import optional_auth, require_auth
from backend.musicbox.schemas.catalog_schema import CommentSchema, RatingSchema, SearchQuerySchema
from backend.musicbox.services import song_service

songs_bp = Blueprint("songs", __name__)


@songs_bp.route("/search", methods=["GET"])
@optional_auth
def search_songs():
    """GET /songs/search — Catalog search, cached for an hour."""
    params = SearchQuerySchema().load(request.args.to_dict())
    result = song_service.search_songs(
        query=params["q"],
        limit=params["limit"],
        offset=params["offset"],
        catalog=get_catalog_client(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@songs_bp.route("/<string:external_id>", methods=["GET"])
@require_auth
def get_song(external_id: str):
    """GET /songs/:external_id — Song, rating stats, and the caller's interaction."""
    result = song_service.get_song_detail(
        external_id=external_id,
        user_id=g.user_id,
        catalog=get_catalog_client(),
        session=db.session,
    )
    db.session.commit()  # persist any rows materialised on this request
    return jsonify({"data": result, "warnings": []}), 200


@songs_bp.route("/<string:external_id>/rate", methods=["POST"])
@require_auth
def rate_song(external_id: str):
    data = RatingSchema().load(request.get_json(force=True) or {})
    result = song_service.rate_song(
        external_id=external_id,
        user_id=g.user_id,
        rating=data["rating"],
        catalog=get_catalog_client(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"rating": result}, "warnings": []}), 200


@songs_bp.route("/<string:external_id>/rate", methods=["DELETE"])
@require_auth
def remove_rating(external_id: str):
    song_service.remove_song_rating(
        external_id=external_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Rating removed."}, "warnings": []}), 200


@songs_bp.route("/<string:external_id>/favorite", methods=["POST"])
@require_auth
def toggle_favorite(external_id: str):
    result = song_service.toggle_song_favorite(
        external_id=external_id,
        user_id=g.user_id,
        catalog=get_catalog_client(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@songs_bp.route("/<string:external_id>/comment", methods=["POST"])
@require_auth
def upsert_comment(external_id: str):
    data = CommentSchema().load(request.get_json(force=True) or {})
    result = song_service.upsert_song_comment(
        external_id=external_id,
        user_id=g.user_id,
        content=data["content"].strip(),
        catalog=get_catalog_client(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"comment": result}, "warnings": []}), 200


@songs_bp.route("/<string:external_id>/comment", methods=["DELETE"])
@require_auth
def delete_comment(external_id: str):
    song_service.delete_song_comment(
        external_id=external_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Comment deleted."}, "warnings": []}), 200
