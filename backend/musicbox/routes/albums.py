"""
routes/albums.py — Album route handlers.

Endpoints (url_prefix=/api/v1/albums):
  GET    /albums/search?q=&limit=&offset=  → 200  (auth optional)
  GET    /albums/:external_id              → 200  materialises artist + album
  POST   /albums/:external_id/rate         → 200  album must already exist
  POST   /albums/:external_id/favorite     → 200  toggle; album must already exist
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.musicbox.extensions import db, get_catalog_client
from backend.musicbox.middleware.auth_middleware import optional_auth, require_auth
from backend.musicbox.schemas.catalog_schema import RatingSchema, SearchQuerySchema
from backend.musicbox.services import album_service

albums_bp = Blueprint("albums", __name__)


@albums_bp.route("/search", methods=["GET"])
@optional_auth
def search_albums():
    params = SearchQuerySchema().load(request.args.to_dict())
    result = album_service.search_albums(
        query=params["q"],
        limit=params["limit"],
        offset=params["offset"],
        catalog=get_catalog_client(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@albums_bp.route("/<string:external_id>", methods=["GET"])
@require_auth
def get_album(external_id: str):
    result = album_service.get_album_detail(
        external_id=external_id,
        user_id=g.user_id,
        catalog=get_catalog_client(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@albums_bp.route("/<string:external_id>/rate", methods=["POST"])
@require_auth
def rate_album(external_id: str):
    data = RatingSchema().load(request.get_json(force=True) or {})
    result = album_service.rate_album(
        external_id=external_id,
        user_id=g.user_id,
        rating=data["rating"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"rating": result}, "warnings": []}), 200


@albums_bp.route("/<string:external_id>/favorite", methods=["POST"])
@require_auth
def toggle_favorite(external_id: str):
    result = album_service.toggle_album_favorite(
        external_id=external_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
