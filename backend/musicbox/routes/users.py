"""
routes/users.py — Profile and personal catalog route handlers.

Endpoints (url_prefix=/api/v1/users):
  GET    /users/me/profile      → 200  profile, stats, top songs, top genres
  PATCH  /users/me/profile      → 200
  GET    /users/me/catalog      → 200  rated / favourited / commented songs, paginated
  GET    /users/:id/profile     → 200  public profile; stats only for friends
  GET    /users/:id             → 200  admin only
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.musicbox.extensions import db
from backend.musicbox.middleware.auth_middleware import require_auth, require_role
from backend.musicbox.models.user import UserRole
from backend.musicbox.schemas.user_schema import CatalogQuerySchema, UpdateProfileSchema
from backend.musicbox.services import user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/me/profile", methods=["GET"])
@require_auth
def get_my_profile():
    result = user_service.get_profile(user_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/profile", methods=["PATCH"])
@require_auth
def update_my_profile():
    data = UpdateProfileSchema().load(request.get_json(force=True) or {})
    result = user_service.update_profile(
        user_id=g.user_id,
        changes=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"user": result}, "warnings": []}), 200


@users_bp.route("/me/catalog", methods=["GET"])
@require_auth
def get_my_catalog():
    """GET /users/me/catalog — Every song the caller has interacted with."""
    params = CatalogQuerySchema().load(request.args.to_dict())
    result = user_service.get_catalog(
        user_id=g.user_id,
        page=params["page"],
        limit=params["limit"],
        sort=params["sort"],
        filter_by=params["filter"],
        order=params["order"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>/profile", methods=["GET"])
@require_auth
def get_user_profile(user_id: int):
    """GET /users/:id/profile — Public profile; friends also see stats and top songs."""
    result = user_service.get_public_profile(
        viewer_id=g.user_id,
        user_id=user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>", methods=["GET"])
@require_role(UserRole.ADMIN.value)
def get_user(user_id: int):
    """GET /users/:id — Look up any account. Admin only."""
    result = user_service.get_user(user_id=user_id, session=db.session)
    return jsonify({"data": {"user": result}, "warnings": []}), 200
