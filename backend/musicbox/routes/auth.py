"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"data": {...}, "warnings": []}

AppError propagates to the global error handler in musicbox/__init__.py;
routes never catch it.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register         → 201
  POST   /auth/login            → 200
  POST   /auth/refresh          → 200
  POST   /auth/logout           → 200  (bearer)
  GET    /auth/me               → 200  (bearer)
  POST   /auth/forgot-password  → 200  (same message whether or not the email exists)
  POST   /auth/reset-password   → 200
  POST   /auth/change-password  → 200  (bearer)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.musicbox.extensions import db, get_token_cache
from backend.musicbox.middleware.auth_middleware import require_auth
from backend.musicbox.schemas.auth_schema import (
    ChangePasswordSchema,
    ForgotPasswordSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    ResetPasswordSchema,
)
from backend.musicbox.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return tokens."""
    data = RegisterSchema().load(request.get_json(force=True) or {})
    result = auth_service.register_user(
        email=data["email"],
        password=data["password"],
        name=data["name"],
        username=data.get("username"),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return tokens."""
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange a refresh token for a new token pair."""
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    result = auth_service.refresh_tokens(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /auth/logout — Blacklist the presented access token."""
    auth_service.logout_user(
        raw_access_token=g.access_token,
        cache=get_token_cache(),
    )
    return jsonify({"data": {"message": "Logged out successfully."}, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return the claims of the current access token."""
    return jsonify({"data": {"user": g.user}, "warnings": []}), 200


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    """POST /auth/forgot-password — Always 200 with the same message."""
    data = ForgotPasswordSchema().load(request.get_json(force=True) or {})
    message = auth_service.request_password_reset(
        email=data["email"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": message}, "warnings": []}), 200


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """POST /auth/reset-password — Redeem a single-use reset token."""
    data = ResetPasswordSchema().load(request.get_json(force=True) or {})
    auth_service.reset_password(
        token=data["token"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Password updated successfully."}, "warnings": []}), 200


@auth_bp.route("/change-password", methods=["POST"])
@require_auth
def change_password():
    """POST /auth/change-password — Requires the current password."""
    data = ChangePasswordSchema().load(request.get_json(force=True) or {})
    auth_service.change_password(
        user_id=g.user_id,
        current_password=data["current_password"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Password changed successfully."}, "warnings": []}), 200
