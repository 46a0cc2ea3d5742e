"""
routes/friends.py — Friend request and friendship route handlers.

Parse, validate, call ONE service, commit, return envelope.

Endpoints (url_prefix=/api/v1/friends):
  GET    /friends                 → 200  accepted friends
  GET    /friends/requests        → 200  pending requests sent to the caller
  GET    /friends/requests/sent   → 200  pending requests the caller sent
  POST   /friends/request/:id     → 201
  POST   /friends/accept/:id      → 200  :id is the requester
  POST   /friends/reject/:id      → 200
  DELETE /friends/:id             → 200
  GET    /friends/search?q=       → 200  users with the caller's relation to each
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.musicbox.extensions import db
from backend.musicbox.middleware.auth_middleware import require_auth
from backend.musicbox.schemas.friend_schema import UserSearchSchema
from backend.musicbox.services import friend_service

friends_bp = Blueprint("friends", __name__)


@friends_bp.route("", methods=["GET"])
@require_auth
def list_friends():
    friends = friend_service.list_friends(user_id=g.user_id, session=db.session)
    return jsonify({"data": {"friends": friends}, "warnings": []}), 200


@friends_bp.route("/requests", methods=["GET"])
@require_auth
def list_received_requests():
    requests_ = friend_service.list_received_requests(user_id=g.user_id, session=db.session)
    return jsonify({"data": {"requests": requests_}, "warnings": []}), 200


@friends_bp.route("/requests/sent", methods=["GET"])
@require_auth
def list_sent_requests():
    requests_ = friend_service.list_sent_requests(user_id=g.user_id, session=db.session)
    return jsonify({"data": {"requests": requests_}, "warnings": []}), 200


@friends_bp.route("/request/<int:user_id>", methods=["POST"])
@require_auth
def send_request(user_id: int):
    """POST /friends/request/:id — Ask another user to be friends."""
    result = friend_service.send_request(
        user_id=g.user_id,
        target_id=user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"request": result}, "warnings": []}), 201


@friends_bp.route("/accept/<int:user_id>", methods=["POST"])
@require_auth
def accept_request(user_id: int):
    result = friend_service.accept_request(
        user_id=g.user_id,
        requester_id=user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"friendship": result}, "warnings": []}), 200


@friends_bp.route("/reject/<int:user_id>", methods=["POST"])
@require_auth
def reject_request(user_id: int):
    friend_service.reject_request(
        user_id=g.user_id,
        requester_id=user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Friend request rejected."}, "warnings": []}), 200


@friends_bp.route("/<int:user_id>", methods=["DELETE"])
@require_auth
def remove_friend(user_id: int):
    friend_service.remove_friend(
        user_id=g.user_id,
        friend_id=user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Friend removed."}, "warnings": []}), 200


@friends_bp.route("/search", methods=["GET"])
@require_auth
def search_users():
    """GET /friends/search — Find users by username or display name."""
    params = UserSearchSchema().load(request.args.to_dict())
    users = friend_service.search_users(
        user_id=g.user_id,
        query=params["q"],
        session=db.session,
    )
    return jsonify({"data": {"users": users}, "warnings": []}), 200
