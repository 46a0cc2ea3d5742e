"""
services/friend_service.py — Friend requests, friendships and user search.

Layer rules:
  - No Flask imports. Commits are the route's responsibility; only flush here.

A pair of users has at most one friendships row, whichever side sent the
request. A rejected row is replaced when the request is sent again.
"""

from __future__ import annotations

from sqlalchemy import and_, case, or_, select
from sqlalchemy.orm import Session

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.models.friendship import Friendship, FriendshipStatus
from backend.musicbox.models.user import User
from backend.musicbox.services.auth_service import get_user_or_404

USER_SEARCH_LIMIT = 20

# Relation of another user to the caller, as reported by search_users().
RELATION_FRIEND = "friend"
RELATION_REQUEST_SENT = "request_sent"
RELATION_REQUEST_RECEIVED = "request_received"
RELATION_NONE = "none"


# ── Private helpers ────────────────────────────────────────────────────────

def _between(user_a: int, user_b: int):
    return or_(
        and_(Friendship.user_id == user_a, Friendship.friend_id == user_b),
        and_(Friendship.user_id == user_b, Friendship.friend_id == user_a),
    )


def _pair_row(user_a: int, user_b: int, session: Session) -> Friendship | None:
    return session.execute(
        select(Friendship).where(_between(user_a, user_b)).order_by(Friendship.id.desc())
    ).scalars().first()


def _pending_from(requester_id: int, receiver_id: int, session: Session) -> Friendship:
    row = session.execute(
        select(Friendship).where(
            Friendship.user_id == requester_id,
            Friendship.friend_id == receiver_id,
            Friendship.status == FriendshipStatus.PENDING.value,
        )
    ).scalar_one_or_none()
    if row is None:
        raise AppError(
            ErrorCode.FRIEND_REQUEST_NOT_FOUND,
            f"No pending friend request from user {requester_id}.",
            404,
        )
    return row


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def user_summary(user: User) -> dict:
    """The public fields shown wherever another user appears in a list."""
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "profile_picture_url": user.profile_picture_url,
    }


def build_friendship_dict(row: Friendship) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "friend_id": row.friend_id,
        "status": row.status,
        "created_at": _isoformat(row.created_at),
    }


def _relation(row: Friendship | None, user_id: int) -> str:
    if row is None or row.status == FriendshipStatus.REJECTED.value:
        return RELATION_NONE
    if row.status == FriendshipStatus.ACCEPTED.value:
        return RELATION_FRIEND
    return RELATION_REQUEST_SENT if row.user_id == user_id else RELATION_REQUEST_RECEIVED


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ── Public service functions ───────────────────────────────────────────────

def are_friends(user_a: int, user_b: int, session: Session) -> bool:
    row = _pair_row(user_a, user_b, session)
    return row is not None and row.status == FriendshipStatus.ACCEPTED.value


def list_friends(user_id: int, session: Session) -> list[dict]:
    """Accepted friendships in either direction, ordered by username."""
    other_id = case(
        (Friendship.user_id == user_id, Friendship.friend_id),
        else_=Friendship.user_id,
    )
    rows = session.execute(
        select(User, Friendship.updated_at)
        .join(Friendship, User.id == other_id)
        .where(
            or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
            Friendship.status == FriendshipStatus.ACCEPTED.value,
        )
        .order_by(User.username.asc().nulls_last(), User.id)
    ).all()

    return [
        {**user_summary(user), "friends_since": _isoformat(since)}
        for user, since in rows
    ]


def list_received_requests(user_id: int, session: Session) -> list[dict]:
    rows = session.execute(
        select(Friendship, User)
        .join(User, User.id == Friendship.user_id)
        .where(
            Friendship.friend_id == user_id,
            Friendship.status == FriendshipStatus.PENDING.value,
        )
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
    ).all()
    return [
        {"request_id": row.id, **user_summary(user), "created_at": _isoformat(row.created_at)}
        for row, user in rows
    ]


def list_sent_requests(user_id: int, session: Session) -> list[dict]:
    rows = session.execute(
        select(Friendship, User)
        .join(User, User.id == Friendship.friend_id)
        .where(
            Friendship.user_id == user_id,
            Friendship.status == FriendshipStatus.PENDING.value,
        )
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
    ).all()
    return [
        {"request_id": row.id, **user_summary(user), "created_at": _isoformat(row.created_at)}
        for row, user in rows
    ]


def send_request(user_id: int, target_id: int, session: Session) -> dict:
    """
    Creates a pending request from `user_id` to `target_id`.

    Raises:
      AppError(CANNOT_FRIEND_SELF, 400)
      AppError(USER_NOT_FOUND, 404)
      AppError(ALREADY_FRIENDS, 409)
      AppError(FRIEND_REQUEST_PENDING, 409) — in either direction
    """
    if user_id == target_id:
        raise AppError(
            ErrorCode.CANNOT_FRIEND_SELF,
            "You cannot send a friend request to yourself.",
            400,
        )
    get_user_or_404(target_id, session)

    existing = _pair_row(user_id, target_id, session)
    if existing is not None:
        if existing.status == FriendshipStatus.ACCEPTED.value:
            raise AppError(
                ErrorCode.ALREADY_FRIENDS,
                "You are already friends with this user.",
                409,
            )
        if existing.status == FriendshipStatus.PENDING.value:
            raise AppError(
                ErrorCode.FRIEND_REQUEST_PENDING,
                "A friend request between you and this user is already pending.",
                409,
            )
        session.delete(existing)
        session.flush()

    row = Friendship(
        user_id=user_id,
        friend_id=target_id,
        status=FriendshipStatus.PENDING.value,
    )
    session.add(row)
    session.flush()
    session.refresh(row)
    return build_friendship_dict(row)


def accept_request(user_id: int, requester_id: int, session: Session) -> dict:
    row = _pending_from(requester_id, user_id, session)
    row.status = FriendshipStatus.ACCEPTED.value
    session.flush()
    return build_friendship_dict(row)


def reject_request(user_id: int, requester_id: int, session: Session) -> None:
    row = _pending_from(requester_id, user_id, session)
    row.status = FriendshipStatus.REJECTED.value
    session.flush()


def remove_friend(user_id: int, friend_id: int, session: Session) -> None:
    row = _pair_row(user_id, friend_id, session)
    if row is None or row.status != FriendshipStatus.ACCEPTED.value:
        raise AppError(
            ErrorCode.FRIENDSHIP_NOT_FOUND,
            f"You are not friends with user {friend_id}.",
            404,
        )
    session.delete(row)
    session.flush()


def search_users(user_id: int, query: str, session: Session) -> list[dict]:
    """
    Case-insensitive substring match on username or display name, excluding
    the caller. Each hit carries the caller's relation to that user.
    """
    pattern = f"%{_escape_like(query)}%"
    users = session.execute(
        select(User)
        .where(
            User.id != user_id,
            or_(
                User.username.ilike(pattern, escape="\\"),
                User.display_name.ilike(pattern, escape="\\"),
            ),
        )
        .order_by(User.id)
        .limit(USER_SEARCH_LIMIT)
    ).scalars().all()
    if not users:
        return []

    ids = [u.id for u in users]
    rows = session.execute(
        select(Friendship).where(
            or_(
                and_(Friendship.user_id == user_id, Friendship.friend_id.in_(ids)),
                and_(Friendship.friend_id == user_id, Friendship.user_id.in_(ids)),
            )
        )
    ).scalars().all()
    by_other = {
        (row.friend_id if row.user_id == user_id else row.user_id): row
        for row in rows
    }

    return [
        {**user_summary(u), "friendship_status": _relation(by_other.get(u.id), user_id)}
        for u in users
    ]
