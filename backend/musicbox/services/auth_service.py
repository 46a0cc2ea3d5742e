"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - Password hashing (bcrypt) and verification
  - Access/refresh token issuance and verification (PyJWT, HS256)
  - Access-token revocation through the shared cache (blacklist)
  - Registration, login, refresh, logout
  - Password reset (forgot/reset) and password change

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError
  - current_app.config is read for secrets, TTLs and the bcrypt cost;
    current_app.logger for the reset link in development

Token design:
  - Access token:  {sub, email, role, type="access",  iat, exp, jti}, 15 min
  - Refresh token: {sub,              type="refresh", iat, exp, jti}, 7 days
  - The `type` claim is checked on both paths: a refresh token is never
    accepted as an access token and vice versa.
  - Neither kind is persisted. Logout blacklists the access token in the
    cache for exactly its remaining lifetime.
  - /auth/refresh re-reads the user row so that role/email changes made since
    the refresh token was issued are reflected in the new pair.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.models.password_reset_token import PasswordResetToken
from backend.musicbox.models.user import User

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
BLACKLIST_PREFIX = "blacklist:"
BLACKLIST_SENTINEL = "1"

FORGOT_PASSWORD_MESSAGE = "If that email is registered, a reset link has been sent."


# ── Passwords ──────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    # bcrypt.checkpw compares in constant time.
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


# ── Tokens ─────────────────────────────────────────────────────────────────

def _sign(payload: dict) -> str:
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _decode(raw_token: str, verify_exp: bool = True) -> dict:
    return jwt.decode(
        raw_token,
        current_app.config["JWT_SECRET_KEY"],
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        options={"verify_exp": verify_exp, "require": ["sub", "exp", "type"]},
    )


def issue_tokens(claims: dict) -> dict:
    """
    Signs an access/refresh pair for `claims` = {"id", "email", "role"}.
    Pure function of its input, the signing secret and the clock.
    """
    now = datetime.now(timezone.utc)
    access_payload = {
        "sub": str(claims["id"]),
        "email": claims["email"],
        "role": claims["role"],
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    refresh_payload = {
        "sub": str(claims["id"]),
        "type": REFRESH_TOKEN_TYPE,
        "iat": now,
        "exp": now + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"],
        "jti": secrets.token_hex(8),
    }
    return {
        "access_token": _sign(access_payload),
        "refresh_token": _sign(refresh_payload),
    }


def _claims_from_payload(payload: dict) -> dict:
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
            401,
        )
    return {
        "id": user_id,
        "email": payload.get("email"),
        "role": payload.get("role"),
    }


def decode_access_token(raw_token: str) -> dict:
    """
    Verifies signature, expiry and token kind of an access token.
    Returns {"id", "email", "role"}.

    Raises:
      AppError(TOKEN_EXPIRED, 401) — signature valid, exp in the past
      AppError(TOKEN_INVALID, 401) — anything else, including a refresh token
    """
    try:
        payload = _decode(raw_token)
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /auth/refresh to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "A refresh token cannot be used as an access token.",
            401,
        )
    return _claims_from_payload(payload)


def verify_refresh_token(raw_token: str) -> int:
    """
    Verifies a refresh token and returns the user id it was issued for.

    Raises:
      AppError(REFRESH_TOKEN_EXPIRED, 401)
      AppError(REFRESH_TOKEN_INVALID, 401) — bad signature, malformed, wrong kind
    """
    try:
        payload = _decode(raw_token)
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_EXPIRED,
            "The refresh token has expired. Log in again.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid.",
            401,
        )

    if payload.get("type") != REFRESH_TOKEN_TYPE:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "An access token cannot be used as a refresh token.",
            401,
        )
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid.",
            401,
        )


# ── Revocation ─────────────────────────────────────────────────────────────

def _blacklist_key(raw_token: str) -> str:
    return f"{BLACKLIST_PREFIX}{raw_token}"


def remaining_lifetime(raw_token: str) -> int:
    """
    Seconds until the token's exp claim, never less than 1.
    The signature is still verified; only expiry is ignored.
    """
    try:
        payload = _decode(raw_token, verify_exp=False)
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )
    now = int(datetime.now(timezone.utc).timestamp())
    return max(int(payload["exp"]) - now, 1)


def revoke_access_token(raw_token: str, cache, ttl_seconds: int | None = None) -> int:
    """
    Blacklists `raw_token` in the cache. Without an explicit ttl the entry
    lives exactly as long as the token would have. The TTL is never below
    1 s, so the entry always expires. Returns the TTL used.
    """
    ttl = ttl_seconds if ttl_seconds is not None else remaining_lifetime(raw_token)
    ttl = max(int(ttl), 1)
    cache.set(_blacklist_key(raw_token), BLACKLIST_SENTINEL, ttl)
    return ttl


def is_token_revoked(raw_token: str, cache) -> bool:
    return cache.get(_blacklist_key(raw_token)) is not None


# ── Serialisation ──────────────────────────────────────────────────────────

def _claims_for(user: User) -> dict:
    return {"id": user.id, "email": user.email, "role": user.role}


def build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. Never includes the password hash."""
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "display_name": user.display_name,
        "bio": user.bio,
        "profile_picture_url": user.profile_picture_url,
        "role": user.role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        email: str,
        password: str,
        name: str,
        session: Session,
        username: str | None = None,
) -> dict:
    """
    Creates a new user account and issues an access + refresh token pair.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)
      AppError(DUPLICATE_USERNAME, 409)

    Returns: {"user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    existing_email = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if existing_email is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    if username is not None:
        existing_username = session.execute(
            select(User).where(User.username == username)
        ).scalar_one_or_none()
        if existing_username is not None:
            raise AppError(
                ErrorCode.DUPLICATE_USERNAME,
                f"The username '{username}' is already taken.",
                409,
                field="username",
            )

    user = User(
        email=email,
        username=username,
        display_name=name,
        password_hash=hash_password(password),
    )
    session.add(user)
    session.flush()  # populate user.id and server defaults before signing
    session.refresh(user)

    return {
        "user": build_user_dict(user),
        **issue_tokens(_claims_for(user)),
    }


def login_user(email: str, password: str, session: Session) -> dict:
    """
    Validates credentials and issues a new access + refresh token pair.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — unknown email or wrong password.
      Same error for both to avoid email enumeration.
    """
    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
            401,
        )

    return {
        "user": build_user_dict(user),
        **issue_tokens(_claims_for(user)),
    }


def refresh_tokens(raw_refresh_token: str, session: Session) -> dict:
    """
    Exchanges a refresh token for a brand-new pair. Role and email come from
    the current user row, not from the (possibly week-old) token.

    Raises:
      AppError(REFRESH_TOKEN_INVALID / REFRESH_TOKEN_EXPIRED, 401)
        (REFRESH_TOKEN_INVALID also when the user was deleted since issue)
    """
    user_id = verify_refresh_token(raw_refresh_token)

    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The user for this refresh token no longer exists.",
            401,
        )
    return issue_tokens(_claims_for(user))


def logout_user(raw_access_token: str, cache) -> None:
    """
    Revokes the presented access token until it would have expired anyway.
    A cache write failure propagates as CacheUnavailable (500).
    """
    ttl = revoke_access_token(raw_access_token, cache)
    current_app.logger.info("Access token revoked for %ss", ttl)


def request_password_reset(email: str, session: Session) -> str:
    """
    Issues a single-use reset token when `email` belongs to a user.

    Earlier unused tokens for the same user are marked used first, so at most
    one reset is redeemable at a time. The caller returns the same message
    whether or not the email is known.

    Returns the uniform response message.
    """
    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if user is None:
        return FORGOT_PASSWORD_MESSAGE

    session.execute(
        update(PasswordResetToken)
        .where(
            PasswordResetToken.user_id == user.id,
            PasswordResetToken.used.is_(False),
        )
        .values(used=True)
    )

    token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + current_app.config["PASSWORD_RESET_EXPIRES"]
    session.add(PasswordResetToken(user_id=user.id, token=token, expires_at=expires_at))
    session.flush()

    # No mail transport yet; the link is only surfaced in development.
    if current_app.config.get("DEBUG"):
        current_app.logger.info("Password reset link: /reset-password?token=%s", token)

    return FORGOT_PASSWORD_MESSAGE


def reset_password(token: str, new_password: str, session: Session) -> None:
    """
    Redeems a reset token and sets the new password.

    Raises:
      AppError(RESET_TOKEN_INVALID, 400) — unknown, used, or expired token
    """
    record = session.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token == token,
            PasswordResetToken.used.is_(False),
            PasswordResetToken.expires_at > datetime.now(timezone.utc),
        )
    ).scalar_one_or_none()

    if record is None:
        raise AppError(
            ErrorCode.RESET_TOKEN_INVALID,
            "The reset token is invalid or expired.",
            400,
            field="token",
        )

    user = session.get(User, record.user_id)
    user.password_hash = hash_password(new_password)
    record.used = True
    session.flush()


def change_password(
        user_id: int,
        current_password: str,
        new_password: str,
        session: Session,
) -> None:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(INVALID_CREDENTIALS, 401) — current password does not match
    """
    user = get_user_or_404(user_id, session)
    if not verify_password(current_password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The current password is incorrect.",
            401,
            field="current_password",
        )
    user.password_hash = hash_password(new_password)
    session.flush()


def get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user
