"""
middleware/auth_middleware.py — JWT authentication decorators.

@require_auth runs, in this order:
  1. Read the Authorization header (expected: "Bearer <token>")
  2. Look the raw token up in the blacklist (one cache read)
  3. Verify signature and expiry, and that it is an access token
  4. Attach the claims to flask.g

The blacklist is consulted before the signature, so a token that is both
revoked and expired is reported as TOKEN_REVOKED. If the cache cannot be
reached the request fails (CACHE_UNAVAILABLE, 500) rather than skipping the
revocation check.

Variants:
  @require_role("admin")  — require_auth, then 403 FORBIDDEN unless the
                            role claim is in the allowed set
  @optional_auth          — same checks, but any failure just leaves
                            g.user = None; never rejects

Error codes:
  TOKEN_MISSING  (401) — no Authorization header, or not "Bearer <token>"
  TOKEN_INVALID  (401) — bad signature, malformed token, wrong token kind
  TOKEN_REVOKED  (401) — token was blacklisted at logout
  TOKEN_EXPIRED  (401) — valid signature but exp claim is in the past
  FORBIDDEN      (403) — role gate only
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import g, request

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.extensions import get_token_cache
from backend.musicbox.services import auth_service


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Sets g.user_id (int), g.user ({"id", "email", "role"}) and g.access_token.
    Raises AppError for all auth failures; the global error handler converts
    these to the JSON error envelope.

    Usage:
        @songs_bp.route("/<external_id>")
        @require_auth
        def get_song(external_id):
            user_id = g.user_id
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def require_role(*roles: str) -> Callable:
    """Route decorator: authenticate, then allow only the given roles."""
    allowed = set(roles)

    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            _authenticate_request()
            if g.user.get("role") not in allowed:
                raise AppError(
                    ErrorCode.FORBIDDEN,
                    "You do not have permission to access this resource.",
                    403,
                )
            return f(*args, **kwargs)

        return decorated

    return decorator


def optional_auth(f: Callable) -> Callable:
    """Route decorator: attach claims when a good token is present, else g.user = None."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        try:
            _authenticate_request()
        except AppError:
            g.user = None
            g.user_id = None
            g.access_token = None
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    # An absent header and one that is not "Bearer <token>" are the same outcome.
    parts = request.headers.get("Authorization", "").split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )
    return parts[1]


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and populates flask.g.
    Separated from the decorators so tests can call it directly.
    """
    raw_token = _bearer_token()

    if auth_service.is_token_revoked(raw_token, get_token_cache()):
        raise AppError(
            ErrorCode.TOKEN_REVOKED,
            "This token has been invalidated. Log in again.",
            401,
        )

    claims = auth_service.decode_access_token(raw_token)

    g.user = claims
    g.user_id = claims["id"]
    g.access_token = raw_token
