"""
errors.py — AppError base class and error code registry.

Every error returned by the MusicBox API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class CatalogUnavailable(AppError):
    """The external catalog failed, timed out, or returned an unusable payload."""

    def __init__(self, message: str = "The music catalog is currently unavailable.") -> None:
        super().__init__(ErrorCode.CATALOG_UNAVAILABLE, message, 500)


class CacheUnavailable(AppError):
    """A read or write against the shared cache failed."""

    def __init__(self, message: str = "The cache backend is currently unavailable.") -> None:
        super().__init__(ErrorCode.CACHE_UNAVAILABLE, message, 500)


class NotConnected(RuntimeError):
    """
    A cache or catalog handle was used before its connect() completed.

    Not an AppError: the global handler reports it as INTERNAL_ERROR.
    """


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_RATING             = "INVALID_RATING"
    NO_FIELDS_TO_UPDATE        = "NO_FIELDS_TO_UPDATE"
    RESET_TOKEN_INVALID        = "RESET_TOKEN_INVALID"
    CANNOT_FRIEND_SELF         = "CANNOT_FRIEND_SELF"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME         = "DUPLICATE_USERNAME"
    ALREADY_FRIENDS            = "ALREADY_FRIENDS"
    FRIEND_REQUEST_PENDING     = "FRIEND_REQUEST_PENDING"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    SONG_NOT_FOUND             = "SONG_NOT_FOUND"
    ALBUM_NOT_FOUND            = "ALBUM_NOT_FOUND"
    FRIEND_REQUEST_NOT_FOUND   = "FRIEND_REQUEST_NOT_FOUND"
    FRIENDSHIP_NOT_FOUND       = "FRIENDSHIP_NOT_FOUND"
    ROUTE_NOT_FOUND            = "ROUTE_NOT_FOUND"

    # ── Protocol Errors ────────────────────────────────────────────────────
    MALFORMED_REQUEST          = "MALFORMED_REQUEST"      # 400: body is not JSON
    METHOD_NOT_ALLOWED         = "METHOD_NOT_ALLOWED"     # 405

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but your role is not allowed here
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    TOKEN_REVOKED              = "TOKEN_REVOKED"          # 401: blacklisted at logout
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 401
    REFRESH_TOKEN_EXPIRED      = "REFRESH_TOKEN_EXPIRED"  # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── Upstream / System Errors (500) ─────────────────────────────────────
    CATALOG_UNAVAILABLE        = "CATALOG_UNAVAILABLE"
    CACHE_UNAVAILABLE          = "CACHE_UNAVAILABLE"
    INTERNAL_ERROR             = "INTERNAL_ERROR"
