"""
Unit tests for auth_service: token issue / verification, revocation, and the
DB-touching branches that are awkward to reach through HTTP.

A bare Flask app supplies current_app.config; the session is a MagicMock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import jwt
import pytest
from flask import Flask

from backend.musicbox.errors import AppError, ErrorCode
from backend.musicbox.services import auth_service

SECRET = "unit-test-secret-key-at-least-32-bytes"
CLAIMS = {"id": 7, "email": "alice@example.com", "role": "user"}


@pytest.fixture
def app():
    flask_app = Flask(__name__)
    flask_app.config.update(
        JWT_SECRET_KEY=SECRET,
        JWT_ALGORITHM="HS256",
        JWT_ACCESS_TOKEN_EXPIRES=timedelta(minutes=15),
        JWT_REFRESH_TOKEN_EXPIRES=timedelta(days=7),
        BCRYPT_LOG_ROUNDS=4,
        PASSWORD_RESET_EXPIRES=timedelta(hours=1),
    )
    with flask_app.app_context():
        yield flask_app


def _encode(payload: dict, secret: str = SECRET) -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


def _expired(token_type: str) -> str:
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    return _encode({
        "sub": "7", "email": "alice@example.com", "role": "user",
        "type": token_type, "iat": past - timedelta(minutes=15), "exp": past,
    })


# ═══════════════════════════════════════════════════════════════════════════
# Passwords
# ═══════════════════════════════════════════════════════════════════════════

def test_hash_password_round_trip(app):
    hashed = auth_service.hash_password("Password1")

    assert hashed != "Password1"
    assert auth_service.verify_password("Password1", hashed) is True
    assert auth_service.verify_password("Password2", hashed) is False


# ═══════════════════════════════════════════════════════════════════════════
# Tokens
# ═══════════════════════════════════════════════════════════════════════════

class TestIssueAndDecode:

    def test_access_token_decodes_to_claims(self, app):
        tokens = auth_service.issue_tokens(CLAIMS)

        assert auth_service.decode_access_token(tokens["access_token"]) == CLAIMS

    def test_refresh_token_yields_user_id(self, app):
        tokens = auth_service.issue_tokens(CLAIMS)

        assert auth_service.verify_refresh_token(tokens["refresh_token"]) == 7

    def test_each_issue_produces_distinct_tokens(self, app):
        first = auth_service.issue_tokens(CLAIMS)
        second = auth_service.issue_tokens(CLAIMS)

        assert first["access_token"] != second["access_token"]
        assert first["refresh_token"] != second["refresh_token"]

    def test_refresh_token_carries_no_role_or_email(self, app):
        tokens = auth_service.issue_tokens(CLAIMS)
        payload = jwt.decode(tokens["refresh_token"], SECRET, algorithms=["HS256"])

        assert payload["type"] == "refresh"
        assert "role" not in payload
        assert "email" not in payload

    def test_access_token_lifetime_matches_config(self, app):
        tokens = auth_service.issue_tokens(CLAIMS)
        payload = jwt.decode(tokens["access_token"], SECRET, algorithms=["HS256"])

        assert payload["exp"] - payload["iat"] == 15 * 60

    def test_wrong_secret_is_token_invalid(self, app):
        token = _encode({"sub": "7", "type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
                        secret="some-other-secret-key-of-32-bytes!!")

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(token)

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID
        assert exc_info.value.http_status == 401

    def test_garbage_is_token_invalid(self, app):
        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token("not-a-jwt")

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID

    def test_expired_access_token(self, app):
        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(_expired("access"))

        assert exc_info.value.code == ErrorCode.TOKEN_EXPIRED

    def test_refresh_token_rejected_as_access_token(self, app):
        tokens = auth_service.issue_tokens(CLAIMS)

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(tokens["refresh_token"])

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID

    def test_access_token_rejected_as_refresh_token(self, app):
        tokens = auth_service.issue_tokens(CLAIMS)

        with pytest.raises(AppError) as exc_info:
            auth_service.verify_refresh_token(tokens["access_token"])

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID

    def test_expired_refresh_token(self, app):
        with pytest.raises(AppError) as exc_info:
            auth_service.verify_refresh_token(_expired("refresh"))

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_EXPIRED

    def test_token_without_type_claim_is_invalid(self, app):
        token = _encode({"sub": "7", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)})

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(token)

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID

    def test_non_numeric_subject_is_invalid(self, app):
        token = _encode({"sub": "alice", "type": "access",
                         "exp": datetime.now(timezone.utc) + timedelta(minutes=5)})

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(token)

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID


# ═══════════════════════════════════════════════════════════════════════════
# Revocation
# ═══════════════════════════════════════════════════════════════════════════

class TestRevocation:

    def test_revoke_uses_remaining_lifetime(self, app):
        cache = MagicMock()
        token = auth_service.issue_tokens(CLAIMS)["access_token"]

        ttl = auth_service.revoke_access_token(token, cache)

        assert 15 * 60 - 5 <= ttl <= 15 * 60
        cache.set.assert_called_once_with(f"blacklist:{token}", "1", ttl)

    def test_explicit_ttl_wins(self, app):
        cache = MagicMock()
        token = auth_service.issue_tokens(CLAIMS)["access_token"]

        assert auth_service.revoke_access_token(token, cache, ttl_seconds=42) == 42
        cache.set.assert_called_once_with(f"blacklist:{token}", "1", 42)

    @pytest.mark.parametrize("ttl", [0, -30])
    def test_non_positive_ttl_is_clamped_to_one_second(self, app, ttl):
        cache = MagicMock()
        token = auth_service.issue_tokens(CLAIMS)["access_token"]

        assert auth_service.revoke_access_token(token, cache, ttl_seconds=ttl) == 1
        cache.set.assert_called_once_with(f"blacklist:{token}", "1", 1)

    def test_remaining_lifetime_of_expired_token_is_one_second(self, app):
        assert auth_service.remaining_lifetime(_expired("access")) == 1

    def test_remaining_lifetime_rejects_forged_token(self, app):
        token = _encode({"sub": "7", "type": "access",
                         "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
                        secret="some-other-secret-key-of-32-bytes!!")

        with pytest.raises(AppError) as exc_info:
            auth_service.remaining_lifetime(token)

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID

    def test_is_token_revoked_reads_blacklist_key(self, app):
        cache = MagicMock()
        cache.get.return_value = "1"

        assert auth_service.is_token_revoked("abc", cache) is True
        cache.get.assert_called_once_with("blacklist:abc")

    def test_unknown_token_is_not_revoked(self, app):
        cache = MagicMock()
        cache.get.return_value = None

        assert auth_service.is_token_revoked("abc", cache) is False


# ═══════════════════════════════════════════════════════════════════════════
# Service branches
# ═══════════════════════════════════════════════════════════════════════════

def test_refresh_for_deleted_user_is_refresh_token_invalid(app):
    session = MagicMock()
    session.get.return_value = None
    refresh_token = auth_service.issue_tokens(CLAIMS)["refresh_token"]

    with pytest.raises(AppError) as exc_info:
        auth_service.refresh_tokens(refresh_token, session=session)

    assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID
    assert exc_info.value.http_status == 401


def test_refresh_uses_current_role_from_database(app):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=7, email="alice@example.com", role="admin")
    refresh_token = auth_service.issue_tokens(CLAIMS)["refresh_token"]

    tokens = auth_service.refresh_tokens(refresh_token, session=session)

    assert auth_service.decode_access_token(tokens["access_token"])["role"] == "admin"


def test_forgot_password_for_unknown_email_writes_nothing(app):
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    message = auth_service.request_password_reset("nobody@example.com", session=session)

    assert message == auth_service.FORGOT_PASSWORD_MESSAGE
    session.add.assert_not_called()


def test_get_user_or_404_raises_user_not_found(app):
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        auth_service.get_user_or_404(user_id=99999, session=session)

    assert exc_info.value.code == ErrorCode.USER_NOT_FOUND
    assert exc_info.value.http_status == 404


def test_change_password_with_wrong_current_password(app):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(
        id=7, password_hash=auth_service.hash_password("Password1"),
    )

    with pytest.raises(AppError) as exc_info:
        auth_service.change_password(7, "WrongPass1", "NewPass123", session=session)

    assert exc_info.value.code == ErrorCode.INVALID_CREDENTIALS
    assert exc_info.value.field == "current_password"
