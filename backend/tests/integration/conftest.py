"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig points at in-memory SQLite unless TEST_DATABASE_URL names
    a PostgreSQL database.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
  - Redis and the catalog HTTP API are replaced per test: a FakeTokenCache and
    a CatalogClient whose requests.Session is a FakeCatalogSession. Both are
    installed into app.extensions, exactly where create_app() puts the real ones.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)    → dict with user + tokens
  - login(client, ...)       → dict with user + tokens
  - auth_headers(token)      → {"Authorization": "Bearer <token>"}
  - make_admin(app, user_id) → promotes a user directly in the DB
"""

from __future__ import annotations

import pytest
from sqlalchemy import text, update

from backend.musicbox import create_app
from backend.musicbox.extensions import CATALOG_CLIENT_KEY, TOKEN_CACHE_KEY
from backend.musicbox.extensions import db as _db
from backend.musicbox.services.catalog_client import CatalogClient
from backend.tests.fakes import API_URL, TOKEN_URL, FakeCatalogSession, FakeTokenCache


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    The fakes passed here are replaced per test by `services` below.
    """
    flask_app = create_app("testing", token_cache=FakeTokenCache())

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def services(app):
    """
    Installs a fresh token cache and catalog client for each test and wipes
    all rows afterwards.

    Delete order respects FK RESTRICT constraints: interactions first, then
    songs → albums → artists, then reset tokens → users.
    """
    cache = FakeTokenCache()
    cache.connect()
    http = FakeCatalogSession()
    catalog = CatalogClient(
        client_id=app.config["CATALOG_CLIENT_ID"],
        client_secret=app.config["CATALOG_CLIENT_SECRET"],
        cache=cache,
        api_url=API_URL,
        token_url=TOKEN_URL,
        http_session=http,
    )
    catalog.connect()
    app.extensions[TOKEN_CACHE_KEY] = cache
    app.extensions[CATALOG_CLIENT_KEY] = catalog

    yield {"cache": cache, "http": http, "catalog": catalog}

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            for table in (
                "album_favorites",
                "album_ratings",
                "song_comments",
                "song_favorites",
                "song_ratings",
                "songs",
                "albums",
                "artists",
                "friendships",
                "password_reset_tokens",
                "users",
            ):
                conn.execute(text(f"DELETE FROM {table}"))
            conn.commit()


@pytest.fixture
def token_cache(services):
    return services["cache"]


@pytest.fixture
def catalog_http(services):
    return services["http"]


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    username: str | None = None,
) -> dict:
    """
    Registers a new user and returns the full response data dict.
    Returns: {"user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    if email is None:
        email = f"{name}@test.com"
    payload = {"name": name, "email": email, "password": password}
    if username is not None:
        payload["username"] = username
    resp = client.post("/api/v1/auth/register", json=payload)
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_admin(app, user_id: int) -> None:
    """Promotes a user to admin. Tokens issued afterwards carry role=admin."""
    from backend.musicbox.models.user import User

    with app.app_context():
        _db.session.execute(update(User).where(User.id == user_id).values(role="admin"))
        _db.session.commit()
