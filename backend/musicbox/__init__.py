"""
musicbox/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances
           - Injecting fake cache / catalog handles from tests
           - `alembic upgrade` to run without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  3. Build and connect the token cache and catalog client, unless injected,
     and store them in app.extensions
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a custom JSON provider so Decimal ratings serialise as numbers

Both external handles are connected BEFORE create_app() returns. A Redis that
does not answer PING fails startup instead of failing the first request.
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from backend.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.
# Ratings are stored as NUMERIC(2,1); they only ever hold half steps, so a
# float is exact and clients receive a plain JSON number (4.5, not "4.5").

class DecimalJSONProvider(DefaultJSONProvider):

    def default(self, o):
        if isinstance(o, Decimal):
            return float(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(
        config_name: str = "development",
        token_cache=None,
        catalog_client=None,
) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name:    One of "development", "testing", "production".
                        Resolved via config_by_name in config.py.
        token_cache:    Optional pre-built cache handle (tests pass a fake).
                        Built from REDIS_URL when omitted.
        catalog_client: Optional pre-built CatalogClient. Built from the
                        CATALOG_* settings when omitted.

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    from backend.musicbox.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    # Alembic needs to see these to auto-generate migrations.
    with app.app_context():
        from backend.musicbox.models import (  # noqa: F401
            album,
            artist,
            friendship,
            interaction,
            password_reset_token,
            song,
            user,
        )

    # ── External services ──────────────────────────────────────────────────
    _register_services(app, token_cache, catalog_client)

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Applies LOG_LEVEL to the Flask logger and the musicbox module loggers."""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    logging.getLogger("backend.musicbox").setLevel(level)


def _register_services(app: Flask, token_cache, catalog_client) -> None:
    """
    Builds (when not injected) and connects the token cache and the catalog
    client, then stores them in app.extensions.

    The catalog client shares the token cache: its service token and its
    search / entity responses are cached in the same Redis.
    """
    from backend.musicbox.extensions import CATALOG_CLIENT_KEY, TOKEN_CACHE_KEY
    from backend.musicbox.services.catalog_client import CatalogClient
    from backend.musicbox.services.token_cache import TokenCache

    if token_cache is None:
        token_cache = TokenCache(app.config["REDIS_URL"])
    token_cache.connect()

    if catalog_client is None:
        catalog_client = CatalogClient(
            client_id=app.config["CATALOG_CLIENT_ID"],
            client_secret=app.config["CATALOG_CLIENT_SECRET"],
            cache=token_cache,
            api_url=app.config["CATALOG_API_URL"],
            token_url=app.config["CATALOG_TOKEN_URL"],
            timeout=app.config["CATALOG_TIMEOUT"],
        )
    catalog_client.connect()

    app.extensions[TOKEN_CACHE_KEY] = token_cache
    app.extensions[CATALOG_CLIENT_KEY] = catalog_client


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "/search" and "/<external_id>").
    """
    from backend.musicbox.routes.albums import albums_bp
    from backend.musicbox.routes.auth import auth_bp
    from backend.musicbox.routes.friends import friends_bp
    from backend.musicbox.routes.songs import songs_bp
    from backend.musicbox.routes.users import users_bp

    app.register_blueprint(auth_bp,   url_prefix="/api/v1/auth")
    app.register_blueprint(songs_bp,  url_prefix="/api/v1/songs")
    app.register_blueprint(albums_bp, url_prefix="/api/v1/albums")
    app.register_blueprint(users_bp,  url_prefix="/api/v1/users")
    app.register_blueprint(friends_bp, url_prefix="/api/v1/friends")

    @app.route("/api/v1/health", methods=["GET"])
    def health():
        """Liveness plus a cheap database round trip."""
        from backend.musicbox.extensions import db, get_token_cache

        db.session.execute(text("SELECT 1"))
        cache = get_token_cache()
        return jsonify({
            "data": {
                "status": "ok",
                "database": "ok",
                "cache": "ok" if getattr(cache, "connected", False) else "disconnected",
            },
            "warnings": [],
        }), 200


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD / INVALID_RATING responses (400)
      HTTPException   → werkzeug's own 400/404/405 mapped onto the envelope
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server. The traceback is written to the app
    logger and the client only sees INTERNAL_ERROR.
    """
    from backend.musicbox.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.
        """
        if error.http_status >= 500:
            app.logger.error("%s on %s %s: %s", error.code, request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST failing field is reported. A message that is itself a
        registered ErrorCode (e.g. INVALID_RATING) becomes the response code.
        """
        messages = error.messages  # e.g. {"rating": ["INVALID_RATING"]}

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)

                if raw_message in vars(ErrorCode).values():
                    code = raw_message
                elif str(raw_message).startswith("Missing data for required field"):
                    code = ErrorCode.MISSING_FIELD
                else:
                    code = ErrorCode.INVALID_FIELD
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."
            if raw_message in vars(ErrorCode).values():
                code = raw_message
            elif str(raw_message).startswith("Missing data for required field"):
                code = ErrorCode.MISSING_FIELD

        response_body = {
            "error": {
                "code": code,
                "message": raw_message if raw_message not in vars(ErrorCode).values()
                else _code_to_message(code),
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        code = {
            400: ErrorCode.MALFORMED_REQUEST,
            404: ErrorCode.ROUTE_NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
        }.get(error.code, ErrorCode.INTERNAL_ERROR)
        return jsonify({
            "error": {
                "code": code,
                "message": error.description,
            }
        }), error.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for the browser frontend.

    In DEBUG / TESTING the request Origin is reflected so any local dev
    server can call the API. Otherwise only CORS_ORIGIN is allowed.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed = app.config.get("CORS_ORIGIN")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
        elif origin and origin == allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
        else:
            return response

        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself.
    """
    _messages = {
        "INVALID_RATING": "Rating must be between 0.5 and 5.0 in steps of 0.5.",
    }
    return _messages.get(code, "Invalid input.")
