"""
extensions.py — Flask extension singletons and per-app service handles.

SQLAlchemy and marshmallow are module-level objects so they can be imported
anywhere without creating circular dependencies:

    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in musicbox/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

The token cache and the catalog client are NOT module-level singletons. They
are built (or injected) by create_app(), connected once, and stored in
app.extensions. Routes fetch them with get_token_cache() / get_catalog_client()
and pass them into services as plain arguments, the same way db.session is.
"""

from __future__ import annotations

from flask import current_app
from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance, available for SQLAlchemy model serialization helpers.
#
# IMPORTANT: schema inheritance rule:
#   All validation Schema classes (in musicbox/schemas/) inherit from
#   marshmallow.Schema directly, NOT from ma.Schema.
#   ma.Schema requires an active Flask application context, and the unit
#   tests instantiate schemas without one.
ma = Marshmallow()

TOKEN_CACHE_KEY = "musicbox.token_cache"
CATALOG_CLIENT_KEY = "musicbox.catalog_client"


def get_token_cache():
    """Returns the TokenCache bound to the current app."""
    return current_app.extensions[TOKEN_CACHE_KEY]


def get_catalog_client():
    """Returns the CatalogClient bound to the current app."""
    return current_app.extensions[CATALOG_CLIENT_KEY]
