"""
schemas/user_schema.py — Schemas for profile and catalog endpoints.

Emptiness of the whole payload (NO_FIELDS_TO_UPDATE) is checked in
user_service.py; this file only validates the fields that are present.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class UpdateProfileSchema(Schema):
    """PATCH /users/me/profile — every field optional, null clears it."""

    display_name = fields.Str(
        allow_none=True,
        validate=validate.Length(max=100, error="Display name must be at most 100 characters."),
    )
    bio = fields.Str(
        allow_none=True,
        validate=validate.Length(max=1000, error="Bio must be at most 1000 characters."),
    )
    profile_picture_url = fields.Url(
        allow_none=True,
        validate=validate.Length(max=500),
    )


class CatalogQuerySchema(Schema):
    """
    GET /users/me/catalog — query string.

      page   : >= 1, default 1
      limit  : 1–100, default 20
      sort   : recent | rating | name, default recent
      filter : all | rated | favorited | commented, default all
      order  : asc | desc, default desc
    """

    page = fields.Int(
        load_default=1,
        validate=validate.Range(min=1, error="page must be at least 1."),
    )
    limit = fields.Int(
        load_default=20,
        validate=validate.Range(min=1, max=100, error="limit must be between 1 and 100."),
    )
    sort = fields.Str(
        load_default="recent",
        validate=validate.OneOf(["recent", "rating", "name"]),
    )
    filter = fields.Str(
        load_default="all",
        validate=validate.OneOf(["all", "rated", "favorited", "commented"]),
    )
    order = fields.Str(
        load_default="desc",
        validate=validate.OneOf(["asc", "desc"]),
    )
