"""
schemas/catalog_schema.py — Schemas for song/album search and interactions.

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from backend.musicbox.errors import ErrorCode


def _validate_non_empty_after_trim(value: str) -> None:
    """Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) at the API layer."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _validate_half_step_rating(value: Decimal) -> None:
    """Rating must be one of 0.5, 1.0, ..., 5.0."""
    if value < Decimal("0.5") or value > Decimal("5.0") or (value * 2) % 1 != 0:
        raise ValidationError(ErrorCode.INVALID_RATING)


class SearchQuerySchema(Schema):
    """
    GET /songs/search, GET /albums/search — query string.

      q      : required, non-blank
      limit  : 1–50, default 20
      offset : >= 0, default 0
    """

    q = fields.Str(
        required=True,
        validate=[validate.Length(max=200), _validate_non_empty_after_trim],
    )
    limit = fields.Int(
        load_default=20,
        validate=validate.Range(min=1, max=50, error="limit must be between 1 and 50."),
    )
    offset = fields.Int(
        load_default=0,
        validate=validate.Range(min=0, error="offset must not be negative."),
    )


class RatingSchema(Schema):
    """POST /songs/:id/rate, POST /albums/:id/rate"""

    rating = fields.Decimal(
        required=True,
        validate=_validate_half_step_rating,
    )


class CommentSchema(Schema):
    """POST /songs/:id/comment — stored trimmed."""

    content = fields.Str(
        required=True,
        validate=[
            validate.Length(max=2000, error="Comment must be at most 2000 characters."),
            _validate_non_empty_after_trim,
        ],
    )
