"""
schemas/friend_schema.py — Schema for the user search behind friend requests.

The other friend endpoints take only a user id from the URL.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class UserSearchSchema(Schema):
    """GET /friends/search?q="""

    q = fields.Str(
        required=True,
        validate=validate.Length(
            min=2,
            max=100,
            error="Search query must be between 2 and 100 characters.",
        ),
    )
