"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, password strength.
  - services/auth_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME checks
    (require a DB lookup, not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema: it requires an active Flask app context
           and breaks unit tests. See extensions.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates


def _validate_password_strength(value: str) -> None:
    """Min 8 chars, at least one letter and one digit."""
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")
    if not any(c.isalpha() for c in value):
        raise ValidationError("Password must contain at least one letter.")
    if not any(c.isdigit() for c in value):
        raise ValidationError("Password must contain at least one digit.")


class RegisterSchema(Schema):
    """
    POST /auth/register

      email    : valid email format, max 255
      password : min 8 chars, at least one letter and one digit
      name     : display name, 1–100 chars
      username : optional handle, 3–50 chars, alphanumeric + underscore
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(required=True, load_only=True)

    name = fields.Str(
        required=True,
        validate=validate.Length(
            min=1,
            max=100,
            error="Name must be between 1 and 100 characters.",
        ),
    )

    username = fields.Str(
        load_default=None,
        validate=[
            validate.Length(
                min=3,
                max=50,
                error="Username must be between 3 and 50 characters.",
            ),
            validate.Regexp(
                r"^[a-zA-Z0-9_]+$",
                error="Username may only contain letters, numbers, and underscores.",
            ),
        ],
    )

    @validates("password")
    def validate_password(self, value: str, **kwargs) -> None:
        _validate_password_strength(value)


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py (INVALID_CREDENTIALS, 401).
    """

    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """POST /auth/refresh"""

    refresh_token = fields.Str(required=True)


class ForgotPasswordSchema(Schema):
    """POST /auth/forgot-password"""

    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    """
    POST /auth/reset-password

    Token validity (unknown, used, expired) is checked in auth_service.py
    (RESET_TOKEN_INVALID, 400).
    """

    token = fields.Str(required=True, validate=validate.Length(min=1))
    new_password = fields.Str(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value: str, **kwargs) -> None:
        _validate_password_strength(value)


class ChangePasswordSchema(Schema):
    """POST /auth/change-password"""

    current_password = fields.Str(required=True, load_only=True)
    new_password = fields.Str(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value: str, **kwargs) -> None:
        _validate_password_strength(value)
