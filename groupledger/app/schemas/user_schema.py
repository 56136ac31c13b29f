"""
schemas/user_schema.py — Marshmallow schema for user profile creation.

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateUserSchema(Schema):
    """POST /users"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="Name must be between 1 and 100 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255, error="Email must be at most 255 characters."),
    )
