"""
schemas/group_schema.py — Marshmallow schema for group endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py: GROUP_NOT_FOUND, ALREADY_MEMBER, creator-only
    delete. Those require DB lookups.

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    validate.Length(min=1) alone accepts "   ".
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateGroupSchema(Schema):
    """POST /group — name is non-empty after trim, max 100 chars."""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )
