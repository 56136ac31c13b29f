"""
schemas/expense_schema.py — Marshmallow schema for expense creation.

Validation responsibility:
  - This file:
      - field types and shapes; cent_amount is a strict positive int
        (floats like 10.0 and numeric strings are rejected, never rounded)
      - UUID shape of every id field
      - non-empty-after-trim description
  - services/expense_service.py:
      - GROUP_NOT_FOUND / NOT_A_GROUP_MEMBER     — require DB lookups
      - INVALID_PAYER / INVALID_MEMBER_IDS       — require membership lookups
      - EMPTY_SPLIT                              — depends on membership

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate

from groupledger.app.models.base import MAX_CENT_AMOUNT

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

_uuid = validate.Regexp(UUID_PATTERN, error="Must be a valid UUID.")


def _validate_non_empty_after_trim(value: str) -> None:
    """Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint at the API layer."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateExpenseSchema(Schema):
    """
    POST /expense

    included_member_ids omitted, null or [] means "split across everyone".
    Duplicates are allowed here and collapsed by the service.
    """

    group_id = fields.Str(required=True, validate=_uuid)

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    cent_amount = fields.Int(
        required=True,
        strict=True,
        validate=[
            validate.Range(min=1, error="cent_amount must be a positive integer."),
            validate.Range(
                max=MAX_CENT_AMOUNT,
                error=f"cent_amount must be at most {MAX_CENT_AMOUNT}.",
            ),
        ],
    )

    paid_by_member_id = fields.Str(
        load_default=None,
        allow_none=True,
        validate=_uuid,
    )

    included_member_ids = fields.List(
        fields.Str(validate=_uuid),
        load_default=None,
        allow_none=True,
    )
