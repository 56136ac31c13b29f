"""
schemas/settlement_schema.py — Marshmallow schema for settlement endpoints.

Validation responsibility:
  - This file: field types, UUID shapes, positive integer cent_amount,
    notes length, ISO-8601 settled_at.
  - services/settlement_service.py:
      - GROUP_NOT_FOUND (404), NOT_A_GROUP_MEMBER (403)
      - INVALID_MEMBER (422) for from/to — requires membership lookup
      - SELF_SETTLEMENT (422) — checked after both parties resolve, so an
        unknown id is reported as INVALID_MEMBER first

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from groupledger.app.models.base import MAX_CENT_AMOUNT
from groupledger.app.schemas.expense_schema import UUID_PATTERN

_uuid = validate.Regexp(UUID_PATTERN, error="Must be a valid UUID.")


class CreateSettlementSchema(Schema):
    """
    POST /settlement

    Any member may record a payment between two members of the group; the
    requester is not implicitly one of the parties.
    """

    group_id = fields.Str(required=True, validate=_uuid)
    from_member_id = fields.Str(required=True, validate=_uuid)
    to_member_id = fields.Str(required=True, validate=_uuid)

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

    notes = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500, error="Notes must be at most 500 characters."),
    )

    # Defaults to the time the settlement is recorded.
    settled_at = fields.AwareDateTime(
        load_default=None,
        allow_none=True,
        default_timezone=None,
    )
