"""
services/settlement_service.py — Settlement business logic.

A settlement records money that already moved from one member to another.
Checks, in order and before any write:
  GROUP_NOT_FOUND (404)     — group absent or soft-deleted
  NOT_A_GROUP_MEMBER (403)  — requester is not a member
  INVALID_MEMBER (422)      — from_member_id not a member of this group
  INVALID_MEMBER (422)      — to_member_id not a member of this group
  SELF_SETTLEMENT (422)     — from_member_id == to_member_id

The requester does not have to be one of the two parties: any member may
record a payment between two others. Overpayment is allowed; the next
balance query simply shows the reversed position.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.models.settlement import Settlement
from groupledger.app.services import queries


def _require_member_in_group(member_id: str, group_id: str, field: str, session: Session):
    member = queries.get_member_in_group(member_id, group_id, session)
    if member is None:
        raise AppError(
            ErrorCode.INVALID_MEMBER,
            f"{field} is not a valid member of group {group_id}.",
            422,
            field=field,
        )
    return member


# ── Public service functions ───────────────────────────────────────────────

def record_settlement(
        caller_id: str,
        data: dict,
        session: Session,
) -> Settlement:
    """
    Records a settlement.

    Args:
        caller_id: The authenticated user (from flask.g).
        data:      Validated dict from CreateSettlementSchema: group_id,
                   from_member_id, to_member_id, cent_amount, and optionally
                   notes and settled_at.
    """
    group_id: str = data["group_id"]

    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    _require_member_in_group(data["from_member_id"], group_id, "from_member_id", session)
    _require_member_in_group(data["to_member_id"], group_id, "to_member_id", session)

    if data["from_member_id"] == data["to_member_id"]:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "A member cannot settle with themselves.",
            422,
            field="to_member_id",
        )

    settlement = Settlement(
        group_id=group_id,
        from_member_id=data["from_member_id"],
        to_member_id=data["to_member_id"],
        cent_amount=data["cent_amount"],
        notes=data.get("notes"),
    )
    if data.get("settled_at") is not None:
        settlement.settled_at = data["settled_at"]

    session.add(settlement)
    session.flush()
    return settlement


def list_settlements(
        group_id: str,
        caller_id: str,
        session: Session,
) -> list[Settlement]:
    """Settlements of a group, most recent settled_at first."""
    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.settled_at.desc(), Settlement.created_at.desc())
    )
    return list(session.execute(stmt).scalars().all())
