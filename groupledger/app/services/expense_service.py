"""
services/expense_service.py — Expense recording.

One recording path serves both entry points:
  - create_expense(): a single expense from POST /expense
  - create_batch():   every validated row of a CSV import, in one transaction

Checks, in order, each failing with its own error and before any write:
  GROUP_NOT_FOUND (404)      — group absent or soft-deleted
  NOT_A_GROUP_MEMBER (403)   — requester is not a member
  INVALID_PAYER (422)        — paid_by_member_id is not a member of this group
  INVALID_MEMBER_IDS (422)   — an included member id is not a member
  EMPTY_SPLIT (422)          — nobody left to share the expense

Participant rules:
  - included_member_ids omitted or empty → every current member, EQUAL_ALL.
  - otherwise de-duplicated and filtered in joined_at order; PARTIAL unless
    the set covers every current member.
  - the payer does not have to be a participant.

Layer rules:
  - No Flask imports. Receives plain values and dicts; returns ORM objects
    or raises AppError.
  - Commits are the caller's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.models.expense import Expense, SplitType
from groupledger.app.models.group import Group
from groupledger.app.models.member import Member
from groupledger.app.models.split import Split
from groupledger.app.services import queries
from groupledger.app.services.split_allocator import allocate


# ── Private helpers ────────────────────────────────────────────────────────

def _resolve_payer(
        paid_by_member_id: str | None,
        creator: Member,
        members: list[Member],
        group_id: str,
) -> str:
    """Defaults to the requester; otherwise the id must be a current member."""
    if not paid_by_member_id:
        return creator.id

    if paid_by_member_id not in {m.id for m in members}:
        raise AppError(
            ErrorCode.INVALID_PAYER,
            f"Payer {paid_by_member_id} is not a member of group {group_id}.",
            422,
            field="paid_by_member_id",
        )
    return paid_by_member_id


def _resolve_participants(
        included_member_ids: list[str] | None,
        members: list[Member],
) -> tuple[list[str], SplitType]:
    """
    Returns (participant ids in joined_at order, split type).

    Raises INVALID_MEMBER_IDS listing every unknown id, EMPTY_SPLIT if no
    participant remains.
    """
    ordered_ids = [m.id for m in members]

    if not included_member_ids:
        participants = ordered_ids
        split_type = SplitType.EQUAL_ALL
    else:
        requested = list(dict.fromkeys(included_member_ids))
        known = set(ordered_ids)
        invalid = [member_id for member_id in requested if member_id not in known]
        if invalid:
            raise AppError(
                ErrorCode.INVALID_MEMBER_IDS,
                f"Invalid member IDs: {', '.join(invalid)}",
                422,
                field="included_member_ids",
            )

        wanted = set(requested)
        participants = [member_id for member_id in ordered_ids if member_id in wanted]
        split_type = (
            SplitType.PARTIAL
            if len(participants) < len(ordered_ids)
            else SplitType.EQUAL_ALL
        )

    if not participants:
        raise AppError(
            ErrorCode.EMPTY_SPLIT,
            "At least one member must be included in the split.",
            422,
            field="included_member_ids",
        )

    return participants, split_type


def _record(
        group: Group,
        creator: Member,
        members: list[Member],
        data: dict,
        session: Session,
        import_batch_id: str | None = None,
) -> Expense:
    """Validates references, allocates, and stages one expense with its splits."""
    cent_amount: int = data["cent_amount"]

    paid_by = _resolve_payer(data.get("paid_by_member_id"), creator, members, group.id)
    participants, split_type = _resolve_participants(
        data.get("included_member_ids"), members
    )

    allocations = allocate(cent_amount, participants)

    expense = Expense(
        group_id=group.id,
        created_by=creator.id,
        paid_by=paid_by,
        description=data["description"].strip(),
        cent_amount=cent_amount,
        split_type=split_type,
        import_batch_id=import_batch_id,
    )
    expense.splits = [
        Split(
            group_member_id=allocation["group_member_id"],
            cent_amount=allocation["cent_amount"],
            position=position,
        )
        for position, allocation in enumerate(allocations)
    ]
    session.add(expense)
    session.flush()
    return expense


# ── Public service functions ───────────────────────────────────────────────

def create_expense(
        group_id: str,
        caller_id: str,
        data: dict,
        session: Session,
) -> Expense:
    """
    Records a new expense for a group.

    Args:
        group_id:  The group this expense belongs to.
        caller_id: The authenticated user creating the expense (from flask.g).
        data:      Validated dict from CreateExpenseSchema: description,
                   cent_amount, and optionally paid_by_member_id and
                   included_member_ids.

    Returns:
        The newly created Expense ORM object with its splits.
    """
    group = queries.get_active_group_or_404(group_id, session)
    creator = queries.require_member(group_id, caller_id, session)
    members = queries.list_members_ordered(group_id, session)

    return _record(group, creator, members, data, session)


def create_batch(
        group_id: str,
        caller_id: str,
        rows: list[dict],
        session: Session,
        import_batch_id: str | None = None,
) -> list[Expense]:
    """
    Records every row as an expense inside the caller's transaction.

    The group, the requester's membership and the ordered member list are
    read once for the whole batch. Any failing row raises and the caller
    rolls back, so either every row is written or none is.
    """
    group = queries.get_active_group_or_404(group_id, session)
    creator = queries.require_member(group_id, caller_id, session)
    members = queries.list_members_ordered(group_id, session)

    return [
        _record(group, creator, members, row, session, import_batch_id=import_batch_id)
        for row in rows
    ]


def list_expenses(
        group_id: str,
        caller_id: str,
        session: Session,
) -> list[Expense]:
    """Returns the active expenses of a group, newest first."""
    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    stmt = queries.active_expenses(group_id).order_by(
        Expense.created_at.desc(),
        Expense.id.desc(),
    )
    return list(session.execute(stmt).scalars().all())
