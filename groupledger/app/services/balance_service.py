"""
services/balance_service.py — Balance aggregation and settlement suggestions.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
The canonical formula must not be reimplemented elsewhere in the codebase.

    net_balance = (total_paid + settlements_paid) - (total_owed + settlements_received)

  Positive → the member is owed money.  Negative → the member owes money.

Soft delete:
  - Expenses and splits come from queries.list_active_expenses() and
    queries.list_splits_for_active_expenses(); soft-deleted expenses never
    reach the aggregation.

Departed members:
  - Leaving a group removes the membership row but not the history. A member
    id that still appears in expenses, splits or settlements is reported after
    the current members with is_member=False, so the balances of a group
    always sum to zero.

Layer rules:
  - No Flask imports. Receives ids and a SQLAlchemy Session.
  - aggregate_balances() and suggest_transfers() are pure functions and are
    unit-tested without a database.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.services import queries


# ── Core algorithms ────────────────────────────────────────────────────────

def _empty_totals() -> dict:
    return {
        "total_paid":           0,
        "total_owed":           0,
        "settlements_received": 0,
        "settlements_paid":     0,
    }


def aggregate_balances(
        member_ids: list[str],
        expenses: Iterable,
        splits: Iterable,
        settlements: Iterable,
) -> dict[str, dict]:
    """
    Canonical balance computation.

    Args:
        member_ids:  Current members in display order (joined_at, then id).
        expenses:    Active expenses; each needs .paid_by and .cent_amount.
        splits:      Splits of those expenses; .group_member_id, .cent_amount.
        settlements: Settlements of the group; .from_member_id, .to_member_id,
                     .cent_amount.

    Returns:
        {member_id: {total_paid, total_owed, settlements_received,
        settlements_paid, net_balance}} ordered as member_ids, followed by any
        departed member ids found in the history, sorted by id.

    Pure and idempotent: the same inputs always give the same result.
    """
    totals: dict[str, dict] = {member_id: _empty_totals() for member_id in member_ids}
    departed: dict[str, dict] = {}

    def bucket(member_id: str) -> dict:
        if member_id in totals:
            return totals[member_id]
        return departed.setdefault(member_id, _empty_totals())

    for expense in expenses:
        bucket(expense.paid_by)["total_paid"] += expense.cent_amount

    for split in splits:
        bucket(split.group_member_id)["total_owed"] += split.cent_amount

    for settlement in settlements:
        bucket(settlement.from_member_id)["settlements_paid"] += settlement.cent_amount
        bucket(settlement.to_member_id)["settlements_received"] += settlement.cent_amount

    for member_id in sorted(departed):
        totals[member_id] = departed[member_id]

    for entry in totals.values():
        entry["net_balance"] = (
            (entry["total_paid"] + entry["settlements_paid"])
            - (entry["total_owed"] + entry["settlements_received"])
        )

    return totals


def suggest_transfers(balances: list[dict]) -> list[dict]:
    """
    Greedy reduction of net balances to a short list of transfers.

    Args:
        balances: [{"member_id": str, "net_balance": int}, ...] in display
                  order. The net balances must sum to zero.

    Algorithm:
      1. Debtors (net < 0) and creditors (net > 0); zero balances are skipped.
      2. Each list sorted by magnitude, largest first. The sort is stable, so
         equal magnitudes keep their display order.
      3. Two pointers: transfer min(debt, credit) from the current debtor to
         the current creditor, advance whichever pointer reaches zero.
      4. Stop when either list is exhausted.

    Returns:
        [{"from_member_id", "to_member_id", "cent_amount"}, ...]
        An empty list means everyone is already settled.
    """
    debtors = [
        [entry["member_id"], -entry["net_balance"]]
        for entry in balances
        if entry["net_balance"] < 0
    ]
    creditors = [
        [entry["member_id"], entry["net_balance"]]
        for entry in balances
        if entry["net_balance"] > 0
    ]
    debtors.sort(key=lambda item: item[1], reverse=True)
    creditors.sort(key=lambda item: item[1], reverse=True)

    transfers: list[dict] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor, creditor = debtors[i], creditors[j]

        amount = min(debtor[1], creditor[1])
        if amount > 0:
            transfers.append({
                "from_member_id": debtor[0],
                "to_member_id":   creditor[0],
                "cent_amount":    amount,
            })

        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] == 0:
            i += 1
        if creditor[1] == 0:
            j += 1

    return transfers


# ── Public service functions ───────────────────────────────────────────────

def get_group_balances(
        group_id: str,
        caller_id: str,
        session: Session,
) -> dict:
    """
    Builds the payload for GET /balance/group/<group_id>.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)     — group absent or soft-deleted.
        AppError(NOT_A_GROUP_MEMBER, 403)  — caller is not a member.
        AppError(INTERNAL_ERROR, 500)      — balances do not sum to zero.
    """
    group = queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    members = queries.list_members_ordered(group_id, session)
    expenses = queries.list_active_expenses(group_id, session)
    splits = queries.list_splits_for_active_expenses(group_id, session)
    settlements = queries.list_settlements(group_id, session)

    totals = aggregate_balances([m.id for m in members], expenses, splits, settlements)
    by_id = {m.id: m for m in members}

    balances = []
    for member_id, entry in totals.items():
        member = by_id.get(member_id)
        balances.append({
            "member_id":  member_id,
            "user_id":    member.user.id if member else None,
            "user_name":  member.user.name if member else None,
            "user_email": member.user.email if member else None,
            "is_member":  member is not None,
            **entry,
        })

    balance_sum = sum(entry["net_balance"] for entry in balances)
    if balance_sum != 0:
        # Corrupt source data, not a client problem.
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed: sum was {balance_sum} (expected 0). "
            f"Group {group_id} has inconsistent financial data.",
            500,
        )

    return {
        "group_id":       group.id,
        "group_name":     group.name,
        "balances":       balances,
        "total_expenses": sum(e.cent_amount for e in expenses),
        "total_settled":  sum(s.cent_amount for s in settlements),
    }


def suggest_settlements(
        group_id: str,
        caller_id: str,
        session: Session,
) -> list[dict]:
    """
    Payload for GET /balance/group/<group_id>/suggest.

    Reuses get_group_balances(), which also performs the group and
    membership checks.
    """
    balance_response = get_group_balances(group_id, caller_id, session)
    balances = balance_response["balances"]
    names = {entry["member_id"]: entry["user_name"] for entry in balances}

    return [
        {
            "from_member_id": t["from_member_id"],
            "from_user_name": names.get(t["from_member_id"]),
            "to_member_id":   t["to_member_id"],
            "to_user_name":   names.get(t["to_member_id"]),
            "cent_amount":    t["cent_amount"],
        }
        for t in suggest_transfers(balances)
    ]
