"""
tests/unit/test_compute_balances.py — Unit tests for balance_service.aggregate_balances.

What this file proves:
  - net_balance = (total_paid + settlements_paid) - (total_owed + settlements_received)
  - every current member appears, even at zero, in the given order
  - ids found only in history (departed members) are appended, sorted
  - net balances sum to zero whenever every split sums to its expense

No database, no Flask: SimpleNamespace objects stand in for ORM rows.
"""

from __future__ import annotations

from types import SimpleNamespace

from groupledger.app.services.balance_service import aggregate_balances


def _expense(paid_by: str, cent_amount: int):
    return SimpleNamespace(paid_by=paid_by, cent_amount=cent_amount)


def _split(member_id: str, cent_amount: int):
    return SimpleNamespace(group_member_id=member_id, cent_amount=cent_amount)


def _settlement(from_id: str, to_id: str, cent_amount: int):
    return SimpleNamespace(from_member_id=from_id, to_member_id=to_id, cent_amount=cent_amount)


def _nets(result: dict) -> dict[str, int]:
    return {member_id: entry["net_balance"] for member_id, entry in result.items()}


def test_no_activity_everyone_zero():
    result = aggregate_balances(["a", "b"], [], [], [])

    assert list(result) == ["a", "b"]
    assert result["a"] == {
        "total_paid": 0,
        "total_owed": 0,
        "settlements_received": 0,
        "settlements_paid": 0,
        "net_balance": 0,
    }


def test_payer_credited_participants_debited():
    result = aggregate_balances(
        ["a", "b", "c"],
        [_expense("a", 900)],
        [_split("a", 300), _split("b", 300), _split("c", 300)],
        [],
    )

    assert result["a"]["total_paid"] == 900
    assert result["a"]["total_owed"] == 300
    assert _nets(result) == {"a": 600, "b": -300, "c": -300}


def test_payer_outside_the_split():
    result = aggregate_balances(
        ["a", "b"],
        [_expense("a", 500)],
        [_split("b", 500)],
        [],
    )

    assert _nets(result) == {"a": 500, "b": -500}


def test_settlement_reduces_debt():
    result = aggregate_balances(
        ["a", "b"],
        [_expense("a", 1000)],
        [_split("a", 500), _split("b", 500)],
        [_settlement("b", "a", 500)],
    )

    assert result["b"]["settlements_paid"] == 500
    assert result["a"]["settlements_received"] == 500
    assert _nets(result) == {"a": 0, "b": 0}


def test_departed_members_are_appended_sorted():
    result = aggregate_balances(
        ["a"],
        [_expense("a", 300), _expense("z-gone", 100)],
        [_split("a", 100), _split("m-gone", 100), _split("z-gone", 200)],
        [],
    )

    assert list(result) == ["a", "m-gone", "z-gone"]
    assert sum(_nets(result).values()) == 0


def test_balances_sum_to_zero_for_consistent_input():
    expenses = [_expense("a", 1001), _expense("b", 7), _expense("c", 250)]
    splits = [
        _split("a", 334), _split("b", 334), _split("c", 333),
        _split("a", 4), _split("c", 3),
        _split("b", 125), _split("c", 125),
    ]
    settlements = [_settlement("c", "a", 120), _settlement("b", "a", 50)]

    result = aggregate_balances(["a", "b", "c"], expenses, splits, settlements)

    assert sum(_nets(result).values()) == 0


def test_pure_function_same_result_twice():
    args = (["a", "b"], [_expense("a", 10)], [_split("a", 5), _split("b", 5)], [])
    assert aggregate_balances(*args) == aggregate_balances(*args)
