"""
tests/unit/test_split_allocator.py — Unit tests for split_allocator.allocate.

What this file proves:
  - sum(result) == total for any total and participant count
  - the first `total % n` participants get one extra cent, in input order
  - zero-cent shares are kept when total < n
  - bad input (no participants, non-positive or non-int totals) raises

No database, no Flask: allocate() is integer arithmetic only.
"""

from __future__ import annotations

import pytest

from groupledger.app.services.split_allocator import allocate


def _amounts(result: list[dict]) -> list[int]:
    return [entry["cent_amount"] for entry in result]


def test_even_split_two_participants():
    result = allocate(1000, ["a", "b"])

    assert result == [
        {"group_member_id": "a", "cent_amount": 500},
        {"group_member_id": "b", "cent_amount": 500},
    ]


def test_remainder_goes_to_earliest_participants():
    """1000 / 3 = 333 r 1 → the first participant gets 334."""
    assert _amounts(allocate(1000, ["a", "b", "c"])) == [334, 333, 333]


def test_remainder_of_two():
    """1001 / 3 = 333 r 2 → the first two get 334."""
    assert _amounts(allocate(1001, ["a", "b", "c"])) == [334, 334, 333]


def test_single_participant_receives_full_amount():
    assert allocate(4599, ["only"]) == [{"group_member_id": "only", "cent_amount": 4599}]


def test_total_smaller_than_participants_keeps_zero_shares():
    result = allocate(2, ["a", "b", "c", "d"])

    assert _amounts(result) == [1, 1, 0, 0]
    assert [entry["group_member_id"] for entry in result] == ["a", "b", "c", "d"]


def test_one_cent_among_many():
    assert _amounts(allocate(1, ["a", "b", "c"])) == [1, 0, 0]


def test_order_follows_input_not_sorting():
    result = allocate(5, ["z", "a"])
    assert result[0] == {"group_member_id": "z", "cent_amount": 3}


@pytest.mark.parametrize(
    "total, n",
    [(1, 1), (7, 3), (100, 7), (999_999, 13), (10_000_000_000, 6)],
)
def test_sum_is_exact_and_shares_differ_by_at_most_one(total, n):
    result = allocate(total, [f"m{i}" for i in range(n)])
    amounts = _amounts(result)

    assert sum(amounts) == total
    assert len(amounts) == n
    assert max(amounts) - min(amounts) <= 1
    assert all(isinstance(a, int) for a in amounts)


def test_same_input_same_output():
    assert allocate(1001, ["a", "b", "c"]) == allocate(1001, ["a", "b", "c"])


# ── Rejected input ─────────────────────────────────────────────────────────

def test_empty_participants_raises():
    with pytest.raises(ValueError):
        allocate(100, [])


@pytest.mark.parametrize("total", [0, -1])
def test_non_positive_total_raises(total):
    with pytest.raises(ValueError):
        allocate(total, ["a"])


@pytest.mark.parametrize("total", [10.0, "10", True])
def test_non_integer_total_raises(total):
    with pytest.raises(TypeError):
        allocate(total, ["a"])
