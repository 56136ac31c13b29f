"""
services/split_allocator.py — Equal split with exact remainder distribution.

This is the ONLY place splits are computed. Both the single-expense path and
the CSV batch path call allocate().

Rule:
  base      = total // n
  remainder = total %  n
  The first `remainder` participants (in the order given, i.e. joined_at
  ascending) receive base + 1 cents; everyone else receives base.

Guarantees:
  - sum(result) == total exactly, in integer cents
  - len(result) == n, in input order
  - deterministic for a fixed participant order. The extra cents are not
    rotated across expenses: early joiners absorb them every time.
  - zero-cent entries (total < n) are kept; they record who was included.
"""

from __future__ import annotations


def allocate(total_cents: int, participant_ids: list[str]) -> list[dict]:
    """
    Splits total_cents across participant_ids.

    Args:
        total_cents:     Positive integer amount in cents.
        participant_ids: Member ids, pre-sorted by joined_at then id. Must not
                         be empty; callers reject an empty split with
                         EMPTY_SPLIT before getting here.

    Returns:
        [{"group_member_id": str, "cent_amount": int}, ...] in input order.
    """
    if not participant_ids:
        raise ValueError("allocate() needs at least one participant")
    if isinstance(total_cents, bool) or not isinstance(total_cents, int):
        raise TypeError("total_cents must be an int number of cents")
    if total_cents <= 0:
        raise ValueError("total_cents must be positive")

    base, remainder = divmod(total_cents, len(participant_ids))

    return [
        {
            "group_member_id": member_id,
            "cent_amount": base + 1 if index < remainder else base,
        }
        for index, member_id in enumerate(participant_ids)
    ]
