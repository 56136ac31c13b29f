"""
Unit tests for balance_service.get_group_balances and suggest_settlements.

These tests avoid Flask and real DB access: the queries module is patched so
the service receives SimpleNamespace rows.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.services import balance_service

QUERIES = "groupledger.app.services.balance_service.queries"


def _member(member_id: str, name: str):
    user = SimpleNamespace(id=f"user-{name}", name=name, email=f"{name}@test.com")
    return SimpleNamespace(id=member_id, user=user)


def _patch_queries(mock_queries, members, expenses, splits, settlements):
    mock_queries.get_active_group_or_404.return_value = SimpleNamespace(id="g1", name="Trip")
    mock_queries.list_members_ordered.return_value = members
    mock_queries.list_active_expenses.return_value = expenses
    mock_queries.list_splits_for_active_expenses.return_value = splits
    mock_queries.list_settlements.return_value = settlements


def test_get_group_balances_shapes_payload():
    session = MagicMock()
    members = [_member("m1", "alice"), _member("m2", "bob")]
    expenses = [SimpleNamespace(paid_by="m1", cent_amount=1000)]
    splits = [
        SimpleNamespace(group_member_id="m1", cent_amount=500),
        SimpleNamespace(group_member_id="m2", cent_amount=500),
    ]
    settlements = [SimpleNamespace(from_member_id="m2", to_member_id="m1", cent_amount=200)]

    with patch(QUERIES) as mock_queries:
        _patch_queries(mock_queries, members, expenses, splits, settlements)
        result = balance_service.get_group_balances("g1", "user-alice", session)

    mock_queries.require_member.assert_called_once_with("g1", "user-alice", session)
    assert result["group_id"] == "g1"
    assert result["group_name"] == "Trip"
    assert result["total_expenses"] == 1000
    assert result["total_settled"] == 200
    assert result["balances"][0] == {
        "member_id": "m1",
        "user_id": "user-alice",
        "user_name": "alice",
        "user_email": "alice@test.com",
        "is_member": True,
        "total_paid": 1000,
        "total_owed": 500,
        "settlements_received": 200,
        "settlements_paid": 0,
        "net_balance": 300,
    }
    assert result["balances"][1]["net_balance"] == -300


def test_departed_member_has_no_user_details():
    members = [_member("m1", "alice")]
    expenses = [SimpleNamespace(paid_by="m1", cent_amount=100)]
    splits = [SimpleNamespace(group_member_id="gone", cent_amount=100)]

    with patch(QUERIES) as mock_queries:
        _patch_queries(mock_queries, members, expenses, splits, [])
        result = balance_service.get_group_balances("g1", "user-alice", MagicMock())

    departed = result["balances"][1]
    assert departed["member_id"] == "gone"
    assert departed["is_member"] is False
    assert departed["user_id"] is None
    assert departed["user_name"] is None
    assert departed["net_balance"] == -100


def test_inconsistent_data_raises_internal_error():
    # Split total differs from the expense amount: balances cannot sum to zero.
    members = [_member("m1", "alice"), _member("m2", "bob")]
    expenses = [SimpleNamespace(paid_by="m1", cent_amount=1000)]
    splits = [SimpleNamespace(group_member_id="m2", cent_amount=999)]

    with patch(QUERIES) as mock_queries:
        _patch_queries(mock_queries, members, expenses, splits, [])
        with pytest.raises(AppError) as exc_info:
            balance_service.get_group_balances("g1", "user-alice", MagicMock())

    err = exc_info.value
    assert err.code == ErrorCode.INTERNAL_ERROR
    assert err.http_status == 500


def test_group_not_found_propagates():
    with patch(QUERIES) as mock_queries:
        mock_queries.get_active_group_or_404.side_effect = AppError(
            ErrorCode.GROUP_NOT_FOUND, "missing", 404
        )
        with pytest.raises(AppError) as exc_info:
            balance_service.get_group_balances("g1", "u1", MagicMock())

    assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
    mock_queries.require_member.assert_not_called()


def test_suggest_settlements_adds_names():
    members = [_member("m1", "alice"), _member("m2", "bob")]
    expenses = [SimpleNamespace(paid_by="m1", cent_amount=800)]
    splits = [
        SimpleNamespace(group_member_id="m1", cent_amount=400),
        SimpleNamespace(group_member_id="m2", cent_amount=400),
    ]

    with patch(QUERIES) as mock_queries:
        _patch_queries(mock_queries, members, expenses, splits, [])
        result = balance_service.suggest_settlements("g1", "user-bob", MagicMock())

    assert result == [{
        "from_member_id": "m2",
        "from_user_name": "bob",
        "to_member_id": "m1",
        "to_user_name": "alice",
        "cent_amount": 400,
    }]
