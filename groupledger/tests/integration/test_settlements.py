"""
tests/integration/test_settlements.py — Recording and listing settlements.

Endpoints covered:
  POST /settlement               → 201
  GET  /settlement/group/:id     → 200 (settled_at descending)

Errors:
  INVALID_MEMBER   422 — from/to not a member of this group
  SELF_SETTLEMENT  422
  NOT_A_GROUP_MEMBER 403, GROUP_NOT_FOUND 404
"""

from __future__ import annotations

from .conftest import (
    auth_headers,
    join,
    make_group,
    make_settlement,
    make_user,
    member_id_of,
)


def _setup(client):
    alice = make_user(client, "alice")
    bob = make_user(client, "bob")
    carol = make_user(client, "carol")
    group = make_group(client, alice)
    join(client, bob, group["id"])
    join(client, carol, group["id"])
    ids = {u["name"]: member_id_of(client, u, group["id"]) for u in (alice, bob, carol)}
    return (alice, bob, carol), group, ids


class TestRecordSettlement:

    def test_record_returns_201(self, client):
        (alice, bob, _), group, ids = _setup(client)

        resp = make_settlement(
            client, bob, group["id"], ids["bob"], ids["alice"], 1234, notes="cash",
        )

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["from_member_id"] == ids["bob"]
        assert data["to_member_id"] == ids["alice"]
        assert data["cent_amount"] == 1234
        assert data["notes"] == "cash"
        assert data["settled_at"]

    def test_any_member_may_record_between_others(self, client):
        (_, _, carol), group, ids = _setup(client)

        resp = make_settlement(client, carol, group["id"], ids["bob"], ids["alice"], 100)

        assert resp.status_code == 201

    def test_explicit_settled_at_is_kept(self, client):
        (alice, _, _), group, ids = _setup(client)

        resp = make_settlement(
            client, alice, group["id"], ids["bob"], ids["alice"], 100,
            settled_at="2024-05-01T12:00:00+00:00",
        )

        assert resp.status_code == 201
        assert resp.get_json()["data"]["settled_at"].startswith("2024-05-01T12:00:00")

    def test_naive_settled_at_is_rejected(self, client):
        (alice, _, _), group, ids = _setup(client)

        resp = make_settlement(
            client, alice, group["id"], ids["bob"], ids["alice"], 100,
            settled_at="2024-05-01T12:00:00",
        )

        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "settled_at"

    def test_both_parties_are_notified(self, client, services):
        (alice, bob, _), group, ids = _setup(client)

        make_settlement(client, bob, group["id"], ids["bob"], ids["alice"], 250)

        subjects = {mail["to"]: mail["subject"] for mail in services.notifier.sent}
        assert subjects == {
            "bob@test.com": "Payment recorded - Test Group",
            "alice@test.com": "You received a payment - Test Group",
        }
        assert all("$2.50" in mail["body"] for mail in services.notifier.sent)


class TestRecordSettlementErrors:

    def test_self_settlement_returns_422(self, client):
        (alice, _, _), group, ids = _setup(client)

        resp = make_settlement(client, alice, group["id"], ids["alice"], ids["alice"], 100)

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "SELF_SETTLEMENT"

    def test_unknown_from_member_returns_invalid_member(self, client):
        (alice, _, _), group, ids = _setup(client)

        resp = make_settlement(
            client, alice, group["id"],
            "55555555-5555-4555-8555-555555555555", ids["alice"], 100,
        )

        assert resp.status_code == 422
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_MEMBER"
        assert error["field"] == "from_member_id"

    def test_unknown_to_member_returns_invalid_member(self, client):
        (alice, _, _), group, ids = _setup(client)

        resp = make_settlement(
            client, alice, group["id"],
            ids["bob"], "55555555-5555-4555-8555-555555555555", 100,
        )

        assert resp.status_code == 422
        assert resp.get_json()["error"]["field"] == "to_member_id"

    def test_non_member_returns_403(self, client):
        (_, _, _), group, ids = _setup(client)
        mallory = make_user(client, "mallory")

        resp = make_settlement(client, mallory, group["id"], ids["bob"], ids["alice"], 100)

        assert resp.status_code == 403

    def test_negative_amount_returns_400(self, client):
        (alice, _, _), group, ids = _setup(client)

        resp = make_settlement(client, alice, group["id"], ids["bob"], ids["alice"], -5)

        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "cent_amount"


class TestListSettlements:

    def test_newest_settled_at_first(self, client):
        (alice, _, _), group, ids = _setup(client)
        make_settlement(client, alice, group["id"], ids["bob"], ids["alice"], 100,
                        settled_at="2024-01-01T00:00:00+00:00")
        make_settlement(client, alice, group["id"], ids["carol"], ids["alice"], 200,
                        settled_at="2024-03-01T00:00:00+00:00")
        make_settlement(client, alice, group["id"], ids["carol"], ids["bob"], 300,
                        settled_at="2024-02-01T00:00:00+00:00")

        resp = client.get(f"/api/v1/settlement/group/{group['id']}", headers=auth_headers(alice))

        assert resp.status_code == 200
        assert [s["cent_amount"] for s in resp.get_json()["data"]] == [200, 300, 100]
