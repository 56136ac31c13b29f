"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite unless TEST_DATABASE_URL is set.
    Flask-SQLAlchemy keeps a single shared connection for `sqlite://`, so
    the request sessions, the import worker and the test body see the same
    committed data.
  - The app is created once per session with create_app("testing") and the
    in-memory fakes from tests/fakes.py as its blob store, queue and notifier.
  - Between tests, all rows are deleted in FK-safe order and the fakes are
    reset so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - token_for(user_id)              → signed JWT the way the identity provider issues it
  - auth_headers(user_id)           → {"Authorization": "Bearer <token>"}
  - make_user(client, ...)          → user dict
  - make_group(client, user, ...)   → group dict
  - join(client, user, group_id)    → member dict
  - member_id_of(client, user, group_id) → the user's member id in a group
  - make_expense(client, user, ...) → HTTP response
  - upload_csv(client, user, ...)   → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import text

from groupledger.app import create_app
from groupledger.app.extensions import LedgerServices
from groupledger.app.extensions import db as _db

from ..fakes import FakeBlobStore, FakeNotifier, FakeQueue

TEST_JWT_SECRET = "test-secret"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def services():
    return LedgerServices(
        blob_store=FakeBlobStore(),
        queue=FakeQueue(),
        notifier=FakeNotifier(),
    )


@pytest.fixture(scope="session")
def app(services):
    """
    Creates the Flask application in 'testing' mode once for the entire
    test session, creates every table, and drops them at teardown.
    """
    flask_app = create_app("testing", services=services)

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app, services):
    """
    Deletes all rows between tests in FK-safe order and resets the fakes.

    Delete order: splits before expenses, expenses before the import batches
    they reference, everything group-scoped before groups, groups before users.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM expense_splits"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM import_batches"))
            conn.execute(text("DELETE FROM settlements"))
            conn.execute(text("DELETE FROM group_members"))
            conn.execute(text("DELETE FROM groups"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()

    services.blob_store.reset()
    services.queue.reset()
    services.notifier.reset()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def token_for(user_id: str, expires_in: timedelta = timedelta(minutes=15), **claims) -> str:
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + expires_in,
        **claims,
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(user: dict | str) -> dict:
    """Accepts a user dict or a user id."""
    user_id = user["id"] if isinstance(user, dict) else user
    return {"Authorization": f"Bearer {token_for(user_id)}"}


def make_user(client, name: str = "alice", email: str | None = None) -> dict:
    if email is None:
        email = f"{name}@test.com"
    resp = client.post("/api/v1/users", json={"name": name, "email": email})
    assert resp.status_code == 201, f"make_user failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_group(client, user: dict, name: str = "Test Group") -> dict:
    """Creates a group; the user becomes its first member."""
    resp = client.post("/api/v1/group", json={"name": name}, headers=auth_headers(user))
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join(client, user: dict, group_id: str) -> dict:
    resp = client.post(f"/api/v1/group/{group_id}/join", headers=auth_headers(user))
    assert resp.status_code == 201, f"join failed: {resp.get_json()}"
    return resp.get_json()["data"]


def list_members(client, user: dict, group_id: str) -> list[dict]:
    resp = client.get(f"/api/v1/group/{group_id}/members", headers=auth_headers(user))
    assert resp.status_code == 200, f"list_members failed: {resp.get_json()}"
    return resp.get_json()["data"]


def member_id_of(client, user: dict, group_id: str) -> str:
    for member in list_members(client, user, group_id):
        if member["user"]["id"] == user["id"]:
            return member["id"]
    raise AssertionError(f"{user['name']} is not a member of {group_id}")


def make_expense(
    client,
    user: dict,
    group_id: str,
    cent_amount: int,
    description: str = "Test Expense",
    paid_by_member_id: str | None = None,
    included_member_ids: list[str] | None = None,
):
    payload: dict = {
        "group_id": group_id,
        "description": description,
        "cent_amount": cent_amount,
    }
    if paid_by_member_id is not None:
        payload["paid_by_member_id"] = paid_by_member_id
    if included_member_ids is not None:
        payload["included_member_ids"] = included_member_ids

    return client.post("/api/v1/expense", json=payload, headers=auth_headers(user))


def make_settlement(
    client,
    user: dict,
    group_id: str,
    from_member_id: str,
    to_member_id: str,
    cent_amount: int,
    **extra,
):
    return client.post(
        "/api/v1/settlement",
        json={
            "group_id": group_id,
            "from_member_id": from_member_id,
            "to_member_id": to_member_id,
            "cent_amount": cent_amount,
            **extra,
        },
        headers=auth_headers(user),
    )


def upload_csv(client, user: dict, group_id: str, content: str | bytes, filename: str = "expenses.csv"):
    data = content.encode("utf-8") if isinstance(content, str) else content
    return client.post(
        f"/api/v1/expense/upload/{group_id}",
        data={"file": (io.BytesIO(data), filename)},
        headers=auth_headers(user),
        content_type="multipart/form-data",
    )


def get_balances(client, user: dict, group_id: str) -> dict:
    resp = client.get(f"/api/v1/balance/group/{group_id}", headers=auth_headers(user))
    assert resp.status_code == 200, f"get_balances failed: {resp.get_json()}"
    return resp.get_json()["data"]
