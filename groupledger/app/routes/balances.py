"""
routes/balances.py — Balance route handlers.

Layer rules:
  - Call ONE service, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/balance):
  GET /balance/group/:group_id          → 200  per-member balances and totals
  GET /balance/group/:group_id/suggest  → 200  suggested settlements

Balances are computed from the database on every request; nothing is cached.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from groupledger.app.extensions import db
from groupledger.app.middleware.auth_middleware import require_auth
from groupledger.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/group/<string:group_id>", methods=["GET"])
@require_auth
def get_balances(group_id: str):
    """
    GET /balance/group/:group_id

    The service asserts that net balances sum to zero and raises
    INTERNAL_ERROR (500) otherwise.
    """
    result = balance_service.get_group_balances(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@balances_bp.route("/group/<string:group_id>/suggest", methods=["GET"])
@require_auth
def suggest_settlements(group_id: str):
    """GET /balance/group/:group_id/suggest — [] when everyone is settled."""
    result = balance_service.suggest_settlements(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
