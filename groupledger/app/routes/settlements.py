"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/settlement):
  POST /settlement                    → 201  record a payment between members
  GET  /settlement/group/:group_id    → 200  settlements, newest first
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupledger.app.extensions import db, ledger_services
from groupledger.app.middleware.auth_middleware import require_auth
from groupledger.app.models.settlement import Settlement
from groupledger.app.schemas.settlement_schema import CreateSettlementSchema
from groupledger.app.services import notification_service, settlement_service

settlements_bp = Blueprint("settlements", __name__)


# ── Serialization helper ───────────────────────────────────────────────────

def _serialize_settlement(s: Settlement) -> dict:
    return {
        "id": s.id,
        "group_id": s.group_id,
        "from_member_id": s.from_member_id,
        "to_member_id": s.to_member_id,
        "cent_amount": s.cent_amount,
        "notes": s.notes,
        "settled_at": s.settled_at.isoformat(),
        "created_at": s.created_at.isoformat(),
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@settlements_bp.route("", methods=["POST"])
@require_auth
def create_settlement():
    """
    POST /settlement — Record that from_member paid to_member.
    Both parties are emailed after commit.
    """
    data = CreateSettlementSchema().load(request.get_json(force=True, silent=True) or {})
    settlement = settlement_service.record_settlement(
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()

    notification_service.notify_settlement_recorded(
        settlement, db.session, ledger_services().notifier
    )
    return jsonify({"data": _serialize_settlement(settlement), "warnings": []}), 201


@settlements_bp.route("/group/<string:group_id>", methods=["GET"])
@require_auth
def list_settlements(group_id: str):
    """GET /settlement/group/:group_id"""
    settlements = settlement_service.list_settlements(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_settlement(s) for s in settlements],
        "warnings": [],
    }), 200
