"""
routes/status.py — Health endpoint for load balancers and uptime checks.

  GET /status → 200 when the database answers, 503 otherwise. No auth.
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from groupledger.app import __version__
from groupledger.app.extensions import db
from groupledger.app.services import status_service

status_bp = Blueprint("status", __name__)


@status_bp.route("", methods=["GET"])
def get_status():
    payload, healthy = status_service.check_status(db.session, __version__)
    return jsonify({"data": payload, "warnings": []}), (200 if healthy else 503)
