"""
routes/users.py — User profile route handlers.

Endpoints (base url_prefix=/api/v1/users):
  POST /users           → 201  create a profile (no token required)
  GET  /users/:user_id  → 200  fetch a profile

A profile's id is the `sub` claim the identity provider puts in its tokens.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from groupledger.app.extensions import db
from groupledger.app.middleware.auth_middleware import require_auth
from groupledger.app.models.user import User
from groupledger.app.schemas.user_schema import CreateUserSchema
from groupledger.app.services import user_service

users_bp = Blueprint("users", __name__)


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at.isoformat(),
    }


@users_bp.route("", methods=["POST"])
def create_user():
    data = CreateUserSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.create_user(
        name=data["name"],
        email=data["email"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_user(user), "warnings": []}), 201


@users_bp.route("/<string:user_id>", methods=["GET"])
@require_auth
def get_user(user_id: str):
    user = user_service.get_user(user_id, db.session)
    return jsonify({"data": _serialize_user(user), "warnings": []}), 200
