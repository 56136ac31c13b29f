"""
routes/groups.py — Group and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/group):
  POST   /group                 → 201  create group (creator joins)
  GET    /group/joined          → 200  groups the caller belongs to
  POST   /group/:id/join        → 201  join
  POST   /group/:id/leave       → 200  leave (idempotent)
  GET    /group/:id/members     → 200  members by joined_at
  DELETE /group/:id             → 200  soft-delete (creator only)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupledger.app.extensions import db
from groupledger.app.middleware.auth_middleware import require_auth
from groupledger.app.models.group import Group
from groupledger.app.models.member import Member
from groupledger.app.schemas.group_schema import CreateGroupSchema
from groupledger.app.services import group_service

groups_bp = Blueprint("groups", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────

def _serialize_group(group: Group) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "created_by": group.created_by,
        "created_at": group.created_at.isoformat(),
    }


def _serialize_member(member: Member) -> dict:
    return {
        "id": member.id,
        "group_id": member.group_id,
        "joined_at": member.joined_at.isoformat(),
        "user": {
            "id": member.user.id,
            "name": member.user.name,
            "email": member.user.email,
        },
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@groups_bp.route("", methods=["POST"])
@require_auth
def create_group():
    """POST /group — Create a group. The caller becomes its first member."""
    data = CreateGroupSchema().load(request.get_json(force=True, silent=True) or {})
    group = group_service.create_group(
        name=data["name"],
        creator_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_group(group), "warnings": []}), 201


@groups_bp.route("/joined", methods=["GET"])
@require_auth
def list_joined_groups():
    """GET /group/joined — Live groups the caller is a member of."""
    groups = group_service.list_joined_groups(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": [_serialize_group(grp) for grp in groups], "warnings": []}), 200


@groups_bp.route("/<string:group_id>/join", methods=["POST"])
@require_auth
def join_group(group_id: str):
    """POST /group/:id/join — 409 ALREADY_MEMBER if the caller is a member."""
    member = group_service.join_group(
        group_id=group_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_member(member), "warnings": []}), 201


@groups_bp.route("/<string:group_id>/leave", methods=["POST"])
@require_auth
def leave_group(group_id: str):
    """POST /group/:id/leave — Leaving a group you are not in is not an error."""
    group_service.leave_group(
        group_id=group_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"left": True, "group_id": group_id}, "warnings": []}), 200


@groups_bp.route("/<string:group_id>/members", methods=["GET"])
@require_auth
def list_members(group_id: str):
    """GET /group/:id/members — Current members, earliest joiner first."""
    members = group_service.list_members(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": [_serialize_member(m) for m in members], "warnings": []}), 200


@groups_bp.route("/<string:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: str):
    """DELETE /group/:id — Soft-delete. History stays; the group disappears."""
    group_service.delete_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "group_id": group_id}, "warnings": []}), 200
