"""
services/group_service.py — Group and membership business logic.

Authorization rules:
  - Create / join:    any known user
  - Leave:            the member themselves; leaving twice is not an error
  - List members:     group members only (NOT_A_GROUP_MEMBER, 403)
  - Delete (soft):    the group's creator only (FORBIDDEN, 403)

Membership rows are hard-deleted on leave. The member id lives on in
expenses, splits and settlements, which is why balances still report it.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.models.base import utcnow
from groupledger.app.models.group import Group
from groupledger.app.models.member import Member
from groupledger.app.services import queries
from groupledger.app.services.user_service import get_user


def _already_member(group_id: str) -> AppError:
    return AppError(
        ErrorCode.ALREADY_MEMBER,
        f"You are already a member of group {group_id}.",
        409,
    )


# ── Public service functions ───────────────────────────────────────────────

def create_group(name: str, creator_id: str, session: Session) -> Group:
    """
    Creates a group. The creator automatically becomes its first member.

    Raises:
      AppError(USER_NOT_FOUND, 404) — the token subject has no profile
    """
    get_user(creator_id, session)

    group = Group(name=name.strip(), created_by=creator_id)
    session.add(group)
    session.flush()  # populate group.id before creating membership

    session.add(Member(group_id=group.id, user_id=creator_id))
    session.flush()
    return group


def list_joined_groups(user_id: str, session: Session) -> list[Group]:
    """Live groups the user belongs to, oldest first."""
    stmt = (
        queries.active_groups()
        .join(Member, Member.group_id == Group.id)
        .where(Member.user_id == user_id)
        .order_by(Group.created_at.asc(), Group.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def join_group(group_id: str, user_id: str, session: Session) -> Member:
    """
    Adds the caller to a group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(USER_NOT_FOUND, 404)
      AppError(ALREADY_MEMBER, 409) — including a lost race against a
                                      concurrent join (unique constraint)
    """
    queries.get_active_group_or_404(group_id, session)
    get_user(user_id, session)

    if queries.find_membership(group_id, user_id, session) is not None:
        raise _already_member(group_id)

    membership = Member(group_id=group_id, user_id=user_id)
    session.add(membership)
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise _already_member(group_id) from exc

    return membership


def leave_group(group_id: str, user_id: str, session: Session) -> None:
    """
    Removes the caller's membership. A non-member leaving is a no-op.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
    """
    queries.get_active_group_or_404(group_id, session)

    membership = queries.find_membership(group_id, user_id, session)
    if membership is not None:
        session.delete(membership)
        session.flush()


def list_members(group_id: str, caller_id: str, session: Session) -> list[Member]:
    """Current members ordered by joined_at, then id."""
    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)
    return queries.list_members_ordered(group_id, session)


def delete_group(group_id: str, caller_id: str, session: Session) -> None:
    """
    Soft-deletes a group. Its history stays in the database but the group,
    its expenses and its balances disappear from every query.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(NOT_A_GROUP_MEMBER, 403)
      AppError(FORBIDDEN, 403) — caller is a member but not the creator
    """
    group = queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    if group.created_by != caller_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the group creator may delete this group.",
            403,
        )

    group.deleted_at = utcnow()
    session.flush()
