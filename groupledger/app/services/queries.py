"""
services/queries.py — The sanctioned ways to read groups, members and expenses.

Soft delete is applied HERE and nowhere else:
  - active_groups()   → SELECT groups WHERE deleted_at IS NULL
  - active_expenses() → SELECT expenses WHERE deleted_at IS NULL
Every service builds on these selects, so a new query cannot forget the
filter. Direct select(Group) / select(Expense) elsewhere in services is
forbidden.

The same goes for the two preconditions shared by nearly every operation:
get_active_group_or_404() and require_member().

Layer rules:
  - No Flask imports. Receives a SQLAlchemy Session, returns ORM objects.
"""

from __future__ import annotations

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from groupledger.app.errors import group_not_found, not_a_group_member
from groupledger.app.models.expense import Expense
from groupledger.app.models.group import Group
from groupledger.app.models.member import Member
from groupledger.app.models.settlement import Settlement
from groupledger.app.models.split import Split


# ── Soft-delete predicates ────────────────────────────────────────────────

def active_groups() -> Select:
    return select(Group).where(Group.deleted_at.is_(None))


def active_expenses(group_id: str) -> Select:
    return select(Expense).where(
        Expense.group_id == group_id,
        Expense.deleted_at.is_(None),
    )


# ── Groups & members ──────────────────────────────────────────────────────

def get_active_group(group_id: str, session: Session) -> Group | None:
    stmt = active_groups().where(Group.id == group_id)
    return session.execute(stmt).scalar_one_or_none()


def get_active_group_or_404(group_id: str, session: Session) -> Group:
    """Returns the live Group or raises GROUP_NOT_FOUND (404)."""
    group = get_active_group(group_id, session)
    if group is None:
        raise group_not_found(group_id)
    return group


def group_row_exists(group_id: str, session: Session) -> bool:
    """True for live AND soft-deleted groups. Only for attaching audit rows."""
    return session.get(Group, group_id) is not None


def find_membership(group_id: str, user_id: str, session: Session) -> Member | None:
    stmt = select(Member).where(
        Member.group_id == group_id,
        Member.user_id == user_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def require_member(group_id: str, user_id: str, session: Session) -> Member:
    """
    Returns the caller's Member row or raises NOT_A_GROUP_MEMBER (403).
    Non-members receive 403, not 404.
    """
    membership = find_membership(group_id, user_id, session)
    if membership is None:
        raise not_a_group_member(group_id)
    return membership


def get_member_in_group(member_id: str, group_id: str, session: Session) -> Member | None:
    """Resolves a member id, but only if it belongs to group_id."""
    stmt = select(Member).where(
        Member.id == member_id,
        Member.group_id == group_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def list_members_ordered(group_id: str, session: Session) -> list[Member]:
    """Current members by joined_at ascending, ties broken by member id."""
    stmt = (
        select(Member)
        .where(Member.group_id == group_id)
        .order_by(Member.joined_at.asc(), Member.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Ledger history ─────────────────────────────────────────────────────────

def list_active_expenses(group_id: str, session: Session) -> list[Expense]:
    return list(session.execute(active_expenses(group_id)).scalars().all())


def list_splits_for_active_expenses(group_id: str, session: Session) -> list[Split]:
    """Splits of non-deleted expenses only; joins through the Expense filter."""
    expense_ids = active_expenses(group_id).with_only_columns(Expense.id)
    stmt = select(Split).where(Split.expense_id.in_(expense_ids))
    return list(session.execute(stmt).scalars().all())


def list_settlements(group_id: str, session: Session) -> list[Settlement]:
    """All settlements of a group. Settlements have no soft delete."""
    stmt = select(Settlement).where(Settlement.group_id == group_id)
    return list(session.execute(stmt).scalars().all())
