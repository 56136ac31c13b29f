"""
models/member.py — Group membership table.

A user joins a group at most once (UNIQUE(group_id, user_id)); the constraint,
not application code, is the final guard against two concurrent joins.
Leaving a group hard-deletes the row. Expenses, splits and settlements keep
the member id afterwards, so those columns carry no foreign key to this table.

joined_at orders members for equal-split remainder distribution; ties are
broken by id.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupledger.app.extensions import db
from groupledger.app.models.base import new_uuid, utcnow


class Member(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Member id={self.id} "
            f"group_id={self.group_id} "
            f"user_id={self.user_id}>"
        )
