"""
models/group.py — Group table definition.

No business logic. `deleted_at` is NULL for live groups; a soft-deleted group
is invisible to every query. Services reach groups only through
services/queries.py, which applies that filter in one place.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupledger.app.extensions import db
from groupledger.app.models.base import new_uuid, utcnow


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # ON DELETE RESTRICT: a user who created a group cannot be deleted.
    created_by: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    creator: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by],
    )

    members: Mapped[list["Member"]] = relationship(  # noqa: F821
        "Member",
        back_populates="group",
        order_by="Member.joined_at",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"
