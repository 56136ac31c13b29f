"""
models/settlement.py — Settlement table definition.

A direct payment from_member → to_member. Immutable and append-only.

Key design points:
  - `cent_amount` is an integer number of cents, strictly positive.
  - CHECK(from_member_id <> to_member_id) backs the SELF_SETTLEMENT check in
    settlement_service.py.
  - Member id columns carry no foreign key; see models/member.py.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupledger.app.extensions import db
from groupledger.app.models.base import new_uuid, utcnow


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("cent_amount > 0", name="ck_settlements_cent_amount_positive"),
        CheckConstraint(
            "from_member_id <> to_member_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    from_member_id: Mapped[str] = mapped_column(String(36), nullable=False)

    to_member_id: Mapped[str] = mapped_column(String(36), nullable=False)

    cent_amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # When the money moved; defaults to the time it was recorded.
    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    group: Mapped["Group"] = relationship("Group")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement id={self.id} "
            f"group_id={self.group_id} "
            f"from={self.from_member_id} "
            f"to={self.to_member_id} "
            f"cent_amount={self.cent_amount}>"
        )
