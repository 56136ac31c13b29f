"""
models/split.py — Split table definition.

One row per participating member per expense. `position` records the
allocation order (members by joined_at) so splits read back in the order the
remainder cents were handed out.

sum(splits.cent_amount) == expense.cent_amount is guaranteed by the split
allocator and by writing the expense and its splits in one transaction.
Zero-cent rows are legal: they record that a member was included when the
amount is smaller than the number of participants.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupledger.app.extensions import db
from groupledger.app.models.base import new_uuid


class Split(db.Model):
    __tablename__ = "expense_splits"

    __table_args__ = (
        UniqueConstraint("expense_id", "group_member_id", name="uq_splits_expense_member"),
        CheckConstraint("cent_amount >= 0", name="ck_splits_cent_amount_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    # ON DELETE CASCADE: splits are owned by their expense.
    expense_id: Mapped[str] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    group_member_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    cent_amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="splits",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Split id={self.id} "
            f"expense_id={self.expense_id} "
            f"group_member_id={self.group_member_id} "
            f"cent_amount={self.cent_amount}>"
        )
