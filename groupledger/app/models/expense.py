"""
models/expense.py — Expense table definition.

No business logic. No imports from services or routes.

Key design points:
  - `cent_amount` is an integer number of cents. Never Float, never Numeric.
  - Expenses are immutable once written; `deleted_at` is the only column that
    may change afterwards (soft delete).
  - `created_by` and `paid_by` are member ids. They are plain columns, not
    foreign keys, because membership rows are hard-deleted when a user leaves
    while the expense history stays.
  - `import_batch_id` links expenses created by the CSV import worker to the
    ImportBatch row committed in the same transaction.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupledger.app.extensions import db
from groupledger.app.models.base import enum_values, new_uuid, utcnow


class SplitType(str, enum.Enum):
    """EQUAL_ALL: every current member shares; PARTIAL: a strict subset does."""
    EQUAL_ALL = "EQUAL_ALL"
    PARTIAL   = "PARTIAL"


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("cent_amount > 0", name="ck_expenses_cent_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
        # Active-expense lookups always filter on deleted_at IS NULL.
        Index(
            "idx_expenses_active",
            "group_id",
            postgresql_where="deleted_at IS NULL",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    created_by: Mapped[str] = mapped_column(String(36), nullable=False)

    paid_by: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    cent_amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    split_type: Mapped[SplitType] = mapped_column(
        Enum(
            SplitType,
            name="split_type_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=SplitType.EQUAL_ALL,
    )

    import_batch_id: Mapped[str | None] = mapped_column(
        ForeignKey("import_batches.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # NULL = active; NOT NULL = soft-deleted and excluded from balances.
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship("Group")  # noqa: F821

    # Splits are written together with their expense and never on their own.
    splits: Mapped[list["Split"]] = relationship(  # noqa: F821
        "Split",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Split.position",
    )

    @property
    def is_deleted(self) -> bool:
        """True if this expense has been soft-deleted."""
        return self.deleted_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"group_id={self.group_id} "
            f"cent_amount={self.cent_amount} "
            f"deleted={self.is_deleted}>"
        )
