"""
models/import_batch.py — Outcome record of one queued CSV upload.

The batch import worker writes exactly one row per storage key:

  COMMITTED — inserted in the same transaction as the imported expenses.
              Its presence tells a redelivered queue message that the batch
              was already applied, so the worker skips it instead of creating
              duplicates.
  REJECTED  — the upload can never succeed (rows invalid against current
              membership, group deleted, requester gone). `errors` holds the
              structured reasons; the queue message is dropped.

UNIQUE(storage_key) is the idempotency guarantee.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from groupledger.app.extensions import db
from groupledger.app.models.base import enum_values, new_uuid, utcnow


class ImportStatus(str, enum.Enum):
    COMMITTED = "COMMITTED"
    REJECTED  = "REJECTED"


class ImportBatch(db.Model):
    __tablename__ = "import_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    storage_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)

    requested_by: Mapped[str] = mapped_column(String(36), nullable=False)

    status: Mapped[ImportStatus] = mapped_column(
        Enum(
            ImportStatus,
            name="import_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )

    expense_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)

    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ImportBatch id={self.id} "
            f"storage_key={self.storage_key!r} "
            f"status={self.status}>"
        )
