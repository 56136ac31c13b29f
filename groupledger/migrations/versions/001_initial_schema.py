"""Initial schema: tables, enums, constraints and indexes.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. Tables in FK dependency order (users → groups → group_members
     → import_batches → expenses → expense_splits → settlements).
     Enum types are created with the tables that use them.
  2. Indexes (including the partial index idx_expenses_active)

ON DELETE policies:
  group_members.*            → RESTRICT  (rows are removed explicitly on leave)
  expenses.group_id          → RESTRICT
  expenses.import_batch_id   → RESTRICT
  expense_splits.expense_id  → CASCADE   (splits owned by expense)
  settlements.group_id       → RESTRICT
  import_batches.group_id    → RESTRICT

Member id columns on expenses, expense_splits and settlements carry no
foreign key: membership rows are hard-deleted on leave and history stays.
All timestamps are written by the application in UTC.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(36), nullable=False)


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_users_name_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    # ── groups ─────────────────────────────────────────────────────────────
    # deleted_at IS NULL = live; non-null = soft-deleted.
    op.create_table(
        "groups",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "created_by",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_groups_creator"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
    )

    # ── group_members ──────────────────────────────────────────────────────
    op.create_table(
        "group_members",
        _id_column(),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_group_members_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_group_members_user"),
            nullable=False,
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    # ── import_batches ─────────────────────────────────────────────────────
    # UNIQUE(storage_key) makes a redelivered upload message a no-op.
    op.create_table(
        "import_batches",
        _id_column(),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_import_batches_group"),
            nullable=False,
        ),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("requested_by", sa.String(36), nullable=False),
        sa.Column(
            "status",
            sa.Enum("COMMITTED", "REJECTED", name="import_status_enum"),
            nullable=False,
        ),
        sa.Column("expense_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_import_batches"),
        sa.UniqueConstraint("storage_key", name="uq_import_batches_storage_key"),
    )

    # ── expenses ───────────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        _id_column(),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_expenses_group"),
            nullable=False,
        ),
        sa.Column("created_by", sa.String(36), nullable=False),
        sa.Column("paid_by", sa.String(36), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("cent_amount", sa.BigInteger(), nullable=False),
        sa.Column(
            "split_type",
            sa.Enum("EQUAL_ALL", "PARTIAL", name="split_type_enum"),
            nullable=False,
            server_default="EQUAL_ALL",
        ),
        sa.Column(
            "import_batch_id",
            sa.String(36),
            sa.ForeignKey(
                "import_batches.id",
                ondelete="RESTRICT",
                name="fk_expenses_import_batch",
            ),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("cent_amount > 0", name="ck_expenses_cent_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    # ── expense_splits ─────────────────────────────────────────────────────
    # Zero-cent rows are legal: they record inclusion when amount < participants.
    op.create_table(
        "expense_splits",
        _id_column(),
        sa.Column(
            "expense_id",
            sa.String(36),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_expense_splits_expense"),
            nullable=False,
        ),
        sa.Column("group_member_id", sa.String(36), nullable=False),
        sa.Column("cent_amount", sa.BigInteger(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id", name="pk_expense_splits"),
        sa.UniqueConstraint("expense_id", "group_member_id", name="uq_splits_expense_member"),
        sa.CheckConstraint("cent_amount >= 0", name="ck_splits_cent_amount_non_negative"),
    )

    # ── settlements ────────────────────────────────────────────────────────
    op.create_table(
        "settlements",
        _id_column(),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_settlements_group"),
            nullable=False,
        ),
        sa.Column("from_member_id", sa.String(36), nullable=False),
        sa.Column("to_member_id", sa.String(36), nullable=False),
        sa.Column("cent_amount", sa.BigInteger(), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_settlements"),
        sa.CheckConstraint("cent_amount > 0", name="ck_settlements_cent_amount_positive"),
        sa.CheckConstraint(
            "from_member_id <> to_member_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    # ── Indexes ────────────────────────────────────────────────────────────
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])
    op.create_index("ix_import_batches_group_id", "import_batches", ["group_id"])
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])
    op.create_index("ix_expenses_paid_by", "expenses", ["paid_by"])
    op.create_index("ix_expenses_import_batch_id", "expenses", ["import_batch_id"])
    # Partial index: balance queries always filter WHERE deleted_at IS NULL.
    op.create_index(
        "idx_expenses_active",
        "expenses",
        ["group_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.create_index("ix_expense_splits_expense_id", "expense_splits", ["expense_id"])
    op.create_index("ix_expense_splits_group_member_id", "expense_splits", ["group_member_id"])
    op.create_index("ix_settlements_group_id", "settlements", ["group_id"])


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.
    Local development only; production takes corrective migrations.
    """
    op.drop_index("ix_settlements_group_id",            table_name="settlements")
    op.drop_index("ix_expense_splits_group_member_id",  table_name="expense_splits")
    op.drop_index("ix_expense_splits_expense_id",       table_name="expense_splits")
    op.drop_index("idx_expenses_active",                table_name="expenses")
    op.drop_index("ix_expenses_import_batch_id",        table_name="expenses")
    op.drop_index("ix_expenses_paid_by",                table_name="expenses")
    op.drop_index("ix_expenses_group_id",               table_name="expenses")
    op.drop_index("ix_import_batches_group_id",         table_name="import_batches")
    op.drop_index("ix_group_members_user_id",           table_name="group_members")
    op.drop_index("ix_group_members_group_id",          table_name="group_members")

    op.drop_table("settlements")
    op.drop_table("expense_splits")
    op.drop_table("expenses")
    op.drop_table("import_batches")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS split_type_enum")
    op.execute("DROP TYPE IF EXISTS import_status_enum")
