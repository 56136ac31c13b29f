"""Add split sum integrity trigger (PostgreSQL).

Revision: 002_add_split_sum_trigger
Created:  2026-10-18

sum(expense_splits.cent_amount) == expenses.cent_amount is guaranteed by the
split allocator and by writing an expense with its splits in one
transaction. This trigger enforces the same rule for writes that bypass
the service layer.

Why a trigger and not a CHECK constraint:
  A CHECK constraint is evaluated per row and cannot sum sibling rows
  against a parent column.

Trigger design:
  Function : fn_check_split_sum()
    - Takes the affected expense_id from NEW (INSERT/UPDATE) or OLD (DELETE).
    - Raises SQLSTATE 23514 (check_violation) if the split total differs
      from the expense amount.
  Trigger  : trg_expense_splits_sum_check
    - CONSTRAINT TRIGGER, DEFERRABLE INITIALLY DEFERRED, so it runs at
      COMMIT. An expense row is flushed before its splits, and a batch
      import writes hundreds of expenses in one transaction.

Append-only: create a new migration instead of editing this one.
"""

from __future__ import annotations

from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_split_sum_trigger"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


_CREATE_FUNCTION = """
CREATE OR REPLACE FUNCTION fn_check_split_sum()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
DECLARE
    v_expense_id  VARCHAR(36);
    v_split_sum   BIGINT;
    v_expense_amt BIGINT;
BEGIN
    IF TG_OP = 'DELETE' THEN
        v_expense_id := OLD.expense_id;
    ELSE
        v_expense_id := NEW.expense_id;
    END IF;

    SELECT COALESCE(SUM(cent_amount), 0)
      INTO v_split_sum
      FROM expense_splits
     WHERE expense_id = v_expense_id;

    SELECT cent_amount
      INTO v_expense_amt
      FROM expenses
     WHERE id = v_expense_id;

    -- The expense itself was deleted in the same transaction.
    IF v_expense_amt IS NULL THEN
        RETURN NULL;
    END IF;

    IF v_split_sum <> v_expense_amt THEN
        RAISE EXCEPTION
            'split sum (%) does not equal expense amount (%) for expense id=%',
            v_split_sum, v_expense_amt, v_expense_id
            USING ERRCODE = '23514';  -- check_violation
    END IF;

    RETURN NULL;
END;
$$;
"""

_CREATE_TRIGGER = """
CREATE CONSTRAINT TRIGGER trg_expense_splits_sum_check
    AFTER INSERT OR UPDATE OR DELETE
    ON expense_splits
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION fn_check_split_sum();
"""

_DROP_TRIGGER = "DROP TRIGGER IF EXISTS trg_expense_splits_sum_check ON expense_splits;"
_DROP_FUNCTION = "DROP FUNCTION IF EXISTS fn_check_split_sum();"


def upgrade() -> None:
    op.execute(_CREATE_FUNCTION)
    op.execute(_CREATE_TRIGGER)


def downgrade() -> None:
    op.execute(_DROP_TRIGGER)
    op.execute(_DROP_FUNCTION)
