"""
routes/expenses.py — Expense and CSV import route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - _serialize_* helpers are pure data shaping.

Endpoints (base url_prefix=/api/v1/expense):
  POST /expense                     → 201  create expense
  GET  /expense/group/:group_id     → 200  list active expenses
  POST /expense/upload/:group_id    → 202  accept a CSV for batch import
  GET  /expense/upload/:group_id    → 200  outcomes of processed imports
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.extensions import db, ledger_services
from groupledger.app.middleware.auth_middleware import require_auth
from groupledger.app.models.expense import Expense
from groupledger.app.models.import_batch import ImportBatch
from groupledger.app.schemas.expense_schema import CreateExpenseSchema
from groupledger.app.services import expense_service, import_service, notification_service

expenses_bp = Blueprint("expenses", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────

def _serialize_expense(expense: Expense) -> dict:
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "created_by": expense.created_by,
        "paid_by": expense.paid_by,
        "description": expense.description,
        "cent_amount": expense.cent_amount,
        "split_type": expense.split_type.value,
        "import_batch_id": expense.import_batch_id,
        "created_at": expense.created_at.isoformat(),
        "splits": [
            {
                "id": s.id,
                "group_member_id": s.group_member_id,
                "cent_amount": s.cent_amount,
            }
            for s in expense.splits
        ],
    }


def _serialize_import(batch: ImportBatch) -> dict:
    return {
        "id": batch.id,
        "group_id": batch.group_id,
        "storage_key": batch.storage_key,
        "requested_by": batch.requested_by,
        "status": batch.status.value,
        "expense_count": batch.expense_count,
        "errors": batch.errors or [],
        "processed_at": batch.processed_at.isoformat(),
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@expenses_bp.route("", methods=["POST"])
@require_auth
def create_expense():
    """
    POST /expense — Record a new expense, split equally across everyone or
    across included_member_ids. Participants are notified after commit.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True, silent=True) or {})
    expense = expense_service.create_expense(
        group_id=data["group_id"],
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()

    notification_service.notify_expense_created(
        expense, db.session, ledger_services().notifier
    )
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 201


@expenses_bp.route("/group/<string:group_id>", methods=["GET"])
@require_auth
def list_expenses(group_id: str):
    """GET /expense/group/:group_id — Active expenses, newest first."""
    expenses = expense_service.list_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


@expenses_bp.route("/upload/<string:group_id>", methods=["POST"])
@require_auth
def upload_expenses(group_id: str):
    """
    POST /expense/upload/:group_id — multipart field `file`.

    Only the CSV structure is checked here. Rows are validated against
    membership and recorded later by the import worker; the response carries
    the storage key to correlate with GET /expense/upload/:group_id.
    """
    upload = request.files.get("file")
    if upload is None:
        raise AppError(
            ErrorCode.FILE_MISSING,
            "A CSV file must be provided in the 'file' form field.",
            400,
            field="file",
        )

    services = ledger_services()
    result = import_service.accept_upload(
        group_id=group_id,
        caller_id=g.user_id,
        filename=upload.filename,
        data=upload.read(),
        session=db.session,
        blob_store=services.blob_store,
        queue=services.queue,
        namespace=current_app.config["UPLOAD_NAMESPACE"],
        max_bytes=current_app.config["MAX_UPLOAD_BYTES"],
    )
    return jsonify({"data": result, "warnings": []}), 202


@expenses_bp.route("/upload/<string:group_id>", methods=["GET"])
@require_auth
def list_imports(group_id: str):
    """GET /expense/upload/:group_id — COMMITTED and REJECTED import outcomes."""
    batches = import_service.list_imports(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_import(b) for b in batches],
        "warnings": [],
    }), 200
