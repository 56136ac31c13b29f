"""
services/import_service.py — CSV batch import: upload acceptance and apply.

Synchronous phase (accept_upload, called from the upload route):
  1. group exists, requester is a member
  2. size cap, UTF-8 decode, structural CSV check only
  3. raw bytes → blob store under
         {namespace}/{group_id}/{epoch_millis}-{random_hex}-{sanitized_filename}
  4. message {"storage_key", "group_id", "user_id"} → queue
  Nothing is stored or queued when a check fails. Store and enqueue must
  both succeed before the caller is told the upload was accepted.

Asynchronous phase (apply_upload / record_rejection, called by the worker):
  - An ImportBatch row with the storage key means the upload was already
    handled; the worker looks it up once with find_batch() and skips it.
  - Otherwise the blob is re-validated against CURRENT membership and every
    row is recorded through expense_service.create_batch() together with a
    COMMITTED ImportBatch row, all in the caller's single transaction.
  - A 4xx AppError from this path is permanent; the worker rolls back and
    calls record_rejection().

Layer rules:
  - No Flask imports. Collaborators (blob store, queue) are passed in.
  - apply_upload() flushes only; the worker owns commit and rollback.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupledger.app.errors import AppError, ErrorCode, validation_failed
from groupledger.app.infra.blob_store import BlobStoreError
from groupledger.app.infra.message_queue import QueueError
from groupledger.app.models.import_batch import ImportBatch, ImportStatus
from groupledger.app.services import csv_parser, expense_service, queries

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "upload.csv"
CSV_CONTENT_TYPE = "text/csv"

MESSAGE_KEYS = ("storage_key", "group_id", "user_id")

STORAGE_KEY_RANDOM_CHARS = 12

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


# ── Keys and decoding ──────────────────────────────────────────────────────

def sanitize_filename(filename: str | None) -> str:
    if not filename:
        return DEFAULT_FILENAME
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def build_storage_key(
        namespace: str,
        group_id: str,
        filename: str | None,
        now_millis: int | None = None,
) -> str:
    """Unique per call; the random part keeps same-millisecond uploads apart."""
    if now_millis is None:
        now_millis = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:STORAGE_KEY_RANDOM_CHARS]
    return f"{namespace}/{group_id}/{now_millis}-{suffix}-{sanitize_filename(filename)}"


def decode_upload(data: bytes) -> str:
    """UTF-8 text with an optional byte-order mark; anything else is rejected."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise validation_failed(
            "CSV validation failed.",
            [csv_parser.RowError(0, "csv", "Invalid CSV format").to_dict()],
        )


def _upload_message(storage_key: str, group_id: str, user_id: str) -> dict:
    return {
        "storage_key": storage_key,
        "group_id":    group_id,
        "user_id":     user_id,
    }


# ── Synchronous phase ──────────────────────────────────────────────────────

def accept_upload(
        group_id: str,
        caller_id: str,
        filename: str | None,
        data: bytes,
        session: Session,
        blob_store,
        queue,
        namespace: str,
        max_bytes: int,
) -> dict:
    """
    Validates the upload's structure, stores it, and enqueues it.

    Returns:
        {"message": str, "storage_key": str}

    Raises:
        AppError(GROUP_NOT_FOUND, 404), AppError(NOT_A_GROUP_MEMBER, 403)
        AppError(FILE_TOO_LARGE, 413)
        AppError(VALIDATION_FAILED, 400) — with the structural error list
        AppError(STORAGE_UNAVAILABLE, 502) — blob store or queue failure
    """
    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    if len(data) > max_bytes:
        raise AppError(
            ErrorCode.FILE_TOO_LARGE,
            f"File exceeds the maximum upload size of {max_bytes} bytes.",
            413,
            field="file",
        )

    structure = csv_parser.validate_structure(decode_upload(data))
    if not structure.valid:
        raise validation_failed("CSV validation failed.", [structure.error.to_dict()])

    storage_key = build_storage_key(namespace, group_id, filename)

    try:
        blob_store.put(storage_key, data, CSV_CONTENT_TYPE)
    except BlobStoreError as exc:
        logger.error("Could not store upload %s: %s", storage_key, exc)
        raise AppError(
            ErrorCode.STORAGE_UNAVAILABLE,
            "The upload could not be stored. Please try again later.",
            502,
        ) from exc

    try:
        queue.send(_upload_message(storage_key, group_id, caller_id))
    except QueueError as exc:
        logger.error("Could not enqueue upload %s: %s", storage_key, exc)
        raise AppError(
            ErrorCode.STORAGE_UNAVAILABLE,
            "The upload could not be queued for processing. Please try again later.",
            502,
        ) from exc

    logger.info("Accepted upload %s for group %s", storage_key, group_id)
    return {
        "message":     "File uploaded successfully. Expenses will be processed shortly.",
        "storage_key": storage_key,
    }


# ── Asynchronous phase ─────────────────────────────────────────────────────

def parse_upload_message(body: dict) -> dict | None:
    """Returns the message fields, or None if any is missing or not a string."""
    if not isinstance(body, dict):
        return None
    fields = {key: body.get(key) for key in MESSAGE_KEYS}
    if not all(isinstance(value, str) and value for value in fields.values()):
        return None
    return fields


def find_batch(storage_key: str, session: Session) -> ImportBatch | None:
    stmt = select(ImportBatch).where(ImportBatch.storage_key == storage_key)
    return session.execute(stmt).scalar_one_or_none()


def apply_upload(
        storage_key: str,
        group_id: str,
        user_id: str,
        blob_store,
        session: Session,
) -> ImportBatch:
    """
    Records every row of a stored upload. The caller checks find_batch()
    first; a second apply for the same key fails on the unique storage_key.

    Raises:
        AppError (4xx) — permanent: group gone, requester left, rows invalid.
        BlobStoreError, SQLAlchemyError — transient; retried by redelivery.
    """
    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, user_id, session)

    csv_text = decode_upload(blob_store.get(storage_key))
    member_ids = {m.id for m in queries.list_members_ordered(group_id, session)}

    result = csv_parser.parse_and_validate(csv_text, member_ids)
    if not result.is_valid:
        raise validation_failed(
            "CSV validation failed against current group membership.",
            [error.to_dict() for error in result.errors],
        )

    batch = ImportBatch(
        group_id=group_id,
        storage_key=storage_key,
        requested_by=user_id,
        status=ImportStatus.COMMITTED,
        expense_count=len(result.expenses),
    )
    session.add(batch)
    session.flush()

    expense_service.create_batch(
        group_id,
        user_id,
        [row.to_expense_data() for row in result.expenses],
        session,
        import_batch_id=batch.id,
    )
    return batch


def record_rejection(
        storage_key: str,
        group_id: str,
        user_id: str,
        error: AppError,
        session: Session,
) -> ImportBatch | None:
    """
    Stores the permanent failure of an upload. Flushes only.

    Returns None when the group id does not reference any group row, since
    there is nothing to attach the record to.
    """
    if not queries.group_row_exists(group_id, session):
        return None

    errors = error.errors or [{
        "row":     0,
        "field":   error.field or "upload",
        "message": error.message,
        "value":   "",
    }]
    batch = ImportBatch(
        group_id=group_id,
        storage_key=storage_key,
        requested_by=user_id,
        status=ImportStatus.REJECTED,
        expense_count=0,
        errors=errors,
    )
    session.add(batch)
    session.flush()
    return batch


def list_imports(group_id: str, caller_id: str, session: Session) -> list[ImportBatch]:
    """Import outcomes of a group, most recently processed first."""
    queries.get_active_group_or_404(group_id, session)
    queries.require_member(group_id, caller_id, session)

    stmt = (
        select(ImportBatch)
        .where(ImportBatch.group_id == group_id)
        .order_by(ImportBatch.processed_at.desc(), ImportBatch.id.desc())
    )
    return list(session.execute(stmt).scalars().all())
