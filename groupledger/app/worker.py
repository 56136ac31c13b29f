"""
worker.py — Batch import worker: consumes upload messages from the queue.

One long-lived loop per process:

    while not stopped:
        messages = queue.receive(max_messages, wait_seconds, cancel)   # long poll
        for message in messages:
            process_message(message)

Per message outcome:
  malformed JSON / missing keys  → delete, nothing recorded
  already processed (storage key) → delete, nothing recorded
  applied                        → commit expenses + COMMITTED batch, delete
  permanent 4xx AppError         → rollback, commit REJECTED batch, delete
  anything else                  → rollback, keep message (redelivered after
                                   the queue's visibility timeout)

stop() sets an event that is passed to receive() as its cancel signal and
checked between polls. A waiting long poll returns early; a message already
being processed finishes its transaction first.

Run it in-process (IMPORT_WORKER_ENABLED) or standalone:
    flask --app groupledger.app import-worker
"""

from __future__ import annotations

import json
import logging
import threading

from flask import Flask

from groupledger.app.errors import AppError
from groupledger.app.extensions import LEDGER_EXTENSION_KEY, db
from groupledger.app.services import import_service

logger = logging.getLogger(__name__)

# Pause after a failed receive() so a queue outage does not spin the loop.
_RECEIVE_ERROR_BACKOFF_SECONDS = 5.0


class ImportWorker:

    def __init__(self, app: Flask) -> None:
        self.app = app
        services = app.extensions[LEDGER_EXTENSION_KEY]
        self.queue = services.queue
        self.blob_store = services.blob_store
        self.max_messages = app.config["AWS_SQS_MAX_MESSAGES"]
        self.wait_seconds = app.config["AWS_SQS_POLL_WAIT_SECONDS"]
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ── Lifecycle ──────────────────────────────────────────────────────────

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ends the loop; an in-flight receive() returns early."""
        self._stop_event.set()

    def shutdown(self, timeout: float = 10.0) -> None:
        """stop() and wait for the background thread, if one was started."""
        self.stop()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Import worker did not stop within %.1fs", timeout)

    def start_in_background(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self.run,
            name="import-worker",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def run(self) -> None:
        logger.info(
            "Import worker started (max_messages=%s, wait_seconds=%s)",
            self.max_messages,
            self.wait_seconds,
        )
        while not self.stopped:
            self.poll_once()
        logger.info("Import worker stopped")

    def poll_once(self) -> int:
        """One receive() plus processing. Returns the number of messages handled."""
        try:
            messages = self.queue.receive(
                self.max_messages, self.wait_seconds, cancel=self._stop_event
            )
        except Exception:
            if self.stopped:
                return 0
            logger.exception("Error while polling the upload queue")
            self._stop_event.wait(_RECEIVE_ERROR_BACKOFF_SECONDS)
            return 0

        for message in messages:
            self.process_message(message)
        return len(messages)

    # ── Message handling ───────────────────────────────────────────────────

    def _delete(self, message) -> None:
        try:
            self.queue.delete(message.receipt_handle)
        except Exception:
            # The message comes back; the ImportBatch row makes the retry a no-op.
            logger.exception("Failed to delete message %s", message.receipt_handle)

    def process_message(self, message) -> str:
        """
        Handles one queue message. Returns the outcome name, one of
        "malformed", "committed", "duplicate", "rejected", "retry".
        """
        try:
            body = json.loads(message.body)
        except (TypeError, ValueError):
            body = None

        fields = import_service.parse_upload_message(body)
        if fields is None:
            logger.error("Dropping malformed upload message: %r", message.body)
            self._delete(message)
            return "malformed"

        storage_key = fields["storage_key"]
        group_id = fields["group_id"]
        user_id = fields["user_id"]

        with self.app.app_context():
            session = db.session
            try:
                existing = import_service.find_batch(storage_key, session)
                if existing is not None:
                    logger.info("Upload %s already processed; acknowledging", storage_key)
                    outcome = "duplicate"
                else:
                    batch = import_service.apply_upload(
                        storage_key, group_id, user_id, self.blob_store, session
                    )
                    session.commit()
                    logger.info(
                        "Imported %d expenses for group %s from %s",
                        batch.expense_count,
                        group_id,
                        storage_key,
                    )
                    outcome = "committed"
            except AppError as error:
                session.rollback()
                if not error.is_client_error:
                    logger.error("Upload %s failed: %s; will retry", storage_key, error.message)
                    return "retry"
                outcome = self._reject(storage_key, group_id, user_id, error)
                if outcome == "retry":
                    return outcome
            except Exception:
                session.rollback()
                logger.exception(
                    "Failed to process upload %s for group %s; will retry",
                    storage_key,
                    group_id,
                )
                return "retry"

        self._delete(message)
        return outcome

    def _reject(self, storage_key: str, group_id: str, user_id: str, error: AppError) -> str:
        """Records the permanent failure. Must run inside the app context."""
        session = db.session
        try:
            import_service.record_rejection(storage_key, group_id, user_id, error, session)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("Could not record rejection of %s; will retry", storage_key)
            return "retry"

        logger.warning(
            "Rejected upload %s for group %s: %s %s",
            storage_key,
            group_id,
            error.code,
            error.message,
        )
        return "rejected"
