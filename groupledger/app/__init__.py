"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to load metadata without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging once
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Build the external collaborators (blob store, queue, notifier) or take
     the ones passed in, and store them on app.extensions["ledger"]
  5. Register all route blueprints under /api/v1
  6. Register global error handlers
  7. Register the `import-worker` CLI command; optionally start the worker
     as a daemon thread (IMPORT_WORKER_ENABLED)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here; the import side-effect is sufficient.
"""

from __future__ import annotations

import atexit
import logging
import signal

import click
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from groupledger.config import config_by_name, validate_production_config

__version__ = "1.0.0"

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development", services=None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
        services:    Optional LedgerServices. Tests pass in-memory fakes;
                     otherwise S3, SQS and SMTP clients are built from config.

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from groupledger.app.extensions import LEDGER_EXTENSION_KEY, db, ma
    db.init_app(app)
    ma.init_app(app)

    app.extensions[LEDGER_EXTENSION_KEY] = services or _build_services(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from groupledger.app.models import (  # noqa: F401
            expense,
            group,
            import_batch,
            member,
            settlement,
            split,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cli(app)

    if app.config.get("IMPORT_WORKER_ENABLED"):
        from groupledger.app.worker import ImportWorker
        worker = ImportWorker(app)
        app.extensions["import_worker"] = worker
        worker.start_in_background()
        atexit.register(worker.shutdown)

    return app


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=_LOG_FORMAT)
    root.setLevel(level)
    app.logger.setLevel(level)


def _build_services(app: Flask):
    """Constructs the real collaborators from configuration."""
    from groupledger.app.extensions import LedgerServices
    from groupledger.app.infra.blob_store import S3BlobStore
    from groupledger.app.infra.message_queue import SqsMessageQueue
    from groupledger.app.infra.notifier import build_notifier

    return LedgerServices(
        blob_store=S3BlobStore.from_config(app.config),
        queue=SqsMessageQueue.from_config(app.config),
        notifier=build_notifier(app.config),
    )


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource.
    """
    from groupledger.app.routes.balances import balances_bp
    from groupledger.app.routes.expenses import expenses_bp
    from groupledger.app.routes.groups import groups_bp
    from groupledger.app.routes.settlements import settlements_bp
    from groupledger.app.routes.status import status_bp
    from groupledger.app.routes.users import users_bp

    app.register_blueprint(users_bp,       url_prefix="/api/v1/users")
    app.register_blueprint(groups_bp,      url_prefix="/api/v1/group")
    app.register_blueprint(expenses_bp,    url_prefix="/api/v1/expense")
    app.register_blueprint(balances_bp,    url_prefix="/api/v1/balance")
    app.register_blueprint(settlements_bp, url_prefix="/api/v1/settlement")
    app.register_blueprint(status_bp,      url_prefix="/api/v1/status")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError              → structured JSON error envelope, its own status
      ValidationError       → first marshmallow field error as MISSING_FIELD /
                              INVALID_FIELD (400)
      RequestEntityTooLarge → FILE_TOO_LARGE (413)
      HTTPException         → werkzeug's status with a matching code
      Exception             → INTERNAL_ERROR (500); traceback logged only

    Stack traces never leave the server.
    """
    from groupledger.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError; they let it propagate here."""
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Marshmallow raises ValidationError with a messages dict keyed by field
        name. Only the FIRST error is returned: one error, not many.
        """
        messages = error.messages

        field = None
        raw_message = "Invalid input."

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None
                raw_message = _first_message(field_errors)
                break
        elif isinstance(messages, list) and messages:
            raw_message = str(messages[0])

        if raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD

        response_body = {"error": {"code": code, "message": raw_message}}
        if field is not None:
            response_body["error"]["field"] = field
        return jsonify(response_body), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error: RequestEntityTooLarge):
        limit = app.config.get("MAX_UPLOAD_BYTES")
        return jsonify({
            "error": {
                "code": ErrorCode.FILE_TOO_LARGE,
                "message": f"File exceeds the maximum upload size of {limit} bytes.",
                "field": "file",
            }
        }), 413

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        """Unknown routes, wrong methods, malformed requests."""
        code = _HTTP_ERROR_CODES.get(error.code, ErrorCode.INTERNAL_ERROR)
        return jsonify({
            "error": {
                "code": code,
                "message": error.description or error.name,
            }
        }), error.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback goes to the application logger.
        """
        app.logger.exception("Unhandled exception: %s", error)
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


_HTTP_ERROR_CODES = {
    400: "INVALID_FIELD",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _first_message(field_errors) -> str:
    """Unwraps marshmallow's nested list/dict error structures."""
    while True:
        if isinstance(field_errors, list):
            if not field_errors:
                return "Invalid value."
            field_errors = field_errors[0]
        elif isinstance(field_errors, dict):
            if not field_errors:
                return "Invalid value."
            field_errors = next(iter(field_errors.values()))
        else:
            return str(field_errors)


def _register_cli(app: Flask) -> None:

    @app.cli.command("import-worker")
    def import_worker_command():
        """Run the CSV import worker in the foreground until interrupted."""
        from groupledger.app.worker import ImportWorker

        worker = ImportWorker(app)
        signal.signal(signal.SIGTERM, lambda signum, frame: worker.stop())
        click.echo(f"Polling upload queue (wait {worker.wait_seconds}s, batch {worker.max_messages})")
        try:
            worker.run()
        except KeyboardInterrupt:
            worker.stop()

    @app.cli.command("init-storage")
    def init_storage_command():
        """Create the upload bucket and queue if missing (local development)."""
        from groupledger.app.extensions import ledger_services

        services = ledger_services()
        services.blob_store.ensure_bucket()
        services.queue.ensure_queue()
        click.echo("Upload bucket and queue are ready.")
