"""
extensions.py — Flask extension singletons and the ledger service container.

SQLAlchemy and marshmallow are created here without an app and bound in the
factory via init_app(), so tests can build isolated app instances.

    from groupledger.app.extensions import db, ma

External collaborators (blob store, queue, mail) are NOT module globals.
They are constructed once in create_app(), stored on
app.extensions["ledger"], and fetched per request with ledger_services().

IMPORTANT, schema inheritance rule:
  Validation Schema classes (in app/schemas/) inherit from marshmallow.Schema
  directly, NOT from ma.Schema, so unit tests can load them without an app
  context.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ma = Marshmallow()

LEDGER_EXTENSION_KEY = "ledger"


@dataclass
class LedgerServices:
    """Handles to the external collaborators, owned by one Flask app."""

    blob_store: object
    queue: object
    notifier: object


def ledger_services() -> LedgerServices:
    """Returns the collaborator handles of the current app."""
    return current_app.extensions[LEDGER_EXTENSION_KEY]
