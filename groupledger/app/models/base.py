"""
models/base.py — Column default helpers shared by every table.

Identifiers are opaque UUID4 strings. Timestamps are generated in Python as
timezone-aware UTC values: membership ordering relies on joined_at, and a
database-side now() has only one-second resolution on some backends.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone


def new_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g. 'EQUAL_ALL'), not member names."""
    return [member.value for member in enum_cls]


# Largest value a BIGINT cents column holds. Amounts above it are rejected
# at validation time.
MAX_CENT_AMOUNT = 2**63 - 1
