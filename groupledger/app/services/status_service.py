"""
services/status_service.py — Liveness and database health for GET /status.
"""

from __future__ import annotations

import platform
import time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

_STARTED_AT = time.monotonic()


def check_status(session: Session, version: str) -> tuple[dict, bool]:
    """
    Returns (payload, healthy). The database is probed with SELECT 1; the
    payload never contains connection details.
    """
    start = time.perf_counter()
    try:
        session.execute(text("SELECT 1"))
        database = {
            "status": "up",
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
        }
        healthy = True
    except SQLAlchemyError:
        session.rollback()
        database = {"status": "down"}
        healthy = False

    return {
        "status":         "ok" if healthy else "error",
        "version":        version,
        "python_version": platform.python_version(),
        "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
        "details":        {"database": database},
    }, healthy
