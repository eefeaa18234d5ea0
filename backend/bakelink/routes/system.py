# backend/bakelink/routes/system.py
"""Liveness and database health endpoints."""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from bakelink.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round trip.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }
    finally:
        db.session.rollback()


@system_bp.get("/")
def root():
    return "BakeLink backend is running"


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return {
        "status": "ok" if healthy else "degraded",
        "database": database,
        "time": to_utc_z(utcnow()),
    }, 200 if healthy else 503
