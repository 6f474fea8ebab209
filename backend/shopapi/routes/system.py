# backend/shopapi/routes/system.py
"""System health endpoint."""

import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import success
from ..extensions import db
from shopapi.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a trivial query and report whether the database answered, with latency."""
    started = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        healthy = False
    else:
        healthy = True

    report = {
        "status": "healthy" if healthy else "unhealthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if not healthy:
        report["error"] = "Database error"
    return report


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    status = 200 if database["status"] == "healthy" else 503
    return success({
        "database": database,
        "time": to_utc_z(utcnow()),
    }, status=status)
