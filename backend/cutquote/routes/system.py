# backend/cutquote/routes/system.py
"""
System health endpoint.

Checks database connectivity and the notification backlog.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import EmailQueueEntry, Material, Quote
from cutquote.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        quote_count = db.session.query(Quote).count()
        material_count = db.session.query(Material).filter(Material.is_active.is_(True)).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "quotes": quote_count,
                "active_materials": material_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_email_queue_health() -> dict:
    """Pending backlog; the queue is drained by an external worker."""
    start_time = time.time()
    try:
        pending = db.session.query(EmailQueueEntry).filter_by(status="pending").count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"pending_emails": pending},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Email queue health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Email queue error"
        }


@system_bp.get("/api/health")
def health():
    """
    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    queue_health = check_email_queue_health()

    all_checks = [database_health, queue_health]
    unhealthy = any(check["status"] == "unhealthy" for check in all_checks)

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "email_queue": queue_health,
        }
    }
    return response, 503 if unhealthy else 200
