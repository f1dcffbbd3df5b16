# backend/zimmet/routes/system.py
"""
System health endpoint.

One database round trip: the custody summary counts double as the probe,
so a load balancer can tell a running process from a working one.
"""

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services import reporting_service
from zimmet.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


@system_bp.get("/api/health")
def health():
    """
    Returns:
    - 200: database reachable, with custody counts
    - 503: database unreachable
    """
    now = utcnow()
    try:
        summary = reporting_service.active_summary(now)
    except SQLAlchemyError:
        current_app.logger.exception("Health check query failed")
        return {"status": "unhealthy", "timestamp": to_utc_z(now), "error": "Database error"}, 503

    return {"status": "healthy", "timestamp": to_utc_z(now), "custody": summary}, 200
