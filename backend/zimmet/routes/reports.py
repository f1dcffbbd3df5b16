# Overview: Flask API routes for admin reports; read-only views over the ledger.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_admin
from ..errors import ValidationError
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/active-assignments")
@require_auth
@require_admin
def active_assignments():
    """
    Documents currently held by someone.

    Query params:
    - filter: ALL (default) | OVERDUE
    """
    mode = (request.args.get("filter") or "ALL").upper()
    if mode not in ("ALL", "OVERDUE"):
        raise ValidationError("filter must be ALL or OVERDUE")

    rows = reporting_service.active_assignments(overdue_only=(mode == "OVERDUE"))
    return jsonify({"filter": mode, "assignments": rows, "count": len(rows)})


@reports_bp.get("/overdue")
@require_auth
@require_admin
def overdue():
    rows = reporting_service.overdue()
    return jsonify({"transactions": rows, "count": len(rows)})


@reports_bp.get("/active-summary")
@require_auth
@require_admin
def active_summary():
    return jsonify(reporting_service.active_summary())
