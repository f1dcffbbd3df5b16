# Overview: Flask API routes for admin user management; parses input and returns JSON responses.

"""
Admin routes for user management.

Provides endpoints for:
- User management (list, get, create, update)
- Account lifecycle (deactivate, reactivate, reset password)

Users are never deleted; deactivation is the soft delete. All endpoints
require an authenticated ADMIN.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_admin
from ..errors import ValidationError
from ..services import user_service

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_admin
def list_users():
    """
    List users.

    Query params:
    - include_inactive: bool (default false) - include deactivated users
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = user_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.get("/users/<user_id>")
@require_auth
@require_admin
def get_user(user_id: str):
    user = user_service.get_user(user_id)
    return jsonify({"user": user.to_dict()})


@admin_bp.post("/users")
@require_auth
@require_admin
def create_user():
    """
    Create a new user.

    Request body:
    - email: str (required)
    - password: str (required)
    - full_name: str (required)
    - department: str (optional)
    - role: USER | ADMIN (optional, default USER)
    """
    data = request.get_json(silent=True) or {}

    if not data.get("password"):
        raise ValidationError("password is required")

    user = user_service.create_user(
        email=data.get("email"),
        password=data["password"],
        full_name=data.get("full_name"),
        department=data.get("department"),
        role=data.get("role") or "USER",
    )
    current_app.logger.info("User %s created by %s", user.id, g.current_user.id)
    return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201


@admin_bp.patch("/users/<user_id>")
@require_auth
@require_admin
def update_user(user_id: str):
    """
    Update user details.

    Request body (all optional):
    - email: str
    - full_name: str
    - department: str
    - role: USER | ADMIN
    """
    data = request.get_json(silent=True) or {}
    user = user_service.update_user(user_id, data)
    return jsonify({"user": user.to_dict(), "message": "User updated successfully"})


@admin_bp.post("/users/<user_id>/deactivate")
@require_auth
@require_admin
def deactivate_user(user_id: str):
    """
    Deactivate a user account.

    This will:
    1. Set is_active=False
    2. Revoke all active sessions for the user

    The user is logged out immediately and can no longer receive custody.
    """
    revoked_count = user_service.deactivate_user(user_id, acting_user_id=g.current_user.id)
    current_app.logger.info("User %s deactivated by %s", user_id, g.current_user.id)
    return jsonify({
        "message": "User deactivated",
        "sessions_revoked": revoked_count,
    })


@admin_bp.post("/users/<user_id>/reactivate")
@require_auth
@require_admin
def reactivate_user(user_id: str):
    """Reactivate a deactivated user account."""
    user = user_service.reactivate_user(user_id)
    return jsonify({"message": "User reactivated", "user": user.to_dict()})


@admin_bp.post("/users/<user_id>/reset-password")
@require_auth
@require_admin
def reset_user_password(user_id: str):
    """
    Reset a user's password.

    Request body:
    - new_password: str (required)

    This will also revoke all existing sessions for the user.
    """
    data = request.get_json(silent=True) or {}
    new_password = data.get("new_password")
    if not new_password:
        raise ValidationError("new_password is required")

    user_service.reset_password(user_id, new_password)
    return jsonify({"message": "Password reset successfully"})
