# Overview: Flask API routes for login, logout and the current-user view.

from flask import Blueprint, request, jsonify, g

from ..services import auth_service, inbox_service, session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    Wrong credentials and deactivated accounts both answer 401.
    """
    data = request.get_json(silent=True) or {}

    result = auth_service.login(
        data.get("email"),
        data.get("password"),
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    result["message"] = "Login successful"
    return jsonify(result), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers.get("Authorization", "").split(" ", 1)[-1]
    session_service.revoke_session(token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "unread": inbox_service.unread_counts(user.id),
        "pending_count": inbox_service.pending_for_me_count(user.id),
    })
