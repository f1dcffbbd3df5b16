# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def _authenticate(token: str | None):
    if not token:
        return jsonify({"error": "Authentication required"}), 401

    context = session_service.validate_session(token)
    if not context:
        return jsonify({"error": "Invalid or expired token"}), 401

    g.current_user = context.user
    g.session_context = context
    return None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        failure = _authenticate(_bearer_token())
        if failure:
            return failure
        return f(*args, **kwargs)

    return decorated_function


def require_stream_auth(f):
    """
    Like require_auth, but also accepts ?access_token=.

    Browsers' EventSource cannot send an Authorization header.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token() or request.args.get("access_token")
        failure = _authenticate(token)
        if failure:
            return failure
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the ADMIN role. Must be stacked under @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401

        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403

        return f(*args, **kwargs)

    return decorated_function
