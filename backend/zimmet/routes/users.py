# Overview: Flask API route for the user directory used to pick custody targets.

from flask import Blueprint, jsonify

from ..decorators import require_auth
from ..services import user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/directory")
@require_auth
def directory():
    users = user_service.directory()
    return jsonify({"users": users, "count": len(users)})
