# Overview: Flask API routes for the document registry.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import document_service, notification_service


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("")
@require_auth
def list_documents():
    documents = document_service.list_active()
    return jsonify({
        "documents": [doc.to_dict() for doc in documents],
        "count": len(documents),
    })


@documents_bp.get("/<number>")
@require_auth
def get_document(number: str):
    document = document_service.get_by_number(number)
    return jsonify(document.to_dict())


@documents_bp.patch("/<number>/archive")
@require_auth
def archive_document(number: str):
    """
    Archive a document. Holder or admin only.

    Request body:
    {
        "note": str (required),
        "archive_department": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    document = document_service.archive(
        number,
        archived_by_user_id=g.current_user.id,
        note=data.get("note"),
        archive_department=data.get("archive_department"),
    )
    notification_service.notify_users(g.current_user.id, document.current_holder_id)
    return jsonify(document.to_dict())
