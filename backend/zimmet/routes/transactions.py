# Overview: Flask API routes for the custody ledger; parses input and returns JSON responses.

"""
Custody transaction routes.

Every mutating route commits inside the service call; the affected users
are signalled only after that, so a notification never precedes the data.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import ValidationError
from ..services import custody_service, inbox_service, notification_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _notify_parties(tx) -> None:
    notification_service.notify_users(tx.from_user_id, tx.to_user_id)


@transactions_bp.post("")
@require_auth
def create_transaction():
    """
    Offer custody of a document to another user.

    Request body:
    {
        "document_number": str (digits only),
        "to_user_id": str,
        "note": str (optional)
    }

    Returns:
        201: Transaction created (PENDING)
        400: Invalid request
        403: Document is held by someone else
        409: Document already has a pending transaction
    """
    data = request.get_json(silent=True) or {}

    tx = custody_service.create_custody(
        document_number=data.get("document_number"),
        to_user_id=data.get("to_user_id"),
        from_user_id=g.current_user.id,
        note=data.get("note"),
    )
    _notify_parties(tx)
    return jsonify(tx.to_dict()), 201


@transactions_bp.get("/me")
@require_auth
def my_transactions():
    rows = custody_service.list_for_user(g.current_user.id)
    return jsonify({"transactions": rows, "count": len(rows)})


@transactions_bp.get("/unread")
@require_auth
def unread_counts():
    return jsonify(inbox_service.unread_counts(g.current_user.id))


@transactions_bp.patch("/mark-seen")
@require_auth
def mark_seen():
    """Query param tab: INCOMING | IADE | RED."""
    tab = request.args.get("tab")
    if not tab:
        raise ValidationError("tab query parameter is required")

    row = inbox_service.mark_seen(g.current_user.id, tab)
    return jsonify(row.to_dict())


@transactions_bp.get("/document/<number>")
@require_auth
def document_timeline(number: str):
    events = custody_service.document_timeline(number)
    return jsonify({"document_number": number, "timeline": events})


@transactions_bp.patch("/<transaction_id>/accept")
@require_auth
def accept_transaction(transaction_id: str):
    tx = custody_service.accept(transaction_id, g.current_user.id)
    _notify_parties(tx)
    return jsonify(tx.to_dict())


@transactions_bp.patch("/<transaction_id>/reject")
@require_auth
def reject_transaction(transaction_id: str):
    tx = custody_service.reject(transaction_id, g.current_user.id)
    _notify_parties(tx)
    return jsonify(tx.to_dict())


@transactions_bp.patch("/<transaction_id>/cancel")
@require_auth
def cancel_transaction(transaction_id: str):
    tx = custody_service.cancel(transaction_id, g.current_user.id)
    _notify_parties(tx)
    return jsonify(tx.to_dict())


@transactions_bp.patch("/<transaction_id>/return")
@require_auth
def return_transaction(transaction_id: str):
    """
    Hand accepted custody back to its sender.

    Request body: {"note": str (required)}

    Returns:
        200: The new PENDING RETURN_REQUEST transaction
    """
    data = request.get_json(silent=True) or {}

    tx = custody_service.return_back(transaction_id, g.current_user.id, data.get("note"))
    _notify_parties(tx)
    return jsonify(tx.to_dict())
