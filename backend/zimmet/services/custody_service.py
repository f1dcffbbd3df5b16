# Overview: Custody ledger; the transaction state machine and holder pointer maintenance.

"""
Custody ledger (zimmet).

Every document has an append-mostly list of custody transactions. A row is
an offer from one user to another and moves along:

    NONE     --create_custody-->      PENDING
    PENDING  --accept (addressee)-->  ACCEPTED   (holder := addressee)
    PENDING  --reject (addressee)-->  REJECTED
    PENDING  --cancel (sender)-->     CANCELLED
    ACCEPTED --return_back (holder)-> RETURNED   (+ new PENDING RETURN_REQUEST)

INVARIANTS:
- from_user_id != to_user_id
- at most one PENDING row per document (checked under the document lock and
  backed by a partial unique index)
- a row's status changes only through a conditional update on its expected
  current status, so two racing requests cannot both apply a transition
- Document.current_holder_id is written by _set_current_holder only, in the
  same unit of work as the accept that justifies it
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import (
    CustodyTransaction,
    Document,
    DocumentActionType,
    DocumentNote,
    TransactionKind,
    TransactionStatus,
    User,
)
from . import document_service
from .concurrency import lock_for_update, run_with_retry
from zimmet.input_utils import optional_id, optional_text
from zimmet.time_utils import to_utc_z, utcnow


logger = logging.getLogger(__name__)

# A repeated offer to the same user is allowed once the previous one ended in one of these
REOFFERABLE_STATUSES = {
    TransactionStatus.REJECTED,
    TransactionStatus.RETURNED,
    TransactionStatus.CANCELLED,
}


def _get_transaction(transaction_id: str, *, lock: bool = True) -> CustodyTransaction:
    query = db.session.query(CustodyTransaction).filter_by(id=transaction_id)
    if lock:
        query = lock_for_update(query)
    tx = query.first()
    if not tx:
        raise NotFoundError("Transaction", transaction_id)
    return tx


def _pending_for_document(number: str) -> CustodyTransaction | None:
    return db.session.query(CustodyTransaction).filter(
        CustodyTransaction.document_number == number,
        CustodyTransaction.status == TransactionStatus.PENDING,
    ).first()


def _latest_for_document(number: str) -> CustodyTransaction | None:
    return (
        db.session.query(CustodyTransaction)
        .filter(CustodyTransaction.document_number == number)
        .order_by(CustodyTransaction.created_at.desc())
        .first()
    )


def _transition(
    tx: CustodyTransaction,
    expected: TransactionStatus,
    new_status: TransactionStatus,
    now,
) -> None:
    """Move tx from expected to new_status, or fail if someone else already moved it."""
    updated = (
        db.session.query(CustodyTransaction)
        .filter(
            CustodyTransaction.id == tx.id,
            CustodyTransaction.status == expected,
        )
        .update(
            {
                CustodyTransaction.status: new_status,
                CustodyTransaction.resolved_at: now,
                CustodyTransaction.version_id: CustodyTransaction.version_id + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise ConflictError(f"Transaction {tx.id} is no longer {expected.value.lower()}")
    db.session.refresh(tx)


def _set_current_holder(document: Document, user_id: str, now) -> None:
    document.current_holder_id = user_id
    document.holder_since = now


def _require_pending(tx: CustodyTransaction, action: str) -> None:
    if tx.status != TransactionStatus.PENDING:
        raise ValidationError(f"Only a pending transaction can be {action}")


# =============================================================================
# TRANSITIONS
# =============================================================================


def create_custody(
    document_number,
    to_user_id: str | None,
    from_user_id: str,
    note: str | None = None,
) -> CustodyTransaction:
    """
    Offer custody of a document to another user (status: PENDING).

    Args:
        document_number: Digits-only document number; unknown numbers are registered
        to_user_id: Addressee (must be an active user)
        from_user_id: Sender (the acting user)
        note: Optional free text stored on the row

    Returns:
        CustodyTransaction: The created PENDING row

    Raises:
        ValidationError: self-assignment, malformed number, non-string target or note,
            inactive/unknown target, archived document the sender may not reopen,
            repeated offer to the same user
        ForbiddenError: the document is held by someone else (admins may assign
            a document regardless of who holds it)
        ConflictError: the document already has a pending offer
    """
    to_user_id = optional_id(to_user_id, "to_user_id")
    if to_user_id is not None and to_user_id == from_user_id:
        raise ValidationError("You cannot assign a document to yourself")

    number = document_service.normalize_document_number(document_number)

    if not to_user_id:
        raise ValidationError("Target user is required")

    note = optional_text(note, "note")

    def _op():
        target = db.session.get(User, to_user_id)
        if not target or not target.is_active:
            raise ValidationError("Target user does not exist or is deactivated")

        sender = db.session.get(User, from_user_id)
        if not sender:
            raise NotFoundError("User", from_user_id)

        now = utcnow()

        try:
            document = document_service.find_or_create(number, lock=True)
        except IntegrityError:
            raise ConflictError(f"Document {number} is being registered by another request")

        if document.is_archived:
            document_service.reopen(document, sender, now)

        if _pending_for_document(number):
            raise ConflictError("This document already has a pending custody transaction")

        if (
            document.current_holder_id is not None
            and document.current_holder_id != sender.id
            and not sender.is_admin
        ):
            raise ForbiddenError("This document is not in your custody; only its holder can assign it")

        last = _latest_for_document(number)
        if last and last.to_user_id == target.id and last.status not in REOFFERABLE_STATUSES:
            raise ValidationError("This document is already assigned to this user")

        tx = CustodyTransaction(
            document_number=number,
            from_user_id=sender.id,
            to_user_id=target.id,
            status=TransactionStatus.PENDING,
            kind=TransactionKind.NORMAL,
            note=note,
            created_at=now,
        )
        db.session.add(tx)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("This document already has a pending custody transaction")

        logger.info("Custody %s created: document %s from %s to %s", tx.id, number, sender.id, target.id)
        return tx

    return run_with_retry(_op)


def accept(transaction_id: str, acting_user_id: str) -> CustodyTransaction:
    """
    Addressee accepts a pending offer (NORMAL or RETURN_REQUEST).

    The document's holder pointer moves to the acting user in the same unit of work.
    """
    def _op():
        tx = _get_transaction(transaction_id)
        if tx.to_user_id != acting_user_id:
            raise ForbiddenError("This transaction is not addressed to you")
        _require_pending(tx, "accepted")

        document = document_service.get_by_number(tx.document_number, lock=True)
        now = utcnow()

        _transition(tx, TransactionStatus.PENDING, TransactionStatus.ACCEPTED, now)
        _set_current_holder(document, acting_user_id, now)
        db.session.flush()

        logger.info("Custody %s accepted by %s", tx.id, acting_user_id)
        return tx

    return run_with_retry(_op)


def reject(transaction_id: str, acting_user_id: str) -> CustodyTransaction:
    """Addressee declines a pending offer. The holder pointer is untouched."""
    def _op():
        tx = _get_transaction(transaction_id)
        if tx.to_user_id != acting_user_id:
            raise ForbiddenError("This transaction is not addressed to you")
        _require_pending(tx, "rejected")

        _transition(tx, TransactionStatus.PENDING, TransactionStatus.REJECTED, utcnow())

        logger.info("Custody %s rejected by %s", tx.id, acting_user_id)
        return tx

    return run_with_retry(_op)


def cancel(transaction_id: str, acting_user_id: str) -> CustodyTransaction:
    """Sender withdraws a pending offer. The holder pointer is untouched."""
    def _op():
        tx = _get_transaction(transaction_id)
        if tx.from_user_id != acting_user_id:
            raise ForbiddenError("Only the sender can cancel this transaction")
        _require_pending(tx, "cancelled")

        _transition(tx, TransactionStatus.PENDING, TransactionStatus.CANCELLED, utcnow())

        logger.info("Custody %s cancelled by %s", tx.id, acting_user_id)
        return tx

    return run_with_retry(_op)


def return_back(transaction_id: str, acting_user_id: str, note: str | None) -> CustodyTransaction:
    """
    Holder hands accepted custody back to the original sender.

    Marks the accepted row RETURNED and opens a new PENDING RETURN_REQUEST
    row in the opposite direction, which the original sender accepts or
    rejects like any other offer.

    Returns:
        CustodyTransaction: The new RETURN_REQUEST row
    """
    def _op():
        tx = _get_transaction(transaction_id)
        if tx.to_user_id != acting_user_id:
            raise ForbiddenError("Only the recipient can return this transaction")
        if tx.status != TransactionStatus.ACCEPTED:
            raise ValidationError("Only an accepted transaction can be returned")

        return_note = optional_text(note, "note")
        if not return_note:
            raise ValidationError("Return note is required")

        document = document_service.get_by_number(tx.document_number, lock=True)
        if document.is_archived:
            raise ValidationError("An archived document cannot be returned")
        if document.current_holder_id != acting_user_id:
            raise ValidationError("This document is no longer in your custody")
        if _pending_for_document(document.number):
            raise ConflictError("This document already has a pending custody transaction")

        now = utcnow()
        _transition(tx, TransactionStatus.ACCEPTED, TransactionStatus.RETURNED, now)

        back = CustodyTransaction(
            document_number=tx.document_number,
            from_user_id=tx.to_user_id,
            to_user_id=tx.from_user_id,
            status=TransactionStatus.PENDING,
            kind=TransactionKind.RETURN_REQUEST,
            note=return_note,
            created_at=now,
        )
        db.session.add(back)
        db.session.add(DocumentNote(
            document_number=tx.document_number,
            transaction_id=tx.id,
            action_type=DocumentActionType.RETURN,
            note=return_note,
            created_by_user_id=acting_user_id,
            created_at=now,
        ))
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("This document already has a pending custody transaction")

        logger.info("Custody %s returned by %s; return request %s opened", tx.id, acting_user_id, back.id)
        return back

    return run_with_retry(_op)


# =============================================================================
# READ MODELS
# =============================================================================


def list_for_user(user_id: str) -> list[dict]:
    """
    Every row the user sent or received, newest first.

    Each row carries the document status and whether the user currently
    holds the document through it (is_active_for_me).
    """
    rows = (
        db.session.query(CustodyTransaction)
        .filter(db.or_(
            CustodyTransaction.from_user_id == user_id,
            CustodyTransaction.to_user_id == user_id,
        ))
        .order_by(CustodyTransaction.created_at.desc())
        .all()
    )
    if not rows:
        return []

    numbers = {tx.document_number for tx in rows}
    documents = {
        doc.number: doc
        for doc in db.session.query(Document).filter(Document.number.in_(numbers)).all()
    }

    result = []
    for tx in rows:
        document = documents.get(tx.document_number)
        item = tx.to_dict()
        item["document_status"] = document.status.value if document else None
        item["is_active_for_me"] = (
            tx.status == TransactionStatus.ACCEPTED
            and tx.to_user_id == user_id
            and document is not None
            and not document.is_archived
            and document.current_holder_id == user_id
        )
        result.append(item)
    return result


def _transaction_event(tx: CustodyTransaction) -> dict:
    return {
        "type": "TRANSACTION",
        "id": tx.id,
        "created_at": to_utc_z(tx.created_at),
        "from_user": tx.from_user.summary() if tx.from_user else None,
        "to_user": tx.to_user.summary() if tx.to_user else None,
        "status": tx.status.value,
        "kind": tx.kind.value,
        "note": tx.note,
    }


def _note_event(note: DocumentNote) -> dict:
    created_at = to_utc_z(note.created_at)
    created_by = note.created_by.summary() if note.created_by else None
    if note.action_type == DocumentActionType.ARCHIVE:
        return {
            "type": "ARCHIVED",
            "created_at": created_at,
            "archived_at": created_at,
            "archived_by": created_by,
            "note": note.note,
        }
    if note.action_type == DocumentActionType.UNARCHIVE:
        return {
            "type": "UNARCHIVED",
            "created_at": created_at,
            "created_by": created_by,
            "note": note.note or None,
        }
    return {
        "type": "RETURN",
        "created_at": created_at,
        "created_by": created_by,
        "transaction_id": note.transaction_id,
        "note": note.note,
    }


def document_timeline(number: str) -> list[dict]:
    """
    Full history of one document, oldest first.

    Ledger rows are interleaved with ARCHIVED / UNARCHIVED / RETURN markers
    from the document's note log.
    """
    document = document_service.get_by_number(number)

    transactions = (
        db.session.query(CustodyTransaction)
        .filter(CustodyTransaction.document_number == document.number)
        .order_by(CustodyTransaction.created_at.asc())
        .all()
    )
    notes = (
        db.session.query(DocumentNote)
        .filter(DocumentNote.document_number == document.number)
        .order_by(DocumentNote.created_at.asc(), DocumentNote.id.asc())
        .all()
    )

    events = [(tx.created_at, _transaction_event(tx)) for tx in transactions]
    events.extend((n.created_at, _note_event(n)) for n in notes)

    has_archive_note = any(n.action_type == DocumentActionType.ARCHIVE for n in notes)
    if document.is_archived and not has_archive_note and document.archived_at:
        # Archive fields without a note row (e.g. imported data)
        events.append((document.archived_at, {
            "type": "ARCHIVED",
            "created_at": to_utc_z(document.archived_at),
            "archived_at": to_utc_z(document.archived_at),
            "archived_by": document.archived_by.summary() if document.archived_by else None,
            "note": document.archive_note,
        }))

    # sort() is stable: on equal timestamps ledger rows stay ahead of markers
    events.sort(key=lambda pair: pair[0])
    return [event for _, event in events]
