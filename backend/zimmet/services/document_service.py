# Overview: Document registry; identity, lifecycle status and archiving of documents.

"""
Document registry.

A document is only a number plus status metadata. It is created implicitly
by the first custody transaction that mentions it (find-or-create) and is
never deleted. The current-holder pointer lives here but is written only by
custody_service.
"""
from __future__ import annotations

import logging
import re

from ..extensions import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import (
    CustodyTransaction,
    Document,
    DocumentActionType,
    DocumentNote,
    DocumentStatus,
    TransactionStatus,
    User,
)
from .concurrency import lock_for_update, run_with_retry
from zimmet.input_utils import optional_text
from zimmet.time_utils import utcnow


logger = logging.getLogger(__name__)

DOCUMENT_NUMBER_RE = re.compile(r"[0-9]+")


def normalize_document_number(number) -> str:
    """Trim and validate a document number (digits only)."""
    value = str(number if number is not None else "").strip()
    if not value:
        raise ValidationError("Document number is required")
    if not DOCUMENT_NUMBER_RE.fullmatch(value):
        raise ValidationError("Document number must contain digits only")
    return value


def find_or_create(number: str, *, lock: bool = False) -> Document:
    """
    Return the document with this number, creating an ACTIVE one if needed.

    Does not commit; callers run it inside their own unit of work.
    """
    number = (number or "").strip()
    if not number:
        raise ValidationError("Document number cannot be empty")

    query = db.session.query(Document).filter_by(number=number)
    if lock:
        query = lock_for_update(query)
    document = query.first()
    if document:
        return document

    document = Document(number=number, status=DocumentStatus.ACTIVE, current_holder_id=None)
    db.session.add(document)
    db.session.flush()
    logger.info("Registered document %s", number)
    return document


def get_by_number(number: str, *, lock: bool = False) -> Document:
    query = db.session.query(Document).filter_by(number=(number or "").strip())
    if lock:
        query = lock_for_update(query)
    document = query.first()
    if not document:
        raise NotFoundError("Document", number)
    return document


def list_active() -> list[Document]:
    return (
        db.session.query(Document)
        .filter(Document.status == DocumentStatus.ACTIVE)
        .order_by(Document.created_at.desc())
        .all()
    )


def has_pending(number: str) -> bool:
    return db.session.query(CustodyTransaction.id).filter(
        CustodyTransaction.document_number == number,
        CustodyTransaction.status == TransactionStatus.PENDING,
    ).first() is not None


def archive(
    number: str,
    archived_by_user_id: str,
    note: str | None,
    archive_department: str | None = None,
) -> Document:
    """
    Archive a document (holder or admin only).

    Raises:
        ValidationError: blank or non-string note, malformed number, already archived,
            or a custody offer is still pending
        NotFoundError: unknown document
        ForbiddenError: actor neither holds the document nor is an admin
    """
    note = optional_text(note, "note")
    if not note:
        raise ValidationError("Archive note is required")
    archive_department = optional_text(archive_department, "archive_department")
    number = normalize_document_number(number)

    def _op():
        document = get_by_number(number, lock=True)

        if document.is_archived:
            raise ValidationError("This document is already archived")

        actor = db.session.get(User, archived_by_user_id)
        if not actor:
            raise NotFoundError("User", archived_by_user_id)

        is_holder = document.current_holder_id is not None and document.current_holder_id == actor.id
        if not is_holder and not actor.is_admin:
            raise ForbiddenError("Only the current holder can archive this document")

        if has_pending(number):
            raise ValidationError("This document has a pending custody transaction; resolve it first")

        now = utcnow()
        document.status = DocumentStatus.ARCHIVED
        document.archived_at = now
        document.archived_by_user_id = actor.id
        document.archive_note = note
        document.archive_department = archive_department

        db.session.add(DocumentNote(
            document_number=number,
            action_type=DocumentActionType.ARCHIVE,
            note=note,
            created_by_user_id=actor.id,
            created_at=now,
        ))
        db.session.flush()

        logger.info("Document %s archived by %s", number, actor.id)
        return document

    return run_with_retry(_op)


def reopen(document: Document, actor: User, now) -> None:
    """
    Bring an archived document back to ACTIVE inside the caller's unit of work.

    Only the user who archived it or an admin may do so. The archive fields
    are cleared; the ARCHIVE and UNARCHIVE notes keep the history.
    """
    if document.archived_by_user_id != actor.id and not actor.is_admin:
        raise ValidationError("This document is archived; no new custody can be created")

    document.status = DocumentStatus.ACTIVE
    document.archived_at = None
    document.archived_by_user_id = None
    document.archive_note = None
    document.archive_department = None

    db.session.add(DocumentNote(
        document_number=document.number,
        action_type=DocumentActionType.UNARCHIVE,
        note="",
        created_by_user_id=actor.id,
        created_at=now,
    ))
    logger.info("Document %s reopened by %s", document.number, actor.id)
