from __future__ import annotations

import uuid

from ..extensions import db
from zimmet.time_utils import to_utc_z, utcnow
from .enums import DocumentActionType, DocumentStatus, Inbox, TransactionKind, TransactionStatus


def _new_id() -> str:
    return str(uuid.uuid4())


class Document(db.Model):
    """
    A physical/administrative document identified by its number.

    Created implicitly by the first custody transaction that mentions it and
    never deleted. current_holder_id is a cache of "who last accepted it";
    only custody_service writes it.
    """
    __tablename__ = "documents"

    number = db.Column(db.String(64), primary_key=True)
    status = db.Column(
        db.Enum(DocumentStatus, native_enum=False, length=16),
        nullable=False,
        default=DocumentStatus.ACTIVE,
        index=True,
    )

    current_holder_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)
    holder_since = db.Column(db.DateTime, nullable=True)

    archived_at = db.Column(db.DateTime, nullable=True)
    archived_by_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    archive_note = db.Column(db.Text, nullable=True)
    archive_department = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    current_holder = db.relationship("User", foreign_keys=[current_holder_id])
    archived_by = db.relationship("User", foreign_keys=[archived_by_user_id])

    @property
    def is_archived(self) -> bool:
        return self.status == DocumentStatus.ARCHIVED

    def __repr__(self) -> str:
        return f"<Document number={self.number!r} status={self.status.value}>"

    def to_dict(self) -> dict:
        holder = self.current_holder.summary() if self.current_holder else None
        return {
            "number": self.number,
            "status": self.status.value,
            # An archived document has no active holder; the last one is kept for audit.
            "current_holder": None if self.is_archived else holder,
            "last_holder": holder if self.is_archived else None,
            "holder_since": to_utc_z(self.holder_since),
            "archived_at": to_utc_z(self.archived_at),
            "archived_by": self.archived_by.summary() if self.archived_by else None,
            "archive_note": self.archive_note,
            "archive_department": self.archive_department,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustodyTransaction(db.Model):
    """
    One custody episode on the ledger: an offer from one user to another.

    LIFECYCLE:
    1. PENDING: offered, waiting for the addressee
    2. ACCEPTED: addressee took custody (holder pointer moves)
    3. REJECTED / CANCELLED: declined by the addressee / withdrawn by the sender
    4. RETURNED: accepted custody handed back; a new RETURN_REQUEST row is
       opened in the opposite direction

    The status column leaves each state exactly once, via conditional update.
    At most one PENDING row may exist per document (partial unique index).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("from_user_id <> to_user_id", name="ck_transactions_not_self"),
        db.Index("ix_transactions_document_created", "document_number", "created_at"),
        db.Index("ix_transactions_to_status", "to_user_id", "status"),
        db.Index("ix_transactions_from_status", "from_user_id", "status"),
        db.Index(
            "uq_transactions_one_pending_per_document",
            "document_number",
            unique=True,
            sqlite_where=db.text("status = 'PENDING'"),
            postgresql_where=db.text("status = 'PENDING'"),
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    document_number = db.Column(db.String(64), db.ForeignKey("documents.number"), nullable=False)
    from_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    to_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)

    status = db.Column(
        db.Enum(TransactionStatus, native_enum=False, length=16),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    kind = db.Column(
        db.Enum(TransactionKind, native_enum=False, length=16),
        nullable=False,
        default=TransactionKind.NORMAL,
    )
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    # When the row last changed status (accept/reject/cancel/return)
    resolved_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    document = db.relationship("Document", backref=db.backref("transactions", lazy=True))
    from_user = db.relationship("User", foreign_keys=[from_user_id])
    to_user = db.relationship("User", foreign_keys=[to_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<CustodyTransaction id={self.id} doc={self.document_number!r} "
            f"status={self.status.value} kind={self.kind.value}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "from_user": self.from_user.summary() if self.from_user else None,
            "to_user": self.to_user.summary() if self.to_user else None,
            "status": self.status.value,
            "kind": self.kind.value,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }


class DocumentNote(db.Model):
    """
    Append-only note log per document (archive, unarchive, return).

    Feeds the ARCHIVED / UNARCHIVED / RETURN markers of the document timeline.
    """
    __tablename__ = "document_notes"

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), db.ForeignKey("documents.number"), nullable=False, index=True)
    transaction_id = db.Column(db.String(36), db.ForeignKey("transactions.id"), nullable=True)
    action_type = db.Column(db.Enum(DocumentActionType, native_enum=False, length=16), nullable=False)
    note = db.Column(db.Text, nullable=False, default="")
    created_by_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "transaction_id": self.transaction_id,
            "action_type": self.action_type.value,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class InboxSeen(db.Model):
    """Last time a user opened one of their three inboxes."""
    __tablename__ = "inbox_seen"
    __table_args__ = (
        db.UniqueConstraint("user_id", "inbox", name="uq_inbox_seen_user_inbox"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    inbox = db.Column(db.Enum(Inbox, native_enum=False, length=16), nullable=False)
    last_seen_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "inbox": self.inbox.value,
            "last_seen_at": to_utc_z(self.last_seen_at),
        }
