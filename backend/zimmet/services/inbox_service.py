# Overview: Unread counters for the three custody inboxes and their mark-seen timestamps.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import ValidationError
from ..models import CustodyTransaction, Inbox, InboxSeen, TransactionKind, TransactionStatus
from .concurrency import run_with_retry
from zimmet.time_utils import utcnow


logger = logging.getLogger(__name__)


def parse_inbox(value) -> Inbox:
    if isinstance(value, Inbox):
        return value
    try:
        return Inbox((value or "").strip().upper())
    except ValueError:
        allowed = ", ".join(i.value for i in Inbox)
        raise ValidationError(f"Unknown inbox {value!r}; expected one of {allowed}")


def _seen_map(user_id: str) -> dict:
    rows = db.session.query(InboxSeen).filter_by(user_id=user_id).all()
    return {row.inbox: row.last_seen_at for row in rows}


def unread_counts(user_id: str) -> dict:
    """
    Counts of rows the user has not seen yet, per inbox.

    An inbox the user never opened counts everything.
    """
    seen = _seen_map(user_id)

    def _incoming(kind: TransactionKind, inbox: Inbox) -> int:
        query = db.session.query(CustodyTransaction).filter(
            CustodyTransaction.to_user_id == user_id,
            CustodyTransaction.status == TransactionStatus.PENDING,
            CustodyTransaction.kind == kind,
        )
        if seen.get(inbox):
            query = query.filter(CustodyTransaction.created_at > seen[inbox])
        return query.count()

    red = db.session.query(CustodyTransaction).filter(
        CustodyTransaction.from_user_id == user_id,
        CustodyTransaction.status == TransactionStatus.REJECTED,
    )
    if seen.get(Inbox.RED):
        red = red.filter(CustodyTransaction.resolved_at > seen[Inbox.RED])

    return {
        "incoming": _incoming(TransactionKind.NORMAL, Inbox.INCOMING),
        "iade": _incoming(TransactionKind.RETURN_REQUEST, Inbox.IADE),
        "red": red.count(),
    }


def mark_seen(user_id: str, inbox) -> InboxSeen:
    """Stamp one inbox as seen now. Other inboxes are untouched."""
    inbox = parse_inbox(inbox)

    def _op():
        row = db.session.query(InboxSeen).filter_by(user_id=user_id, inbox=inbox).first()
        now = utcnow()
        if row:
            row.last_seen_at = now
        else:
            row = InboxSeen(user_id=user_id, inbox=inbox, last_seen_at=now)
            db.session.add(row)
        db.session.flush()
        return row

    row = run_with_retry(_op)
    logger.debug("User %s marked inbox %s seen", user_id, inbox.value)
    return row


def pending_for_me_count(user_id: str) -> int:
    return db.session.query(CustodyTransaction).filter(
        CustodyTransaction.to_user_id == user_id,
        CustodyTransaction.status == TransactionStatus.PENDING,
    ).count()
