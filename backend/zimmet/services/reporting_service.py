# Overview: Admin read models computed on demand from the ledger (assignments, overdue, summary).

"""
Reporting.

Nothing here writes. Every report is derived from the current ledger and
document registry at call time, so there is no cache to invalidate.
"""
from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import CustodyTransaction, Document, DocumentStatus, TransactionStatus
from zimmet.time_utils import to_utc_z, utcnow, whole_minutes_between


DEFAULT_OVERDUE_THRESHOLD_MINUTES = 15


def _threshold_minutes(threshold_minutes: int | None) -> int:
    if threshold_minutes is not None:
        return int(threshold_minutes)
    return int(current_app.config.get("OVERDUE_THRESHOLD_MINUTES", DEFAULT_OVERDUE_THRESHOLD_MINUTES))


def _overdue_query(now, threshold_minutes: int):
    cutoff = now - timedelta(minutes=threshold_minutes)
    return db.session.query(CustodyTransaction).filter(
        CustodyTransaction.status == TransactionStatus.PENDING,
        CustodyTransaction.created_at < cutoff,
    )


def overdue(now=None, threshold_minutes: int | None = None) -> list[dict]:
    """
    PENDING rows older than the threshold, oldest first.

    Each row carries overdue_minutes: whole minutes since it was created.
    """
    now = now or utcnow()
    threshold = _threshold_minutes(threshold_minutes)

    rows = _overdue_query(now, threshold).order_by(CustodyTransaction.created_at.asc()).all()

    result = []
    for tx in rows:
        item = tx.to_dict()
        item["overdue_minutes"] = whole_minutes_between(tx.created_at, now)
        result.append(item)
    return result


def _latest_acceptance(number: str, holder_id: str) -> CustodyTransaction | None:
    return (
        db.session.query(CustodyTransaction)
        .filter(
            CustodyTransaction.document_number == number,
            CustodyTransaction.to_user_id == holder_id,
            CustodyTransaction.status == TransactionStatus.ACCEPTED,
        )
        .order_by(CustodyTransaction.created_at.desc())
        .first()
    )


def active_assignments(overdue_only: bool = False, now=None) -> list[dict]:
    """
    ACTIVE documents that currently have a holder, ordered by number.

    With overdue_only, only documents that also have an overdue pending
    offer are listed.
    """
    documents = (
        db.session.query(Document)
        .filter(
            Document.status == DocumentStatus.ACTIVE,
            Document.current_holder_id.isnot(None),
        )
        .order_by(Document.number.asc())
        .all()
    )

    if overdue_only:
        now = now or utcnow()
        late = {
            tx.document_number
            for tx in _overdue_query(now, _threshold_minutes(None)).all()
        }
        documents = [doc for doc in documents if doc.number in late]

    result = []
    for doc in documents:
        accepted = _latest_acceptance(doc.number, doc.current_holder_id)
        result.append({
            "document_number": doc.number,
            "holder": doc.current_holder.summary() if doc.current_holder else None,
            "transaction_id": accepted.id if accepted else None,
            "assigned_at": to_utc_z(accepted.resolved_at if accepted else doc.holder_since),
        })
    return result


def active_summary(now=None) -> dict:
    now = now or utcnow()
    return {
        "active_assignments": db.session.query(Document).filter(
            Document.status == DocumentStatus.ACTIVE,
            Document.current_holder_id.isnot(None),
        ).count(),
        "pending": db.session.query(CustodyTransaction).filter(
            CustodyTransaction.status == TransactionStatus.PENDING,
        ).count(),
        "overdue": _overdue_query(now, _threshold_minutes(None)).count(),
        "archived_documents": db.session.query(Document).filter(
            Document.status == DocumentStatus.ARCHIVED,
        ).count(),
    }
