"""
Custody ledger state machine tests.

Covers create / accept / reject / cancel / return, the holder pointer and
the document timeline read model.
"""

import pytest

from zimmet.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from zimmet.extensions import db
from zimmet.models import (
    CustodyTransaction,
    Document,
    DocumentActionType,
    DocumentNote,
    DocumentStatus,
    TransactionKind,
    TransactionStatus,
)
from zimmet.services import custody_service, document_service


def _document(number: str) -> Document:
    return db.session.get(Document, number)


def _pending_count(number: str) -> int:
    return db.session.query(CustodyTransaction).filter_by(
        document_number=number, status=TransactionStatus.PENDING
    ).count()


def _hand_over(number, sender, receiver):
    tx = custody_service.create_custody(number, receiver.id, sender.id)
    return custody_service.accept(tx.id, receiver.id)


# =============================================================================
# CREATE
# =============================================================================


def test_create_registers_document_and_opens_pending(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id, note="for review")

    assert tx.status == TransactionStatus.PENDING
    assert tx.kind == TransactionKind.NORMAL
    assert tx.from_user_id == alice.id
    assert tx.to_user_id == bob.id
    assert tx.note == "for review"

    document = _document("500")
    assert document.status == DocumentStatus.ACTIVE
    assert document.current_holder_id is None

    data = tx.to_dict()
    assert data["from_user"] == {"id": alice.id, "full_name": "Alice Demir", "department": "Legal"}
    assert data["to_user"]["full_name"] == "Bob Kaya"


def test_create_trims_document_number(alice, bob):
    tx = custody_service.create_custody("  123 ", bob.id, alice.id)
    assert tx.document_number == "123"


@pytest.mark.parametrize("number", ["", "   ", "123abc", "12 3", "-5"])
def test_create_rejects_malformed_numbers(alice, bob, number):
    with pytest.raises(ValidationError):
        custody_service.create_custody(number, bob.id, alice.id)

    assert db.session.query(Document).count() == 0


@pytest.mark.parametrize("number", ["123", "abc", ""])
def test_self_assignment_always_fails(alice, number):
    with pytest.raises(ValidationError, match="yourself"):
        custody_service.create_custody(number, alice.id, alice.id)


def test_create_requires_active_existing_target(alice, bob):
    with pytest.raises(ValidationError):
        custody_service.create_custody("500", None, alice.id)

    with pytest.raises(ValidationError):
        custody_service.create_custody("500", "no-such-user", alice.id)

    bob.is_active = False
    db.session.commit()
    with pytest.raises(ValidationError, match="deactivated"):
        custody_service.create_custody("500", bob.id, alice.id)


def test_create_with_unknown_sender_is_not_found(bob):
    with pytest.raises(NotFoundError):
        custody_service.create_custody("500", bob.id, "ghost")


def test_second_offer_while_pending_conflicts(alice, bob, carol):
    custody_service.create_custody("500", bob.id, alice.id)

    with pytest.raises(ConflictError):
        custody_service.create_custody("500", carol.id, alice.id)

    assert _pending_count("500") == 1


def test_only_holder_may_hand_document_on(alice, bob, carol):
    _hand_over("500", alice, bob)

    with pytest.raises(ForbiddenError):
        custody_service.create_custody("500", carol.id, alice.id)

    tx = custody_service.create_custody("500", carol.id, bob.id)
    assert tx.status == TransactionStatus.PENDING


def test_admin_may_reassign_held_document(alice, bob, carol, admin):
    _hand_over("500", alice, bob)

    tx = custody_service.create_custody("500", carol.id, admin.id)
    assert tx.from_user_id == admin.id


def test_repeat_offer_to_current_recipient_is_rejected(alice, bob, admin):
    _hand_over("500", alice, bob)

    with pytest.raises(ValidationError, match="already assigned"):
        custody_service.create_custody("500", bob.id, admin.id)


def test_repeat_offer_allowed_after_reject(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id)
    custody_service.reject(tx.id, bob.id)

    again = custody_service.create_custody("500", bob.id, alice.id)
    assert again.status == TransactionStatus.PENDING
    assert again.id != tx.id


def test_create_reopens_document_archived_by_sender(alice, bob, carol):
    _hand_over("500", alice, bob)
    document_service.archive("500", bob.id, "filed")

    tx = custody_service.create_custody("500", carol.id, bob.id)
    assert tx.status == TransactionStatus.PENDING

    document = _document("500")
    assert document.status == DocumentStatus.ACTIVE
    assert document.archived_at is None
    assert document.archived_by_user_id is None
    assert document.archive_note is None

    actions = [n.action_type for n in db.session.query(DocumentNote).order_by(DocumentNote.id).all()]
    assert actions == [DocumentActionType.ARCHIVE, DocumentActionType.UNARCHIVE]


def test_archived_document_stays_closed_for_other_users(alice, bob, carol):
    _hand_over("500", alice, bob)
    document_service.archive("500", bob.id, "filed")

    with pytest.raises(ValidationError, match="archived"):
        custody_service.create_custody("500", alice.id, carol.id)

    assert _document("500").status == DocumentStatus.ARCHIVED


# =============================================================================
# ACCEPT / REJECT / CANCEL
# =============================================================================


def test_accept_moves_holder_to_addressee(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id)

    accepted = custody_service.accept(tx.id, bob.id)

    assert accepted.status == TransactionStatus.ACCEPTED
    assert accepted.resolved_at is not None
    document = _document("500")
    assert document.current_holder_id == bob.id
    assert document.holder_since == accepted.resolved_at


def test_only_addressee_can_accept(alice, bob, carol):
    tx = custody_service.create_custody("500", bob.id, alice.id)

    with pytest.raises(ForbiddenError):
        custody_service.accept(tx.id, alice.id)
    with pytest.raises(ForbiddenError):
        custody_service.accept(tx.id, carol.id)

    assert _document("500").current_holder_id is None


def test_accept_requires_pending(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id)
    custody_service.accept(tx.id, bob.id)

    with pytest.raises(ValidationError):
        custody_service.accept(tx.id, bob.id)


def test_unknown_transaction_is_not_found(alice):
    for operation in (custody_service.accept, custody_service.reject, custody_service.cancel):
        with pytest.raises(NotFoundError):
            operation("missing", alice.id)
    with pytest.raises(NotFoundError):
        custody_service.return_back("missing", alice.id, "note")


def test_reject_keeps_holder(alice, bob, carol):
    _hand_over("500", alice, bob)
    tx = custody_service.create_custody("500", carol.id, bob.id)

    rejected = custody_service.reject(tx.id, carol.id)

    assert rejected.status == TransactionStatus.REJECTED
    assert _document("500").current_holder_id == bob.id


def test_cancel_by_sender_only_and_keeps_holder(alice, bob, carol):
    _hand_over("500", alice, bob)
    tx = custody_service.create_custody("500", carol.id, bob.id)

    with pytest.raises(ForbiddenError):
        custody_service.cancel(tx.id, carol.id)

    cancelled = custody_service.cancel(tx.id, bob.id)
    assert cancelled.status == TransactionStatus.CANCELLED
    assert _document("500").current_holder_id == bob.id
    assert _pending_count("500") == 0


def test_resolved_transaction_cannot_be_cancelled(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id)
    custody_service.reject(tx.id, bob.id)

    with pytest.raises(ValidationError):
        custody_service.cancel(tx.id, alice.id)


def test_transition_bumps_version(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id)
    before = tx.version_id

    accepted = custody_service.accept(tx.id, bob.id)
    assert accepted.version_id == before + 1


# =============================================================================
# RETURN
# =============================================================================


def test_return_flips_original_and_opens_return_request(alice, bob):
    row1 = _hand_over("500", alice, bob)

    row2 = custody_service.return_back(row1.id, bob.id, "  done  ")

    original = db.session.get(CustodyTransaction, row1.id)
    assert original.status == TransactionStatus.RETURNED

    assert row2.id != row1.id
    assert row2.status == TransactionStatus.PENDING
    assert row2.kind == TransactionKind.RETURN_REQUEST
    assert row2.from_user_id == bob.id
    assert row2.to_user_id == alice.id
    assert row2.note == "done"
    assert _pending_count("500") == 1

    note = db.session.query(DocumentNote).filter_by(action_type=DocumentActionType.RETURN).one()
    assert note.transaction_id == row1.id
    assert note.note == "done"

    # Custody stays with the returner until the sender accepts
    assert _document("500").current_holder_id == bob.id


def test_return_requires_note(alice, bob):
    row1 = _hand_over("500", alice, bob)

    with pytest.raises(ValidationError, match="note"):
        custody_service.return_back(row1.id, bob.id, "   ")

    assert db.session.get(CustodyTransaction, row1.id).status == TransactionStatus.ACCEPTED


def test_return_by_sender_is_forbidden(alice, bob):
    row1 = _hand_over("500", alice, bob)

    with pytest.raises(ForbiddenError):
        custody_service.return_back(row1.id, alice.id, "mine")


def test_return_requires_accepted(alice, bob):
    tx = custody_service.create_custody("500", bob.id, alice.id)

    with pytest.raises(ValidationError):
        custody_service.return_back(tx.id, bob.id, "not yet")


def test_return_after_passing_document_on_fails(alice, bob, carol):
    row1 = _hand_over("500", alice, bob)
    _hand_over("500", bob, carol)

    with pytest.raises(ValidationError, match="no longer"):
        custody_service.return_back(row1.id, bob.id, "too late")


def test_return_with_outstanding_offer_conflicts(alice, bob, carol):
    row1 = _hand_over("500", alice, bob)
    custody_service.create_custody("500", carol.id, bob.id)

    with pytest.raises(ConflictError):
        custody_service.return_back(row1.id, bob.id, "back")


def test_return_of_archived_document_fails(alice, bob):
    row1 = _hand_over("500", alice, bob)
    document_service.archive("500", bob.id, "filed")

    with pytest.raises(ValidationError, match="archived"):
        custody_service.return_back(row1.id, bob.id, "back")


def test_rejecting_return_request_keeps_custody_with_returner(alice, bob):
    row1 = _hand_over("500", alice, bob)
    row2 = custody_service.return_back(row1.id, bob.id, "done")

    custody_service.reject(row2.id, alice.id)

    assert _document("500").current_holder_id == bob.id


def test_full_custody_scenario(alice, bob):
    row1 = custody_service.create_custody("500", bob.id, alice.id)
    custody_service.accept(row1.id, bob.id)
    assert _document("500").current_holder_id == bob.id

    row2 = custody_service.return_back(row1.id, bob.id, "done")
    assert db.session.get(CustodyTransaction, row1.id).status == TransactionStatus.RETURNED
    assert (row2.status, row2.kind) == (TransactionStatus.PENDING, TransactionKind.RETURN_REQUEST)
    assert (row2.from_user_id, row2.to_user_id) == (bob.id, alice.id)

    custody_service.accept(row2.id, alice.id)
    assert _document("500").current_holder_id == alice.id

    document = document_service.archive("500", alice.id, "filed")
    assert document.status == DocumentStatus.ARCHIVED
    assert document.archived_by_user_id == alice.id


# =============================================================================
# READ MODELS
# =============================================================================


def test_timeline_interleaves_transactions_and_notes(alice, bob):
    row1 = _hand_over("500", alice, bob)
    row2 = custody_service.return_back(row1.id, bob.id, "done")
    custody_service.accept(row2.id, alice.id)
    document_service.archive("500", alice.id, "filed")

    timeline = custody_service.document_timeline("500")

    assert [item["type"] for item in timeline] == ["TRANSACTION", "TRANSACTION", "RETURN", "ARCHIVED"]
    assert timeline[0]["id"] == row1.id
    assert timeline[0]["status"] == "RETURNED"
    assert timeline[1]["kind"] == "RETURN_REQUEST"
    assert timeline[2]["transaction_id"] == row1.id
    assert timeline[3]["archived_by"]["id"] == alice.id
    assert timeline[3]["note"] == "filed"


def test_timeline_of_unknown_document_is_not_found(alice):
    with pytest.raises(NotFoundError):
        custody_service.document_timeline("999")


def test_list_for_user_newest_first_with_active_flag(alice, bob, carol):
    first = _hand_over("500", alice, bob)
    second = custody_service.create_custody("600", carol.id, bob.id)

    rows = custody_service.list_for_user(bob.id)

    assert [r["id"] for r in rows] == [second.id, first.id]
    assert rows[1]["is_active_for_me"] is True
    assert rows[1]["document_status"] == "ACTIVE"
    assert rows[0]["is_active_for_me"] is False

    assert custody_service.list_for_user(carol.id)[0]["id"] == second.id
    assert custody_service.list_for_user("nobody") == []


def test_active_flag_clears_when_document_archived(alice, bob):
    _hand_over("500", alice, bob)
    document_service.archive("500", bob.id, "filed")

    rows = custody_service.list_for_user(bob.id)
    assert rows[0]["document_status"] == "ARCHIVED"
    assert rows[0]["is_active_for_me"] is False
