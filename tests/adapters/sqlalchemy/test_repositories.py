"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import IntegrityError

from efiling.adapters.sqlalchemy.repositories import (
    SqlAlchemyConfirmationRepository,
    SqlAlchemyDeclarationRepository,
    SqlAlchemySignatureRecordRepository,
    SqlAlchemyStatusChangeRepository,
)
from efiling.domain.model import (
    Confirmation,
    Declaration,
    DeclarationStatus,
    DeclarationType,
    SignatureRecord,
    SignatureType,
    SignatureValidationStatus,
    StatusChange,
    TransitionTrigger,
    Variant,
)
from tests.helpers.filing import CONFIRMATION_NUMBER, confirmation_number

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


def _declaration(
    status: DeclarationStatus = DeclarationStatus.DRAFT,
    *,
    created_at: datetime = NOW,
    **fields: object,
) -> Declaration:
    declaration = Declaration(
        declaration_type=DeclarationType.VAT_7,
        period="2025-02",
        variant=Variant.MONTHLY,
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )
    for name, value in fields.items():
        setattr(declaration, name, value)
    return declaration


def _confirmation(declaration: Declaration, number: str = CONFIRMATION_NUMBER) -> Confirmation:
    return Confirmation(
        confirmation_number=number,
        confirmation_date=NOW,
        taxpayer_id="1234563218",
        tax_office_code="1471",
        form_code="VAT-7",
        period="2025-02",
        status_code="200",
        raw_document="<DeklaracjaPotwierdzenie/>",
        declaration_id=declaration.id,
        received_at=NOW,
    )


def test_declaration_lookup_by_id_and_confirmation_number(sqlite_session: Session) -> None:
    repository = SqlAlchemyDeclarationRepository(sqlite_session)
    declaration = _declaration(
        DeclarationStatus.SUBMITTED, confirmation_number=CONFIRMATION_NUMBER
    )
    repository.add(declaration)
    sqlite_session.commit()

    assert repository.get(declaration.id) is declaration
    assert repository.get_by_confirmation_number(CONFIRMATION_NUMBER) is declaration
    assert repository.get_by_confirmation_number("missing") is None


def test_confirmation_number_is_unique_across_declarations(sqlite_session: Session) -> None:
    repository = SqlAlchemyDeclarationRepository(sqlite_session)
    repository.add(_declaration(confirmation_number=CONFIRMATION_NUMBER))
    repository.add(_declaration(confirmation_number=CONFIRMATION_NUMBER))

    with pytest.raises(IntegrityError):
        sqlite_session.commit()


def test_list_by_status_orders_by_creation(sqlite_session: Session) -> None:
    repository = SqlAlchemyDeclarationRepository(sqlite_session)
    later = _declaration(DeclarationStatus.READY, created_at=NOW)
    earlier = _declaration(DeclarationStatus.READY, created_at=NOW - timedelta(hours=1))
    repository.add(later)
    repository.add(earlier)
    repository.add(_declaration(DeclarationStatus.DRAFT))
    sqlite_session.commit()

    assert repository.list_by_status(DeclarationStatus.READY) == [earlier, later]


def test_list_awaiting_outcome_selects_in_flight_and_due_retries(
    sqlite_session: Session,
) -> None:
    repository = SqlAlchemyDeclarationRepository(sqlite_session)
    window_start = NOW - timedelta(days=30)
    recent = _declaration(DeclarationStatus.SUBMITTED, submitted_at=NOW - timedelta(days=1))
    stale = _declaration(DeclarationStatus.SUBMITTED, submitted_at=NOW - timedelta(days=31))
    processing = _declaration(DeclarationStatus.PROCESSING)
    due = _declaration(DeclarationStatus.RETRY_PENDING, next_retry_at=NOW)
    unscheduled = _declaration(DeclarationStatus.RETRY_PENDING)
    waiting = _declaration(
        DeclarationStatus.RETRY_PENDING, next_retry_at=NOW + timedelta(minutes=1)
    )
    accepted = _declaration(DeclarationStatus.ACCEPTED, submitted_at=NOW)
    for declaration in (recent, stale, processing, due, unscheduled, waiting, accepted):
        repository.add(declaration)
    sqlite_session.commit()

    selected = repository.list_awaiting_outcome(now=NOW, active_since=window_start)

    assert {declaration.id for declaration in selected} == {
        recent.id,
        processing.id,
        due.id,
        unscheduled.id,
    }


def test_list_stale_returns_in_flight_declarations_before_the_window(
    sqlite_session: Session,
) -> None:
    repository = SqlAlchemyDeclarationRepository(sqlite_session)
    window_start = NOW - timedelta(days=30)
    oldest = _declaration(DeclarationStatus.PROCESSING, submitted_at=NOW - timedelta(days=60))
    old = _declaration(DeclarationStatus.SUBMITTED, submitted_at=NOW - timedelta(days=31))
    recent = _declaration(DeclarationStatus.SUBMITTED, submitted_at=NOW - timedelta(days=1))
    unknown = _declaration(DeclarationStatus.SUBMITTED)
    settled = _declaration(DeclarationStatus.ACCEPTED, submitted_at=NOW - timedelta(days=90))
    for declaration in (old, recent, unknown, settled, oldest):
        repository.add(declaration)
    sqlite_session.commit()

    stale = repository.list_stale(active_since=window_start)

    assert [declaration.id for declaration in stale] == [oldest.id, old.id]


def test_list_accepted_without_receipt(sqlite_session: Session) -> None:
    declarations = SqlAlchemyDeclarationRepository(sqlite_session)
    confirmations = SqlAlchemyConfirmationRepository(sqlite_session)
    with_receipt = _declaration(DeclarationStatus.ACCEPTED, updated_at=NOW)
    oldest = _declaration(DeclarationStatus.ACCEPTED)
    oldest.updated_at = NOW - timedelta(days=2)
    newer = _declaration(DeclarationStatus.ACCEPTED)
    newer.updated_at = NOW - timedelta(days=1)
    for declaration in (with_receipt, oldest, newer, _declaration(DeclarationStatus.REJECTED)):
        declarations.add(declaration)
    confirmations.add(_confirmation(with_receipt))
    sqlite_session.commit()

    assert declarations.list_accepted_without_receipt(limit=10) == [oldest, newer]
    assert declarations.list_accepted_without_receipt(limit=1) == [oldest]


def test_rejected_receipts_are_retried_after_untried_ones(sqlite_session: Session) -> None:
    declarations = SqlAlchemyDeclarationRepository(sqlite_session)
    rejected_later = _declaration(DeclarationStatus.ACCEPTED, created_at=NOW - timedelta(days=5))
    rejected_later.reject_receipt("Receipt rejected", now=NOW - timedelta(hours=1))
    rejected_first = _declaration(DeclarationStatus.ACCEPTED, created_at=NOW - timedelta(days=4))
    rejected_first.reject_receipt("Receipt rejected", now=NOW - timedelta(hours=2))
    untried = _declaration(DeclarationStatus.ACCEPTED)
    for declaration in (rejected_later, rejected_first, untried):
        declarations.add(declaration)
    sqlite_session.commit()

    assert declarations.list_accepted_without_receipt(limit=10) == [
        untried,
        rejected_first,
        rejected_later,
    ]
    assert declarations.list_accepted_without_receipt(limit=1) == [untried]


def test_count_by_status(sqlite_session: Session) -> None:
    repository = SqlAlchemyDeclarationRepository(sqlite_session)
    for status in (
        DeclarationStatus.DRAFT,
        DeclarationStatus.DRAFT,
        DeclarationStatus.FAILED,
    ):
        repository.add(_declaration(status))
    sqlite_session.commit()

    assert repository.count_by_status() == {
        DeclarationStatus.DRAFT: 2,
        DeclarationStatus.FAILED: 1,
    }


def test_child_records_are_listed_per_declaration(sqlite_session: Session) -> None:
    declaration = _declaration(DeclarationStatus.ACCEPTED)
    other = _declaration()
    SqlAlchemyDeclarationRepository(sqlite_session).add(declaration)
    SqlAlchemyDeclarationRepository(sqlite_session).add(other)

    signatures = SqlAlchemySignatureRecordRepository(sqlite_session)
    confirmations = SqlAlchemyConfirmationRepository(sqlite_session)
    changes = SqlAlchemyStatusChangeRepository(sqlite_session)
    for index in (2, 1):
        signatures.add(
            SignatureRecord(
                declaration_id=declaration.id,
                signature_id=f"sig-{index}",
                signature_type=SignatureType.LOCAL_CERTIFICATE,
                algorithm="RSA-SHA256",
                content_hash="00" * 32,
                validation_status=SignatureValidationStatus.VALID,
                created_at=NOW + timedelta(seconds=index),
            )
        )
        changes.add(
            StatusChange(
                declaration_id=declaration.id,
                old_status=DeclarationStatus.DRAFT,
                new_status=DeclarationStatus.READY,
                trigger=TransitionTrigger.CALLER,
                reason=f"step {index}",
                created_at=NOW + timedelta(seconds=index),
            )
        )
    receipt = _confirmation(declaration, confirmation_number(1))
    confirmations.add(receipt)
    sqlite_session.commit()

    assert [record.signature_id for record in signatures.list_for_declaration(declaration.id)] == [
        "sig-1",
        "sig-2",
    ]
    assert [change.reason for change in changes.list_for_declaration(declaration.id)] == [
        "step 1",
        "step 2",
    ]
    assert confirmations.get(confirmation_number(1)) is receipt
    assert confirmations.get(CONFIRMATION_NUMBER) is None
    assert confirmations.list_for_declaration(declaration.id) == [receipt]
    assert signatures.list_for_declaration(other.id) == []
