"""Receipt processing: validate the authority's confirmation and store it once."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from efiling.domain.clock import system_clock
from efiling.domain.errors import ConfirmationConflictError, DeclarationNotFoundError
from efiling.domain.model import Confirmation, Severity, ValidationIssue, ValidationReport

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from efiling.domain.clock import Clock
    from efiling.domain.model import ReceiptDocument
    from efiling.domain.ports.documents import ReceiptInspector
    from efiling.domain.ports.unit_of_work import FilingUnitOfWork
    from efiling.domain.tracking.locks import DeclarationLocks

log = getLogger(__name__)

DUPLICATE_CONFIRMATION = "DUPLICATE_CONFIRMATION"


@dataclass(slots=True, frozen=True)
class ConfirmationOutcome:
    report: ValidationReport
    confirmation: Confirmation | None = None
    stored: bool = False
    duplicate: bool = False


def parse_confirmation_date(value: str) -> datetime:
    """Parse a receipt date (``YYYY-MM-DD`` or ISO timestamp) into aware UTC."""

    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class ConfirmationService:
    """Validate receipts against their declaration and persist them idempotently."""

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], FilingUnitOfWork],
        inspector: ReceiptInspector,
        locks: DeclarationLocks | None = None,
        clock: Clock = system_clock,
        lock_timeout: float = 30.0,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._inspector = inspector
        self._locks = locks
        self._clock = clock
        self._lock_timeout = lock_timeout

    def process(self, declaration_id: UUID, receipt_xml: str) -> ConfirmationOutcome:
        receipt = self._inspector.parse(receipt_xml)
        if self._locks is None:
            return self._process(declaration_id, receipt)
        with self._locks.hold(declaration_id, timeout=self._lock_timeout):
            return self._process(declaration_id, receipt)

    def _process(self, declaration_id: UUID, receipt: ReceiptDocument) -> ConfirmationOutcome:
        now = self._clock()
        with self._unit_of_work_factory() as uow:
            declaration = uow.repositories.declarations.get(declaration_id)
            if declaration is None:
                raise DeclarationNotFoundError(declaration_id)

            report = self._inspector.validate(receipt, declaration, now=now)
            existing = (
                uow.repositories.confirmations.get(receipt.confirmation_number)
                if receipt.confirmation_number
                else None
            )
            if existing is not None:
                report = report.with_issue(
                    ValidationIssue(
                        code=DUPLICATE_CONFIRMATION,
                        message=(
                            f"Confirmation {receipt.confirmation_number} is already on file; "
                            "keeping the stored record"
                        ),
                        severity=Severity.WARNING,
                    )
                )

            if not report.is_valid:
                reasons = "; ".join(str(issue) for issue in report.errors)
                log.warning(f"Receipt for declaration {declaration_id} rejected: {reasons}")
                if existing is None:
                    declaration.reject_receipt(f"Receipt rejected: {reasons}", now=now)
                    uow.commit()
                return ConfirmationOutcome(report=report, confirmation=existing)

            if existing is not None:
                log.info(f"Receipt {existing.confirmation_number} already stored, nothing to do")
                return ConfirmationOutcome(report=report, confirmation=existing, duplicate=True)

            confirmation = self._build_confirmation(receipt, declaration_id, now=now)
            if declaration.confirmation_number is None:
                owner = uow.repositories.declarations.get_by_confirmation_number(
                    confirmation.confirmation_number
                )
                if owner is not None and owner.id != declaration.id:
                    raise ConfirmationConflictError(
                        f"Confirmation number {confirmation.confirmation_number} already "
                        f"belongs to declaration {owner.id}"
                    )
                declaration.confirmation_number = confirmation.confirmation_number
                declaration.confirmation_date = confirmation.confirmation_date
                declaration.updated_at = now
            if declaration.receipt_rejected_at is not None:
                declaration.receipt_rejected_at = None
                declaration.record_error(None, None)
                declaration.updated_at = now
            uow.repositories.confirmations.add(confirmation)
            uow.commit()

        log.info(
            f"Stored receipt {confirmation.confirmation_number} for declaration {declaration_id}"
            f" with {len(report.warnings)} warning(s)"
        )
        return ConfirmationOutcome(report=report, confirmation=confirmation, stored=True)

    @staticmethod
    def _build_confirmation(
        receipt: ReceiptDocument,
        declaration_id: UUID,
        *,
        now: datetime,
    ) -> Confirmation:
        # validation guarantees presence and format of every field read here
        return Confirmation(
            confirmation_number=receipt.confirmation_number or "",
            confirmation_date=parse_confirmation_date(receipt.confirmation_date or ""),
            taxpayer_id=receipt.taxpayer_id or "",
            tax_office_code=receipt.tax_office_code or "",
            form_code=receipt.form_code or "",
            period=receipt.period or "",
            status_code=receipt.status_code or "",
            raw_document=receipt.raw_document,
            declaration_id=declaration_id,
            has_signature=receipt.has_signature,
            received_at=now,
        )

    def stored_for(self, declaration_id: UUID) -> list[Confirmation]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.confirmations.list_for_declaration(declaration_id)
