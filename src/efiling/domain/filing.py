"""Filing workflow: render, validate, sign and submit one declaration."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from efiling.domain.clock import system_clock
from efiling.domain.errors import (
    DeclarationNotFoundError,
    DeclarationValidationError,
    FilingError,
    InvalidTransitionError,
    RenderError,
    SignatureError,
)
from efiling.domain.model import (
    Declaration,
    DeclarationStatus,
    ReportingPeriod,
    SignatureRecord,
    StatusChange,
    TransitionTrigger,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from efiling.domain.clock import Clock
    from efiling.domain.model import (
        CalculationData,
        DeclarationType,
        EntityInfo,
        ValidationReport,
        Variant,
    )
    from efiling.domain.ports.documents import DocumentRenderer, DocumentValidator
    from efiling.domain.ports.signing import DocumentSigner, SigningConfig, SigningResult
    from efiling.domain.ports.transport import DeclarationGateway
    from efiling.domain.ports.unit_of_work import FilingUnitOfWork
    from efiling.domain.tracking import StatusTracker

log = getLogger(__name__)


def _normalized_period(value: str) -> str:
    try:
        return str(ReportingPeriod.parse(value))
    except ValueError as exc:
        raise RenderError(str(exc)) from exc


class FilingService:
    """Sequence the synchronous part of the pipeline for a single declaration.

    Validation and signature problems surface here, before any network call.
    Transport failures are handed to the status tracker, which classifies them
    and commits the resulting state.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], FilingUnitOfWork],
        renderer: DocumentRenderer,
        validator: DocumentValidator,
        signer: DocumentSigner,
        gateway: DeclarationGateway,
        tracker: StatusTracker,
        clock: Clock = system_clock,
        lock_timeout: float = 30.0,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._renderer = renderer
        self._validator = validator
        self._signer = signer
        self._gateway = gateway
        self._tracker = tracker
        self._clock = clock
        self._lock_timeout = lock_timeout

    def create(
        self,
        declaration_type: DeclarationType,
        period: str,
        variant: Variant,
    ) -> Declaration:
        try:
            declaration = Declaration(
                declaration_type=declaration_type, period=period, variant=variant
            )
        except ValueError as exc:
            raise DeclarationValidationError(str(exc)) from exc
        now = self._clock()
        declaration.created_at = now
        declaration.updated_at = now
        with self._unit_of_work_factory() as uow:
            uow.repositories.declarations.add(declaration)
            uow.repositories.status_changes.add(
                StatusChange(
                    declaration_id=declaration.id,
                    old_status=None,
                    new_status=DeclarationStatus.DRAFT,
                    trigger=TransitionTrigger.CALLER,
                    reason="declaration created",
                    created_at=now,
                )
            )
            uow.commit()
        log.info(
            f"Created {declaration.form_code} declaration {declaration.id} "
            f"for period {declaration.period}"
        )
        return declaration

    def render(
        self,
        declaration_id: UUID,
        calculation: CalculationData,
        entity: EntityInfo,
    ) -> Declaration:
        with self._tracker.locks.hold(declaration_id, timeout=self._lock_timeout):
            with self._unit_of_work_factory() as uow:
                declaration = self._load(uow, declaration_id)
                if calculation.declaration_type is not declaration.declaration_type:
                    raise RenderError(
                        f"Calculation is for {calculation.declaration_type}, "
                        f"declaration is {declaration.declaration_type}"
                    )
                if _normalized_period(calculation.period) != declaration.period:
                    raise RenderError(
                        f"Calculation period {calculation.period} does not match "
                        f"declaration period {declaration.period}"
                    )
                document = self._renderer(calculation, entity, declaration.variant)
                declaration.attach_document(document, now=self._clock())
                uow.commit()
        log.info(f"Rendered declaration {declaration_id} ({len(document)} characters)")
        return declaration

    def validate(self, declaration_id: UUID) -> ValidationReport:
        """Validate the rendered document and move the declaration to ``ready`` if it passes."""

        with self._unit_of_work_factory() as uow:
            declaration = self._load(uow, declaration_id)
            document = declaration.document
            variant = declaration.variant
            status = declaration.status
        if document is None:
            raise DeclarationValidationError(f"Declaration {declaration_id} has not been rendered")

        report = self._validator(document, variant)
        for warning in report.warnings:
            log.warning(f"Declaration {declaration_id}: {warning}")
        if not report.is_valid:
            log.error(
                f"Declaration {declaration_id} failed validation with "
                f"{len(report.errors)} error(s)"
            )
            return report
        if status is DeclarationStatus.DRAFT:
            self._tracker.mark_ready(declaration_id)
        return report

    def sign(self, declaration_id: UUID, config: SigningConfig) -> SigningResult:
        with self._tracker.locks.hold(declaration_id, timeout=self._lock_timeout):
            with self._unit_of_work_factory() as uow:
                declaration = self._load(uow, declaration_id)
                if declaration.status is not DeclarationStatus.READY:
                    raise InvalidTransitionError(
                        f"Declaration {declaration_id} is {declaration.status}; "
                        "only validated (ready) declarations can be signed"
                    )
                if declaration.document is None:
                    raise SignatureError(f"Declaration {declaration_id} has no document to sign")

                result = self._signer.sign(declaration.document, config)
                declaration.attach_signed_document(
                    result.signed_document, result.signature_type, now=result.signing_time
                )
                uow.repositories.signatures.add(
                    SignatureRecord(
                        declaration_id=declaration.id,
                        signature_id=result.signature_id,
                        signature_type=result.signature_type,
                        algorithm=result.algorithm,
                        content_hash=result.content_hash,
                        signature_value=result.signature_value,
                        signer=result.signer,
                        validation_status=result.validation_status,
                        created_at=result.signing_time,
                    )
                )
                uow.commit()
        log.info(
            f"Signed declaration {declaration_id} with {result.signature_type} "
            f"(signature {result.signature_id})"
        )
        return result

    def submit(self, declaration_id: UUID, *, signing: SigningResult | None = None) -> Declaration:
        """Send the signed document; the tracker records either outcome."""

        with self._tracker.locks.hold(declaration_id, timeout=self._lock_timeout):
            with self._unit_of_work_factory() as uow:
                declaration = self._load(uow, declaration_id)
                if declaration.status is not DeclarationStatus.READY:
                    raise InvalidTransitionError(
                        f"Declaration {declaration_id} is {declaration.status}, not ready"
                    )
                if not declaration.is_signed or declaration.document is None:
                    raise SignatureError(f"Declaration {declaration_id} must be signed first")
                document = declaration.document

            certificate = signing.certificate_info if signing is not None else None
            log.info(f"Submitting declaration {declaration_id}")
            try:
                receipt = self._gateway.submit(document, certificate)
            except FilingError as exc:
                log.warning(f"Submission of {declaration_id} failed: {exc}")
                return self._tracker.record_failure(
                    declaration_id, exc, trigger=TransitionTrigger.TRANSPORT
                )

            try:
                declaration = self._tracker.mark_submitted(declaration_id, receipt)
            except FilingError as exc:
                # the authority already holds the document
                return self._tracker.record_failure(
                    declaration_id,
                    exc,
                    trigger=TransitionTrigger.TRANSPORT,
                    reason=f"submission {receipt.confirmation_number} could not be recorded",
                )
            follow_up = self._tracker.receipt_follow_up(
                declaration_id, receipt, trigger=TransitionTrigger.TRANSPORT
            )
            if follow_up is not None:
                declaration = self._tracker.transition(follow_up) or declaration
        return declaration

    def file(
        self,
        declaration_id: UUID,
        calculation: CalculationData,
        entity: EntityInfo,
        signing: SigningConfig,
    ) -> Declaration:
        """Render, validate, sign and submit in one go; raises on validation errors."""

        self.render(declaration_id, calculation, entity)
        report = self.validate(declaration_id)
        if not report.is_valid:
            raise DeclarationValidationError(
                f"Declaration {declaration_id} is invalid: "
                + "; ".join(str(issue) for issue in report.errors),
                report=report,
            )
        result = self.sign(declaration_id, signing)
        return self.submit(declaration_id, signing=result)

    def reset_to_draft(self, declaration_id: UUID) -> Declaration:
        return self._tracker.reset_to_draft(declaration_id, reason="reopened for editing")

    def get(self, declaration_id: UUID) -> Declaration:
        with self._unit_of_work_factory() as uow:
            return self._load(uow, declaration_id)

    def signatures(self, declaration_id: UUID) -> list[SignatureRecord]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.signatures.list_for_declaration(declaration_id)

    @staticmethod
    def _load(uow: FilingUnitOfWork, declaration_id: UUID) -> Declaration:
        declaration = uow.repositories.declarations.get(declaration_id)
        if declaration is None:
            raise DeclarationNotFoundError(declaration_id)
        return declaration
