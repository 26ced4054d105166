"""The declaration aggregate."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from efiling.domain.errors import DocumentFrozenError

from .entity import Entity, utcnow
from .enums import DeclarationStatus, DeclarationType, ErrorCategory, SignatureType, Variant
from .period import ReportingPeriod

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


SUPPORTED_VARIANTS: Final[Mapping[DeclarationType, frozenset[Variant]]] = MappingProxyType(
    {
        DeclarationType.JPK_V7: frozenset({Variant.MONTHLY, Variant.QUARTERLY}),
        DeclarationType.VAT_7: frozenset({Variant.MONTHLY}),
        DeclarationType.PIT_36: frozenset({Variant.ANNUAL}),
        DeclarationType.PIT_36L: frozenset({Variant.ANNUAL}),
        DeclarationType.CIT_8: frozenset({Variant.ANNUAL}),
    }
)


def expected_form_code(declaration_type: DeclarationType, variant: Variant) -> str:
    """Return the form code the authority uses for a declaration type and variant."""

    if variant not in SUPPORTED_VARIANTS[declaration_type]:
        raise ValueError(f"{declaration_type} declarations cannot be filed {variant}")
    if declaration_type is DeclarationType.JPK_V7:
        return "JPK_V7M" if variant is Variant.MONTHLY else "JPK_V7K"
    return declaration_type.value


@dataclass(eq=False, kw_only=True)
class Declaration(Entity):
    """A periodic tax filing and everything needed to track it to an outcome."""

    declaration_type: DeclarationType
    period: str
    variant: Variant
    status: DeclarationStatus = DeclarationStatus.DRAFT
    document: str | None = None
    signature_type: SignatureType | None = None
    signed_at: datetime | None = None
    confirmation_number: str | None = None
    confirmation_date: datetime | None = None
    retry_count: int = 0
    next_retry_at: datetime | None = None
    last_error_category: ErrorCategory | None = None
    last_error_message: str | None = None
    receipt_rejected_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    submitted_at: datetime | None = None
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        # normalise early so a bad period never reaches the database
        period = ReportingPeriod.parse(self.period)
        expected_form_code(self.declaration_type, self.variant)
        period.version_token(self.variant)
        self.period = str(period)

    @property
    def reporting_period(self) -> ReportingPeriod:
        return ReportingPeriod.parse(self.period)

    @property
    def form_code(self) -> str:
        return expected_form_code(self.declaration_type, self.variant)

    @property
    def is_signed(self) -> bool:
        return self.signature_type is not None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def attach_document(self, document: str, *, now: datetime | None = None) -> None:
        """Store a freshly rendered document; only drafts accept new content."""

        if self.status is not DeclarationStatus.DRAFT:
            raise DocumentFrozenError(
                f"Declaration {self.id} is {self.status}; reset it to draft before re-rendering"
            )
        self.document = document
        self.discard_signature()
        self.updated_at = now or utcnow()

    def attach_signed_document(
        self,
        document: str,
        signature_type: SignatureType,
        *,
        now: datetime | None = None,
    ) -> None:
        if self.status is not DeclarationStatus.READY:
            raise DocumentFrozenError(
                f"Declaration {self.id} is {self.status}; only ready declarations can be signed"
            )
        if self.document is None:
            raise DocumentFrozenError(f"Declaration {self.id} has no rendered document")
        timestamp = now or utcnow()
        self.document = document
        self.signature_type = signature_type
        self.signed_at = timestamp
        self.updated_at = timestamp

    def discard_signature(self) -> None:
        self.signature_type = None
        self.signed_at = None

    def record_error(self, category: ErrorCategory | None, message: str | None) -> None:
        self.last_error_category = category
        self.last_error_message = message

    def reject_receipt(self, message: str, *, now: datetime) -> None:
        """Note a fetched receipt that failed validation, for manual review."""

        self.receipt_rejected_at = now
        self.record_error(ErrorCategory.VALIDATION, message)
        self.updated_at = now

    def clear_retry_state(self) -> None:
        self.retry_count = 0
        self.next_retry_at = None
        self.record_error(None, None)
