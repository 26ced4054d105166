"""Authority receipts (confirmations): parsing and validation."""

from __future__ import annotations

import re
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final, Protocol

from lxml import etree

from efiling.domain.confirmation import parse_confirmation_date
from efiling.domain.errors import (
    DeclarationValidationError,
    SignatureError,
    UnverifiableSignatureError,
)
from efiling.domain.model import (
    ReceiptDocument,
    ReportingPeriod,
    Severity,
    ValidationIssue,
    ValidationReport,
)

from .schemas import SIGNATURE_FRAGMENT, SUPPORTED_FORM_CODES
from .xml import child_text, find_child, local_name, parse_xml

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.domain.model import Declaration

log = getLogger(__name__)

RECEIPT_ROOT: Final[str] = "DeklaracjaPotwierdzenie"
CONFIRMATION_NUMBER_PATTERN: Final = re.compile(r"^[A-Z0-9]{32}$")
TAXPAYER_ID_PATTERN: Final = re.compile(r"^(\d{10}|\d{11})$")
TAX_OFFICE_PATTERN: Final = re.compile(r"^\d{4}$")
DEFAULT_DATE_WINDOW: Final = timedelta(days=30)

CONFIRMATION_NUMBER_INVALID = "CONFIRMATION_NUMBER_INVALID"
CONFIRMATION_DATE_INVALID = "CONFIRMATION_DATE_INVALID"
CONFIRMATION_DATE_UNUSUAL = "CONFIRMATION_DATE_UNUSUAL"
TAXPAYER_ID_INVALID = "TAXPAYER_ID_INVALID"
TAX_OFFICE_INVALID = "TAX_OFFICE_INVALID"
FORM_CODE_UNSUPPORTED = "FORM_CODE_UNSUPPORTED"
FORM_CODE_MISMATCH = "FORM_CODE_MISMATCH"
PERIOD_MISMATCH = "PERIOD_MISMATCH"
SIGNATURE_MISSING = "SIGNATURE_MISSING"
SIGNATURE_INVALID = "SIGNATURE_INVALID"
SIGNATURE_NOT_VERIFIED = "SIGNATURE_NOT_VERIFIED"


class ReceiptSignatureVerifier(Protocol):
    """Checks the signature embedded in a receipt; raises ``SignatureError`` if it is bad."""

    def __call__(self, document: str) -> object: ...


def is_valid_confirmation_number(value: str | None) -> bool:
    return value is not None and CONFIRMATION_NUMBER_PATTERN.match(value) is not None


def parse_receipt(document: str) -> ReceiptDocument:
    """Read the header and confirmation blocks of a receipt.

    Only the document shape is checked here; field content is left to
    ``validate_receipt``.
    """

    try:
        root = parse_xml(document)
    except etree.XMLSyntaxError as exc:
        raise DeclarationValidationError(f"Receipt is not well-formed XML: {exc}") from exc
    if local_name(root) != RECEIPT_ROOT:
        raise DeclarationValidationError(
            f"Receipt root must be {RECEIPT_ROOT}, got {local_name(root)}"
        )
    header = find_child(root, "Naglowek")
    confirmation = find_child(root, "Potwierdzenie")
    if header is None or confirmation is None:
        raise DeclarationValidationError("Receipt lacks its header or confirmation block")

    return ReceiptDocument(
        form_code=child_text(header, "KodFormularza"),
        tax_office_code=child_text(header, "KodUrzedu"),
        period=child_text(header, "Okres"),
        taxpayer_id=child_text(header, "Podmiot", "NIP") or child_text(header, "Podmiot", "PESEL"),
        confirmation_number=child_text(confirmation, "NumerPotwierdzenia"),
        confirmation_date=child_text(confirmation, "DataPotwierdzenia"),
        status_code=child_text(confirmation, "Status"),
        raw_document=document,
        has_signature=find_child(root, SIGNATURE_FRAGMENT) is not None,
        amount=child_text(header, "Kwota"),
    )


def validate_receipt(
    receipt: ReceiptDocument,
    declaration: Declaration,
    *,
    now: datetime,
    verifier: ReceiptSignatureVerifier | None = None,
    date_window: timedelta = DEFAULT_DATE_WINDOW,
) -> ValidationReport:
    """Check a parsed receipt on its own and against the declaration it confirms."""

    issues: list[ValidationIssue] = []

    def error(code: str, message: str) -> None:
        issues.append(ValidationIssue(code=code, message=message))

    def warning(code: str, message: str) -> None:
        issues.append(ValidationIssue(code=code, message=message, severity=Severity.WARNING))

    if not is_valid_confirmation_number(receipt.confirmation_number):
        error(
            CONFIRMATION_NUMBER_INVALID,
            f"Confirmation number {receipt.confirmation_number!r} must be "
            "32 uppercase letters or digits",
        )

    if receipt.confirmation_date is None:
        error(CONFIRMATION_DATE_INVALID, "Confirmation date is missing")
    else:
        try:
            confirmed_at = parse_confirmation_date(receipt.confirmation_date)
        except ValueError:
            error(
                CONFIRMATION_DATE_INVALID,
                f"Confirmation date {receipt.confirmation_date!r} cannot be parsed",
            )
        else:
            if abs(now - confirmed_at) > date_window:
                warning(
                    CONFIRMATION_DATE_UNUSUAL,
                    f"Confirmation date {receipt.confirmation_date} is more than "
                    f"{date_window.days} days from now",
                )

    if receipt.taxpayer_id is None or not TAXPAYER_ID_PATTERN.match(receipt.taxpayer_id):
        error(TAXPAYER_ID_INVALID, f"Taxpayer id {receipt.taxpayer_id!r} must be 10 or 11 digits")

    if receipt.tax_office_code is None or not TAX_OFFICE_PATTERN.match(receipt.tax_office_code):
        error(TAX_OFFICE_INVALID, f"Tax office code {receipt.tax_office_code!r} must be 4 digits")

    if receipt.form_code not in SUPPORTED_FORM_CODES:
        error(FORM_CODE_UNSUPPORTED, f"Form code {receipt.form_code!r} is not supported")
    elif receipt.form_code != declaration.form_code:
        error(
            FORM_CODE_MISMATCH,
            f"Receipt is for {receipt.form_code}, declaration {declaration.id} "
            f"is {declaration.form_code}",
        )

    if _normalized_period(receipt.period) != declaration.period:
        warning(
            PERIOD_MISMATCH,
            f"Receipt period {receipt.period!r} differs from declaration period "
            f"{declaration.period}",
        )

    if not receipt.has_signature:
        warning(SIGNATURE_MISSING, "Receipt carries no signature")
    elif verifier is None:
        warning(SIGNATURE_NOT_VERIFIED, "Receipt signature present but no verifier configured")
    else:
        try:
            verifier(receipt.raw_document)
        except UnverifiableSignatureError as exc:
            warning(SIGNATURE_NOT_VERIFIED, f"Receipt signature was not verified: {exc}")
        except SignatureError as exc:
            error(SIGNATURE_INVALID, f"Receipt signature is invalid: {exc}")

    return ValidationReport.from_issues(issues)


def _normalized_period(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return str(ReportingPeriod.parse(value))
    except ValueError:
        return value


class ReceiptValidator:
    """``ReceiptInspector`` built on ``parse_receipt`` and ``validate_receipt``."""

    def __init__(
        self,
        *,
        verifier: ReceiptSignatureVerifier | None = None,
        date_window: timedelta = DEFAULT_DATE_WINDOW,
    ) -> None:
        self._verifier = verifier
        self._date_window = date_window

    def parse(self, document: str) -> ReceiptDocument:
        return parse_receipt(document)

    def validate(
        self,
        receipt: ReceiptDocument,
        declaration: Declaration,
        *,
        now: datetime,
    ) -> ValidationReport:
        report = validate_receipt(
            receipt,
            declaration,
            now=now,
            verifier=self._verifier,
            date_window=self._date_window,
        )
        if not report.is_valid:
            log.info(
                f"Receipt {receipt.confirmation_number} failed validation with "
                f"{len(report.errors)} error(s)"
            )
        return report
