"""Three-pass document validation: structure, schema, business rules.

Each pass adds issues to the same report. Malformed XML or an unknown root
ends validation after the structural pass.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING, Final

from lxml import etree

from efiling.domain.checksums import is_valid_nip
from efiling.domain.clock import system_clock
from efiling.domain.model import Severity, ValidationIssue, ValidationReport

from .amounts import parse_amount
from .schemas import KNOWN_ROOTS, DocumentSchema, schema_for_form_code, schemas_for_root
from .xml import (
    XML_ENCODING,
    child_text,
    declared_encoding,
    find_child,
    iter_children,
    local_name,
    namespace_of,
    parse_xml,
)

if TYPE_CHECKING:
    from efiling.domain.clock import Clock
    from efiling.domain.model import Variant

log = getLogger(__name__)

XML_MALFORMED = "XML_MALFORMED"
ENCODING_MISSING = "ENCODING_MISSING"
ENCODING_INVALID = "ENCODING_INVALID"
NAMESPACE_MISSING = "NAMESPACE_MISSING"
NAMESPACE_INVALID = "NAMESPACE_INVALID"
ROOT_ELEMENT_INVALID = "ROOT_ELEMENT_INVALID"
FORM_CODE_INVALID = "FORM_CODE_INVALID"
VARIANT_MISMATCH = "VARIANT_MISMATCH"
SECTION_MISSING = "SECTION_MISSING"
OPTIONAL_SECTION_MISSING = "OPTIONAL_SECTION_MISSING"
FIELD_MISSING = "FIELD_MISSING"
VAT_CALCULATION_MISMATCH = "VAT_CALCULATION_MISMATCH"
LEDGER_CONTROL_MISMATCH = "LEDGER_CONTROL_MISMATCH"
TAXPAYER_ID_INVALID = "TAXPAYER_ID_INVALID"
AMOUNT_INVALID = "AMOUNT_INVALID"
NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
DATE_INVALID = "DATE_INVALID"
DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
LEDGER_DATE_AFTER_CREATION = "LEDGER_DATE_AFTER_CREATION"

AMOUNT_EPSILON: Final = Decimal("0.01")
DEFAULT_DATE_WINDOW: Final = timedelta(days=30)

_HEADER_FIELDS: Final[tuple[str, ...]] = ("CelZlozenia", "KodUrzedu", "Rok", "Version")
_SUBJECT_FIELDS: Final[tuple[str, ...]] = ("NIP", "PelnaNazwa")
_LEDGER_ROWS: Final[tuple[tuple[str, str, str, str, str], ...]] = (
    # row, date field, tax field, control block, row count field
    ("SprzedazWiersz", "DataWystawienia", "K_20", "SprzedazCtrl", "LiczbaWierszySprzedazy"),
    ("ZakupWiersz", "DataZakupu", "K_43", "ZakupCtrl", "LiczbaWierszyZakupow"),
)
_CONTROL_SUMS: Final[dict[str, str]] = {
    "SprzedazCtrl": "PodatekNalezny",
    "ZakupCtrl": "PodatekNaliczony",
}


class _Issues:
    def __init__(self) -> None:
        self.items: list[ValidationIssue] = []

    def error(self, code: str, message: str, path: str | None = None) -> None:
        self.items.append(ValidationIssue(code=code, message=message, path=path))

    def warning(self, code: str, message: str, path: str | None = None) -> None:
        self.items.append(
            ValidationIssue(code=code, message=message, severity=Severity.WARNING, path=path)
        )

    def report(self) -> ValidationReport:
        return ValidationReport.from_issues(self.items)


class DocumentValidator:
    """Validate rendered declaration documents.

    The clock feeds the plausibility window for document dates; inject a fixed
    one in tests.
    """

    def __init__(
        self,
        *,
        clock: Clock = system_clock,
        date_window: timedelta = DEFAULT_DATE_WINDOW,
    ) -> None:
        self._clock = clock
        self._date_window = date_window

    def __call__(self, document: str, variant: Variant) -> ValidationReport:
        issues = _Issues()
        root = self._structural(document, issues)
        schema = self._resolve_schema(root, variant, issues) if root is not None else None
        if root is not None and schema is not None:
            self._schema(root, schema, issues)
            self._business_rules(root, schema, issues)
        report = issues.report()
        log.debug(
            f"Validated document: {len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
        return report

    # structural pass

    def _structural(self, document: str, issues: _Issues) -> etree._Element | None:
        encoding = declared_encoding(document)
        if encoding is None:
            issues.error(ENCODING_MISSING, "XML declaration with an encoding is required")
        elif encoding.upper() != XML_ENCODING:
            issues.error(ENCODING_INVALID, f"Encoding must be {XML_ENCODING}, got {encoding}")

        try:
            root = parse_xml(document)
        except etree.XMLSyntaxError as exc:
            issues.error(XML_MALFORMED, f"Document is not well-formed XML: {exc}")
            return None

        namespace = namespace_of(root)
        name = local_name(root)
        if namespace is None:
            issues.error(NAMESPACE_MISSING, f"Root element {name} declares no namespace", name)
            return None
        known_roots = {known_root for _, known_root in KNOWN_ROOTS}
        if name not in known_roots:
            issues.error(ROOT_ELEMENT_INVALID, f"Unknown root element {name}", name)
            return None
        if (namespace, name) not in KNOWN_ROOTS:
            issues.error(NAMESPACE_INVALID, f"Unexpected namespace {namespace} for {name}", name)
            return None
        return root

    def _resolve_schema(
        self,
        root: etree._Element,
        variant: Variant,
        issues: _Issues,
    ) -> DocumentSchema | None:
        candidates = list(schemas_for_root(namespace_of(root), local_name(root)))
        tag = candidates[0].form_code_tag
        form_code = child_text(root, "Naglowek", tag)
        schema = schema_for_form_code(form_code)
        if schema is None or schema not in candidates:
            issues.error(
                FORM_CODE_INVALID, f"Unsupported form code {form_code!r}", f"Naglowek/{tag}"
            )
            return None
        if schema.variant is not variant:
            issues.error(
                VARIANT_MISMATCH,
                f"{schema.form_code} is a {schema.variant} form, validated as {variant}",
                f"Naglowek/{tag}",
            )
        return schema

    # schema pass

    def _schema(self, root: etree._Element, schema: DocumentSchema, issues: _Issues) -> None:
        header = find_child(root, "Naglowek")
        if header is None:
            issues.error(SECTION_MISSING, "Header section is required", "Naglowek")
        else:
            for field in (schema.creation_date_tag, "NazwaSystemu", *_HEADER_FIELDS):
                if child_text(header, field) is None:
                    issues.error(FIELD_MISSING, f"{field} is required", f"Naglowek/{field}")

        subject = find_child(root, "Podmiot1")
        if subject is None:
            issues.error(SECTION_MISSING, "Taxpayer section is required", "Podmiot1")
        else:
            for field in _SUBJECT_FIELDS:
                if child_text(subject, field) is None:
                    issues.error(FIELD_MISSING, f"{field} is required", f"Podmiot1/{field}")
            if find_child(subject, "Adres") is None:
                issues.warning(OPTIONAL_SECTION_MISSING, "No address given", "Podmiot1/Adres")

        positions = _positions_block(root, schema)
        path = "/".join(schema.positions_path)
        if positions is None:
            if schema.declaration_section_required:
                issues.error(SECTION_MISSING, "Declaration positions are required", path)
            else:
                issues.warning(OPTIONAL_SECTION_MISSING, "No declaration positions", path)
        else:
            for name in schema.required_positions:
                if child_text(positions, name) is None:
                    issues.error(FIELD_MISSING, f"{name} is required", f"{path}/{name}")

        if schema.ledger:
            ledger = find_child(root, "Ewidencja")
            if ledger is None:
                issues.error(SECTION_MISSING, "Ledger section is required", "Ewidencja")
                return
            for row_tag, *_ in _LEDGER_ROWS:
                if find_child(ledger, row_tag) is None:
                    issues.warning(
                        OPTIONAL_SECTION_MISSING, f"Ledger has no {row_tag} rows", "Ewidencja"
                    )

    # business rule pass

    def _business_rules(
        self,
        root: etree._Element,
        schema: DocumentSchema,
        issues: _Issues,
    ) -> None:
        taxpayer_id = child_text(root, "Podmiot1", "NIP")
        if taxpayer_id is not None and not is_valid_nip(taxpayer_id):
            issues.error(
                TAXPAYER_ID_INVALID,
                f"Taxpayer id {taxpayer_id} fails the checksum",
                "Podmiot1/NIP",
            )

        positions = _positions_block(root, schema)
        if positions is not None:
            amounts = _read_amounts(positions, "/".join(schema.positions_path), issues)
            self._reconcile(amounts, schema, issues)

        created = self._creation_date(root, schema, issues)
        if schema.ledger:
            ledger = find_child(root, "Ewidencja")
            if ledger is not None:
                self._ledger_rules(ledger, created, issues)

    def _reconcile(
        self,
        amounts: dict[str, Decimal],
        schema: DocumentSchema,
        issues: _Issues,
    ) -> None:
        needed = (
            schema.tax_position,
            schema.credit_position,
            schema.due_position,
            schema.refund_position,
        )
        if any(name not in amounts for name in needed):
            return
        tax, credit, due, refund = (amounts[name] for name in needed)
        expected_due = max(tax - credit, Decimal(0))
        expected_refund = max(credit - tax, Decimal(0))
        if abs(due - expected_due) > AMOUNT_EPSILON:
            issues.error(
                VAT_CALCULATION_MISMATCH,
                f"Amount due {due} does not match {schema.tax_position} {tax} minus "
                f"{schema.credit_position} {credit} (expected {expected_due})",
                schema.due_position,
            )
        if abs(refund - expected_refund) > AMOUNT_EPSILON:
            issues.error(
                VAT_CALCULATION_MISMATCH,
                f"Refund {refund} does not match {schema.credit_position} {credit} minus "
                f"{schema.tax_position} {tax} (expected {expected_refund})",
                schema.refund_position,
            )
        for name in schema.mirror_positions:
            if name in amounts and abs(amounts[name] - due) > AMOUNT_EPSILON:
                issues.error(
                    VAT_CALCULATION_MISMATCH,
                    f"{name} {amounts[name]} must repeat the amount due {due}",
                    name,
                )

    def _creation_date(
        self,
        root: etree._Element,
        schema: DocumentSchema,
        issues: _Issues,
    ) -> date | None:
        path = f"Naglowek/{schema.creation_date_tag}"
        text = child_text(root, "Naglowek", schema.creation_date_tag)
        if text is None:
            return None
        created = _parse_date(text)
        if created is None:
            issues.error(DATE_INVALID, f"Creation date {text!r} is not YYYY-MM-DD", path)
            return None
        today = self._clock().date()
        if abs(created - today) > self._date_window:
            issues.warning(
                DATE_OUT_OF_RANGE,
                f"Creation date {created} is more than {self._date_window.days} days from today",
                path,
            )
        return created

    def _ledger_rules(
        self,
        ledger: etree._Element,
        created: date | None,
        issues: _Issues,
    ) -> None:
        for row_tag, date_tag, tax_tag, control_tag, count_tag in _LEDGER_ROWS:
            rows = list(iter_children(ledger, row_tag))
            total = Decimal(0)
            for index, row in enumerate(rows, start=1):
                path = f"Ewidencja/{row_tag}[{index}]"
                amounts = _read_amounts(row, path, issues, prefix="K_")
                total += amounts.get(tax_tag, Decimal(0))
                text = child_text(row, date_tag)
                row_date = _parse_date(text) if text is not None else None
                if row_date is None:
                    issues.error(DATE_INVALID, f"{date_tag} {text!r} is not YYYY-MM-DD", path)
                elif created is not None and row_date > created:
                    issues.warning(
                        LEDGER_DATE_AFTER_CREATION,
                        f"{date_tag} {row_date} is after the creation date {created}",
                        path,
                    )

            control = find_child(ledger, control_tag)
            if control is None:
                if rows:
                    issues.error(SECTION_MISSING, f"{control_tag} is required", "Ewidencja")
                continue
            count = child_text(control, count_tag)
            if count != str(len(rows)):
                issues.error(
                    LEDGER_CONTROL_MISMATCH,
                    f"{count_tag} is {count}, ledger has {len(rows)} row(s)",
                    f"Ewidencja/{control_tag}",
                )
            declared_sum = parse_amount(child_text(control, _CONTROL_SUMS[control_tag]))
            if declared_sum is None or abs(declared_sum - total) > AMOUNT_EPSILON:
                issues.error(
                    LEDGER_CONTROL_MISMATCH,
                    f"{_CONTROL_SUMS[control_tag]} is {declared_sum}, rows add up to {total}",
                    f"Ewidencja/{control_tag}",
                )


def _positions_block(root: etree._Element, schema: DocumentSchema) -> etree._Element | None:
    node: etree._Element | None = root
    for tag in schema.positions_path:
        if node is None:
            return None
        node = find_child(node, tag)
    return node


def _read_amounts(
    parent: etree._Element,
    path: str,
    issues: _Issues,
    *,
    prefix: str = "P_",
) -> dict[str, Decimal]:
    amounts: dict[str, Decimal] = {}
    for child in parent:
        if not isinstance(child.tag, str):
            continue
        name = local_name(child)
        if not name.startswith(prefix):
            continue
        location = f"{path}/{name}"
        amount = parse_amount(child.text)
        if amount is None:
            issues.error(AMOUNT_INVALID, f"{name} is not a number: {child.text!r}", location)
            continue
        if amount < 0:
            issues.error(NEGATIVE_AMOUNT, f"{name} must not be negative, got {amount}", location)
        amounts[name] = amount
    return amounts


def _parse_date(text: str) -> date | None:
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def validate(document: str, variant: Variant, *, clock: Clock = system_clock) -> ValidationReport:
    return DocumentValidator(clock=clock)(document, variant)
