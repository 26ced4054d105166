"""Render calculation data into the authority's XML formats."""

from __future__ import annotations

import re
from datetime import date, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from lxml import etree

from efiling.domain.checksums import normalize_taxpayer_id
from efiling.domain.errors import RenderError
from efiling.domain.model import ReportingPeriod, Variant

from .amounts import round_amount
from .schemas import JPK_ROOT, JPK_SCHEMA_VERSION, DocumentSchema, schema_for
from .xml import qn, serialize, sub_element

if TYPE_CHECKING:
    from efiling.domain.model import Address, CalculationData, EntityInfo, LedgerRow

log = getLogger(__name__)

_TAX_OFFICE_PATTERN: Final = re.compile(r"^\d{4}$")
_LEDGER_FORM_CODE: Final[str] = "VAT"
_LEDGER_FORM_VARIANT: Final[str] = "1"
_DECLARATION_FORM_CODE: Final[str] = "VAT-7"


def render(calculation: CalculationData, entity: EntityInfo, variant: Variant) -> str:
    """Build the declaration document for ``calculation``.

    Identical inputs always give byte-identical output. Missing or malformed
    mandatory inputs raise ``RenderError`` instead of being defaulted.
    """

    schema = schema_for(calculation.declaration_type, variant)
    try:
        period = ReportingPeriod.parse(calculation.period)
        version = period.version_token(variant)
    except ValueError as exc:
        raise RenderError(str(exc)) from exc
    prepared_on = _require_date(calculation.prepared_on, field="prepared_on")
    _require_text(calculation.system_name, field="system_name")
    if (calculation.sales or calculation.purchases) and not schema.ledger:
        raise RenderError(f"{schema.form_code} has no ledger section for sales or purchases")

    positions = _positions(calculation, schema)
    try:
        root = etree.Element(qn(schema.namespace, schema.root), nsmap={None: schema.namespace})
        _header(root, schema, calculation, entity, period, variant, prepared_on, version)
        _subject(root, entity)
        if schema.root == JPK_ROOT:
            declaration = sub_element(root, "Deklaracja")
            declaration_header = sub_element(declaration, "Naglowek")
            sub_element(declaration_header, "KodFormularzaDekl", _DECLARATION_FORM_CODE)
            sub_element(declaration_header, "WariantFormularzaDekl", schema.form_variant)
            sub_element(declaration_header, "Version", version)
            _position_block(declaration, positions)
            _ledger(root, calculation, version, prepared_on)
        else:
            _position_block(root, positions)
    except ValueError as exc:
        # lxml refuses control characters and similar non-XML text
        raise RenderError(f"Cannot render {schema.form_code}: {exc}") from exc

    document = serialize(root)
    log.debug(f"Rendered {schema.form_code} for {period} ({len(document)} characters)")
    return document


def _header(
    root: etree._Element,
    schema: DocumentSchema,
    calculation: CalculationData,
    entity: EntityInfo,
    period: ReportingPeriod,
    variant: Variant,
    prepared_on: date,
    version: str,
) -> None:
    tax_office = _require_text(entity.tax_office_code, field="tax_office_code")
    if not _TAX_OFFICE_PATTERN.match(tax_office):
        raise RenderError(f"tax_office_code must be four digits, got {tax_office!r}")

    header = sub_element(root, "Naglowek")
    sub_element(header, schema.form_code_tag, schema.form_code)
    sub_element(
        header,
        "WariantFormularza" if schema.root == JPK_ROOT else "WariantFormularzaDekl",
        "1" if schema.root == JPK_ROOT else schema.form_variant,
    )
    sub_element(header, "CelZlozenia", "2" if calculation.correction else "1")
    sub_element(header, schema.creation_date_tag, prepared_on.isoformat())
    sub_element(header, "NazwaSystemu", calculation.system_name.strip())
    sub_element(header, "KodUrzedu", tax_office)
    sub_element(header, "Rok", f"{period.year:04d}")
    if variant is Variant.MONTHLY:
        sub_element(header, "Miesiac", f"{period.month:02d}")
    elif variant is Variant.QUARTERLY:
        sub_element(header, "Kwartal", period.unit(variant))
    sub_element(header, "Version", version)
    if schema.root == JPK_ROOT:
        sub_element(header, "SchemaVersion", JPK_SCHEMA_VERSION)


def _subject(root: etree._Element, entity: EntityInfo) -> None:
    taxpayer_id = normalize_taxpayer_id(_require_text(entity.taxpayer_id, field="taxpayer_id"))
    if len(taxpayer_id) != 10 or not taxpayer_id.isdigit():
        raise RenderError(f"taxpayer_id must be ten digits, got {entity.taxpayer_id!r}")

    subject = sub_element(root, "Podmiot1")
    sub_element(subject, "NIP", taxpayer_id)
    sub_element(subject, "PelnaNazwa", _require_text(entity.name, field="name"))
    if entity.statistical_id:
        sub_element(subject, "REGON", entity.statistical_id.strip())
    if entity.email:
        sub_element(subject, "Email", entity.email.strip())
    if entity.address is not None:
        _address(subject, entity.address)


def _address(subject: etree._Element, address: Address) -> None:
    node = sub_element(subject, "Adres")
    sub_element(node, "KodKraju", _require_text(address.country_code, field="country_code"))
    sub_element(node, "Miejscowosc", _require_text(address.city, field="city"))
    sub_element(node, "KodPocztowy", _require_text(address.postal_code, field="postal_code"))
    if address.street:
        sub_element(node, "Ulica", address.street.strip())
    if address.building_number:
        sub_element(node, "NrDomu", address.building_number.strip())
    if address.apartment_number:
        sub_element(node, "NrLokalu", address.apartment_number.strip())


def _positions(calculation: CalculationData, schema: DocumentSchema) -> dict[str, int]:
    tax = round_amount(calculation.output_tax, field="output_tax")
    credit = round_amount(calculation.input_tax, field="input_tax")
    if calculation.amount_due is None:
        due = max(tax - credit, 0)
    else:
        due = round_amount(calculation.amount_due, field="amount_due")
    refund = max(credit - tax, 0)

    values = dict.fromkeys(schema.positions, 0)
    for name, amount in sorted(calculation.positions.items()):
        if name not in values:
            raise RenderError(f"{schema.form_code} has no position {name}")
        if name in schema.core_positions:
            raise RenderError(f"{name} is derived from the tax totals and cannot be set directly")
        values[name] = round_amount(amount, field=name)

    values[schema.tax_position] = tax
    values[schema.credit_position] = credit
    values[schema.due_position] = due
    values[schema.refund_position] = refund
    for name in schema.mirror_positions:
        values[name] = due
    return values


def _position_block(parent: etree._Element, positions: dict[str, int]) -> None:
    block = sub_element(parent, "PozycjeSzczegolowe")
    for name, amount in positions.items():
        sub_element(block, name, str(amount))


def _ledger(
    root: etree._Element,
    calculation: CalculationData,
    version: str,
    prepared_on: date,
) -> None:
    ledger = sub_element(root, "Ewidencja")
    header = sub_element(ledger, "Naglowek")
    sub_element(header, "KodFormularzaEwid", _LEDGER_FORM_CODE)
    sub_element(header, "WariantFormularzaEwid", _LEDGER_FORM_VARIANT)
    sub_element(header, "Version", version)

    sales_tax = 0
    for number, row in enumerate(calculation.sales, start=1):
        sales_tax += _ledger_row(
            ledger,
            row,
            number,
            tags=("SprzedazWiersz", "LpSprzedazy", "NrKontrahenta", "NazwaKontrahenta"),
            document_tags=("DowodSprzedazy", "DataWystawienia"),
            amount_tags=("K_19", "K_20"),
            prepared_on=prepared_on,
        )
    sales_control = sub_element(ledger, "SprzedazCtrl")
    sub_element(sales_control, "LiczbaWierszySprzedazy", str(len(calculation.sales)))
    sub_element(sales_control, "PodatekNalezny", str(sales_tax))

    purchase_tax = 0
    for number, row in enumerate(calculation.purchases, start=1):
        purchase_tax += _ledger_row(
            ledger,
            row,
            number,
            tags=("ZakupWiersz", "LpZakupu", "NrDostawcy", "NazwaDostawcy"),
            document_tags=("DowodZakupu", "DataZakupu"),
            amount_tags=("K_42", "K_43"),
            prepared_on=prepared_on,
        )
    purchase_control = sub_element(ledger, "ZakupCtrl")
    sub_element(purchase_control, "LiczbaWierszyZakupow", str(len(calculation.purchases)))
    sub_element(purchase_control, "PodatekNaliczony", str(purchase_tax))


def _ledger_row(
    ledger: etree._Element,
    row: LedgerRow,
    number: int,
    *,
    tags: tuple[str, str, str, str],
    document_tags: tuple[str, str],
    amount_tags: tuple[str, str],
    prepared_on: date,
) -> int:
    row_tag, number_tag, counterparty_tag, name_tag = tags
    label = f"{row_tag} {number}"
    issue_date = _require_date(row.issue_date, field=f"{label} issue_date")
    if issue_date > prepared_on:
        log.warning(f"{label} is dated {issue_date}, after the document date {prepared_on}")
    net = round_amount(row.net_amount, field=f"{label} net_amount")
    tax = round_amount(row.tax_amount, field=f"{label} tax_amount")

    node = sub_element(ledger, row_tag)
    sub_element(node, number_tag, str(number))
    country = _require_text(row.country_code, field=f"{label} country_code")
    counterparty = _require_text(row.counterparty_id, field=f"{label} counterparty_id")
    name = _require_text(row.counterparty_name, field=f"{label} counterparty_name")
    reference = _require_text(row.document_number, field=f"{label} document_number")
    sub_element(node, "KodKrajuNadaniaTIN", country)
    sub_element(node, counterparty_tag, counterparty)
    sub_element(node, name_tag, name)
    sub_element(node, document_tags[0], reference)
    sub_element(node, document_tags[1], issue_date.isoformat())
    sub_element(node, amount_tags[0], str(net))
    sub_element(node, amount_tags[1], str(tax))
    return tax


def _require_text(value: str | None, *, field: str) -> str:
    if value is None or not str(value).strip():
        raise RenderError(f"{field} is required")
    return str(value).strip()


def _require_date(value: object, *, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise RenderError(f"{field} must be a date, got {value!r}")
