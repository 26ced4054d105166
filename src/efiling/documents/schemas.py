"""Document schemas: root element, namespace and position layout per form."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from efiling.domain.errors import RenderError
from efiling.domain.model import DeclarationType, Variant, expected_form_code

if TYPE_CHECKING:
    from collections.abc import Iterable

JPK_NAMESPACE: Final[str] = "http://jpk.mf.gov.pl/wersja/v7"
DECLARATION_NAMESPACE: Final[str] = (
    "http://crd.gov.pl/xml/schematy/dziedzinowe/mf/2023/06/16/eD/DEKLARACJA/"
)
JPK_ROOT: Final[str] = "JPK"
DECLARATION_ROOT: Final[str] = "Deklaracja"
JPK_SCHEMA_VERSION: Final[str] = "1-0E"
SIGNATURE_FRAGMENT: Final[str] = "Podpis"


def _positions(first: int, last: int) -> tuple[str, ...]:
    return tuple(f"P_{number}" for number in range(first, last + 1))


@dataclass(frozen=True, slots=True)
class DocumentSchema:
    """Layout of one form.

    ``due_position`` holds ``tax_position`` minus ``credit_position`` when that is
    positive and ``refund_position`` holds the surplus of credit over tax; at most
    one of them is non-zero. ``mirror_positions`` repeat the amount due.
    """

    form_code: str
    declaration_type: DeclarationType
    variant: Variant
    namespace: str
    root: str
    form_variant: str
    positions: tuple[str, ...]
    required_positions: tuple[str, ...]
    tax_position: str
    credit_position: str
    due_position: str
    refund_position: str
    mirror_positions: tuple[str, ...] = ()
    ledger: bool = False
    declaration_section_required: bool = True

    @property
    def form_code_tag(self) -> str:
        return "KodFormularza" if self.root == JPK_ROOT else "KodFormularzaDekl"

    @property
    def creation_date_tag(self) -> str:
        return "DataWytworzeniaJPK" if self.root == JPK_ROOT else "DataWytworzeniaDekl"

    @property
    def positions_path(self) -> tuple[str, ...]:
        if self.root == JPK_ROOT:
            return ("Deklaracja", "PozycjeSzczegolowe")
        return ("PozycjeSzczegolowe",)

    @property
    def core_positions(self) -> frozenset[str]:
        return frozenset(
            {
                self.tax_position,
                self.credit_position,
                self.due_position,
                self.refund_position,
                *self.mirror_positions,
            }
        )


_VAT_POSITIONS = _positions(10, 73)
_INCOME_POSITIONS = _positions(1, 200)

_SCHEMAS: Final[tuple[DocumentSchema, ...]] = (
    DocumentSchema(
        form_code="JPK_V7M",
        declaration_type=DeclarationType.JPK_V7,
        variant=Variant.MONTHLY,
        namespace=JPK_NAMESPACE,
        root=JPK_ROOT,
        form_variant="1",
        positions=_VAT_POSITIONS,
        required_positions=_positions(10, 15),
        tax_position="P_10",
        credit_position="P_11",
        due_position="P_12",
        refund_position="P_13",
        mirror_positions=("P_15",),
        ledger=True,
    ),
    DocumentSchema(
        form_code="JPK_V7K",
        declaration_type=DeclarationType.JPK_V7,
        variant=Variant.QUARTERLY,
        namespace=JPK_NAMESPACE,
        root=JPK_ROOT,
        form_variant="2",
        positions=_VAT_POSITIONS,
        required_positions=_positions(10, 12),
        tax_position="P_10",
        credit_position="P_11",
        due_position="P_12",
        refund_position="P_13",
        mirror_positions=("P_15",),
        ledger=True,
        declaration_section_required=False,
    ),
    DocumentSchema(
        form_code="VAT-7",
        declaration_type=DeclarationType.VAT_7,
        variant=Variant.MONTHLY,
        namespace=DECLARATION_NAMESPACE,
        root=DECLARATION_ROOT,
        form_variant="23",
        positions=_VAT_POSITIONS,
        required_positions=_positions(10, 15),
        tax_position="P_10",
        credit_position="P_11",
        due_position="P_12",
        refund_position="P_13",
        mirror_positions=("P_15",),
    ),
    DocumentSchema(
        form_code="PIT-36",
        declaration_type=DeclarationType.PIT_36,
        variant=Variant.ANNUAL,
        namespace=DECLARATION_NAMESPACE,
        root=DECLARATION_ROOT,
        form_variant="28",
        positions=_INCOME_POSITIONS,
        required_positions=_positions(1, 5),
        tax_position="P_2",
        credit_position="P_3",
        due_position="P_4",
        refund_position="P_5",
    ),
    DocumentSchema(
        form_code="PIT-36L",
        declaration_type=DeclarationType.PIT_36L,
        variant=Variant.ANNUAL,
        namespace=DECLARATION_NAMESPACE,
        root=DECLARATION_ROOT,
        form_variant="17",
        positions=_INCOME_POSITIONS,
        required_positions=_positions(1, 7),
        tax_position="P_4",
        credit_position="P_5",
        due_position="P_6",
        refund_position="P_7",
    ),
    DocumentSchema(
        form_code="CIT-8",
        declaration_type=DeclarationType.CIT_8,
        variant=Variant.ANNUAL,
        namespace=DECLARATION_NAMESPACE,
        root=DECLARATION_ROOT,
        form_variant="33",
        positions=_INCOME_POSITIONS,
        required_positions=_positions(1, 7),
        tax_position="P_4",
        credit_position="P_5",
        due_position="P_6",
        refund_position="P_7",
    ),
)

_BY_FORM_CODE: Final[dict[str, DocumentSchema]] = {schema.form_code: schema for schema in _SCHEMAS}

SUPPORTED_FORM_CODES: Final[frozenset[str]] = frozenset(_BY_FORM_CODE)
KNOWN_ROOTS: Final[frozenset[tuple[str, str]]] = frozenset(
    (schema.namespace, schema.root) for schema in _SCHEMAS
)


def schema_for(declaration_type: DeclarationType, variant: Variant) -> DocumentSchema:
    try:
        form_code = expected_form_code(declaration_type, variant)
    except ValueError as exc:
        raise RenderError(str(exc)) from exc
    return _BY_FORM_CODE[form_code]


def schema_for_form_code(form_code: str | None) -> DocumentSchema | None:
    if form_code is None:
        return None
    return _BY_FORM_CODE.get(form_code)


def schemas_for_root(namespace: str | None, root: str) -> Iterable[DocumentSchema]:
    return (schema for schema in _SCHEMAS if schema.namespace == namespace and schema.root == root)
