"""Inputs handed to the renderer by the tax calculation collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date

    from .enums import DeclarationType

type Amount = Decimal | int | float | str


@dataclass(slots=True, frozen=True)
class Address:
    city: str
    postal_code: str
    street: str | None = None
    building_number: str | None = None
    apartment_number: str | None = None
    country_code: str = "PL"


@dataclass(slots=True, frozen=True)
class EntityInfo:
    """The taxpayer the declaration is filed for."""

    taxpayer_id: str
    name: str
    tax_office_code: str
    statistical_id: str | None = None
    email: str | None = None
    address: Address | None = None


@dataclass(slots=True, frozen=True)
class LedgerRow:
    """One sales or purchase entry of a ledger-style filing."""

    counterparty_id: str
    counterparty_name: str
    document_number: str
    issue_date: date
    net_amount: Amount
    tax_amount: Amount
    country_code: str = "PL"


@dataclass(slots=True, frozen=True)
class CalculationData:
    """Totals computed for one declaration.

    ``positions`` carries any additional numbered fields (``"P_20"`` and so on);
    everything the schema declares but the calculation leaves out is rendered
    as zero.
    """

    declaration_type: DeclarationType
    period: str
    prepared_on: date
    output_tax: Amount
    input_tax: Amount
    amount_due: Amount | None = None
    positions: Mapping[str, Amount] = field(default_factory=dict)
    sales: tuple[LedgerRow, ...] = ()
    purchases: tuple[LedgerRow, ...] = ()
    system_name: str = "efiling"
    correction: bool = False
