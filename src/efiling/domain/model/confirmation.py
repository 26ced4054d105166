"""Authority receipts: the parsed document and the stored confirmation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(slots=True, frozen=True)
class ReceiptDocument:
    """Fields read from an authority receipt, before any validation.

    Values are kept as the raw strings found in the document so validation can
    report on malformed content instead of failing during parsing.
    """

    form_code: str | None
    tax_office_code: str | None
    period: str | None
    taxpayer_id: str | None
    confirmation_number: str | None
    confirmation_date: str | None
    status_code: str | None
    raw_document: str
    has_signature: bool = False
    amount: str | None = None


@dataclass(eq=False, kw_only=True)
class Confirmation(Entity):
    """Validated receipt, stored once and never updated."""

    confirmation_number: str
    confirmation_date: datetime
    taxpayer_id: str
    tax_office_code: str
    form_code: str
    period: str
    status_code: str
    raw_document: str
    declaration_id: UUID
    has_signature: bool = False
    received_at: datetime = field(default_factory=utcnow)
