"""Ports for rendering and checking XML documents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.domain.model import (
        CalculationData,
        Declaration,
        EntityInfo,
        ReceiptDocument,
        ValidationReport,
        Variant,
    )


@runtime_checkable
class DocumentRenderer(Protocol):
    def __call__(
        self,
        calculation: CalculationData,
        entity: EntityInfo,
        variant: Variant,
    ) -> str: ...


@runtime_checkable
class DocumentValidator(Protocol):
    def __call__(self, document: str, variant: Variant) -> ValidationReport: ...


@runtime_checkable
class ReceiptInspector(Protocol):
    """Parses authority receipts and checks them against their declaration."""

    def parse(self, document: str) -> ReceiptDocument: ...

    def validate(
        self,
        receipt: ReceiptDocument,
        declaration: Declaration,
        *,
        now: datetime,
    ) -> ValidationReport: ...
