"""Monetary rounding for rendered documents."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

from efiling.domain.errors import RenderError

if TYPE_CHECKING:
    from efiling.domain.model import Amount

_WHOLE_UNIT = Decimal(1)


def to_decimal(value: Amount, *, field: str) -> Decimal:
    if isinstance(value, bool):
        raise RenderError(f"{field} must be a number, got a boolean")
    try:
        # floats go through str() so 0.1 stays 0.1
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise RenderError(f"{field} is not a valid amount: {value!r}") from exc
    if not amount.is_finite():
        raise RenderError(f"{field} must be finite, got {value!r}")
    return amount


def round_amount(value: Amount, *, field: str) -> int:
    """Round to whole currency units, halves away from zero."""

    return int(to_decimal(value, field=field).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP))


def parse_amount(text: str | None) -> Decimal | None:
    """Read an amount back from a document; ``None`` for blank or malformed text."""

    if text is None:
        return None
    try:
        amount = Decimal(text.strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None
