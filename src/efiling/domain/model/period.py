"""Reporting periods and the version tokens derived from them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from .enums import Variant

_PERIOD_PATTERN: Final = re.compile(r"^(?P<year>\d{4})(?:-(?P<month>\d{2}))?$")


@dataclass(slots=True, frozen=True)
class ReportingPeriod:
    """A reporting period, either a calendar month or a whole year.

    Quarterly filings are keyed by any month of their quarter; the quarter is
    derived from the month.
    """

    year: int
    month: int | None = None

    def __post_init__(self) -> None:
        if not 1900 <= self.year <= 9999:
            raise ValueError(f"Reporting year out of range: {self.year}")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"Reporting month out of range: {self.month}")

    @classmethod
    def parse(cls, value: str) -> ReportingPeriod:
        match = _PERIOD_PATTERN.match(value.strip())
        if match is None:
            raise ValueError(f"Invalid reporting period {value!r}, expected YYYY or YYYY-MM")
        month = match.group("month")
        return cls(year=int(match.group("year")), month=int(month) if month else None)

    @property
    def quarter(self) -> int | None:
        if self.month is None:
            return None
        return (self.month - 1) // 3 + 1

    def unit(self, variant: Variant) -> str:
        """Two-digit period unit: the month, the quarter, or ``01`` for annual forms."""

        if variant is Variant.ANNUAL:
            return "01"
        if self.month is None:
            raise ValueError(f"{variant} declarations need a month in the reporting period")
        if variant is Variant.QUARTERLY:
            return f"{self.quarter:02d}"
        return f"{self.month:02d}"

    def version_token(self, variant: Variant) -> str:
        return f"{self.year:04d}{self.unit(variant)}01"

    def __str__(self) -> str:
        if self.month is None:
            return f"{self.year:04d}"
        return f"{self.year:04d}-{self.month:02d}"
