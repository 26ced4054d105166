"""Injectable time source."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from efiling.domain.model.entity import utcnow

if TYPE_CHECKING:
    from datetime import datetime


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def system_clock() -> datetime:
    return utcnow()
