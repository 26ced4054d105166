"""Audit records for declaration status transitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from .enums import DeclarationStatus, ErrorCategory, TransitionTrigger


@dataclass(eq=False, kw_only=True)
class StatusChange(Entity):
    """Immutable audit entry written alongside every status transition."""

    declaration_id: UUID
    old_status: DeclarationStatus | None
    new_status: DeclarationStatus
    trigger: TransitionTrigger
    reason: str
    error_category: ErrorCategory | None = None
    created_at: datetime = field(default_factory=utcnow)
