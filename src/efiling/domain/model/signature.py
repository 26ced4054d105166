"""Signature records and certificate metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .entity import Entity, utcnow
from .enums import SignatureType, SignatureValidationStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(slots=True, frozen=True)
class CertificateInfo:
    serial_number: str
    issuer: str
    subject: str
    valid_from: datetime
    valid_to: datetime

    def is_current(self, now: datetime) -> bool:
        return self.valid_from <= now <= self.valid_to


@dataclass(eq=False, kw_only=True)
class SignatureRecord(Entity):
    """Append-only record of one signing run over a declaration document."""

    declaration_id: UUID
    signature_id: str
    signature_type: SignatureType
    algorithm: str
    content_hash: str
    signature_value: str | None = None
    signer: str | None = None
    validation_status: SignatureValidationStatus = SignatureValidationStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
