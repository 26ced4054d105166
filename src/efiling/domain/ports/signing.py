"""Ports for signing declaration documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from efiling.domain.model import (
        CertificateInfo,
        SignatureType,
        SignatureValidationStatus,
    )


@dataclass(slots=True, frozen=True)
class SigningConfig:
    """Strategy selection plus whatever that strategy needs."""

    signature_type: SignatureType
    certificate_path: Path | None = None
    private_key_path: Path | None = None
    passphrase: str | None = None
    identity_reference: str | None = None
    signing_time: datetime | None = None


@dataclass(slots=True, frozen=True)
class SigningResult:
    signed_document: str
    signature_id: str
    signature_type: SignatureType
    algorithm: str
    content_hash: str
    signing_time: datetime
    validation_status: SignatureValidationStatus
    signature_value: str | None = None
    signer: str | None = None
    certificate_info: CertificateInfo | None = None


@dataclass(slots=True, frozen=True)
class DelegatedSignature:
    """What the identity service hands back for a delegated signature."""

    token: str
    signer_id: str
    signer_name: str
    issuer: str
    signed_at: datetime


@runtime_checkable
class DocumentSigner(Protocol):
    def sign(self, document: str, config: SigningConfig) -> SigningResult: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """External identity service that signs on the taxpayer's behalf."""

    def request_signature(self, *, digest: bytes, reference: str) -> DelegatedSignature: ...
