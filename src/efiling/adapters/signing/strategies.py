"""Signing strategies: delegated identity, local certificate, placeholder.

Each strategy describes itself, produces a signature artifact over the
document digest, and embeds that artifact as the document's signature
fragment.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from efiling.documents.fragment import SignatureFragment, content_digest, embed_fragment
from efiling.domain.errors import SignatureError
from efiling.domain.model import SignatureType, SignatureValidationStatus

from .certificates import RSA_SHA256, TrustPolicy, load_credentials, sign_digest, verify_digest

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.domain.model import CertificateInfo
    from efiling.domain.ports.signing import IdentityProvider, SigningConfig

log = getLogger(__name__)

DELEGATED_ALGORITHM = "DELEGATED-SHA256"
PLACEHOLDER_ALGORITHM = "NONE"


@dataclass(slots=True, frozen=True)
class SignatureArtifact:
    signature_type: SignatureType
    algorithm: str
    content_hash: str
    signed_at: datetime
    validation_status: SignatureValidationStatus
    value: str | None = None
    signer: str | None = None
    certificate: CertificateInfo | None = None
    certificate_der: str | None = None


@runtime_checkable
class SigningStrategy(Protocol):
    signature_type: SignatureType

    def describe(self) -> str: ...

    def sign(
        self,
        document: str,
        config: SigningConfig,
        *,
        signed_at: datetime,
    ) -> SignatureArtifact: ...

    def embed(self, document: str, artifact: SignatureArtifact, *, signature_id: str) -> str: ...


class _FragmentEmbedding:
    """Shared ``embed``: write the artifact as the ``Podpis`` fragment."""

    def embed(self, document: str, artifact: SignatureArtifact, *, signature_id: str) -> str:
        return embed_fragment(
            document,
            SignatureFragment(
                signature_id=signature_id,
                signature_type=artifact.signature_type,
                signed_at=artifact.signed_at,
                value=artifact.value,
                certificate=artifact.certificate,
                certificate_der=artifact.certificate_der,
            ),
        )


class LocalCertificateStrategy(_FragmentEmbedding):
    """Sign the SHA-256 digest of the canonical document with a local RSA key."""

    signature_type = SignatureType.LOCAL_CERTIFICATE

    def __init__(self, trust: TrustPolicy | None = None) -> None:
        self._trust = trust or TrustPolicy()

    def describe(self) -> str:
        return "Qualified certificate signature (RSA-SHA256) with a locally held key"

    def sign(
        self,
        document: str,
        config: SigningConfig,
        *,
        signed_at: datetime,
    ) -> SignatureArtifact:
        if config.certificate_path is None or config.private_key_path is None:
            raise SignatureError("Certificate signing needs a certificate and a private key path")
        credentials = load_credentials(
            config.certificate_path, config.private_key_path, config.passphrase
        )
        info = self._trust.check_certificate(credentials.certificate, now=signed_at)

        digest = content_digest(document)
        signature = sign_digest(credentials.private_key, digest)
        verify_digest(credentials.certificate, signature, digest)
        log.info(f"Signed document digest with certificate {info.serial_number}")
        return SignatureArtifact(
            signature_type=self.signature_type,
            algorithm=RSA_SHA256,
            content_hash=digest.hex(),
            signed_at=signed_at,
            validation_status=SignatureValidationStatus.VALID,
            value=base64.b64encode(signature).decode("ascii"),
            signer=info.subject,
            certificate=info,
            certificate_der=credentials.certificate_der,
        )


class TrustedIdentityStrategy(_FragmentEmbedding):
    """Hand the digest to the trusted identity service and embed its opaque token."""

    signature_type = SignatureType.TRUSTED_IDENTITY

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider

    def describe(self) -> str:
        return "Signature delegated to the trusted identity service"

    def sign(
        self,
        document: str,
        config: SigningConfig,
        *,
        signed_at: datetime,  # noqa: ARG002
    ) -> SignatureArtifact:
        if not config.identity_reference:
            raise SignatureError("Delegated signing needs an identity reference")
        digest = content_digest(document)
        delegated = self._provider.request_signature(
            digest=digest, reference=config.identity_reference
        )
        log.info(f"Identity service signed for {delegated.signer_id}")
        return SignatureArtifact(
            signature_type=self.signature_type,
            algorithm=DELEGATED_ALGORITHM,
            content_hash=digest.hex(),
            signed_at=delegated.signed_at,
            validation_status=SignatureValidationStatus.PENDING,
            value=delegated.token,
            signer=f"{delegated.signer_name} ({delegated.signer_id})",
        )


class PlaceholderStrategy(_FragmentEmbedding):
    """Embed an unsigned marker; only for test environments."""

    signature_type = SignatureType.NONE

    def describe(self) -> str:
        return "Placeholder marker without a cryptographic signature (testing only)"

    def sign(
        self,
        document: str,
        config: SigningConfig,  # noqa: ARG002
        *,
        signed_at: datetime,
    ) -> SignatureArtifact:
        return SignatureArtifact(
            signature_type=self.signature_type,
            algorithm=PLACEHOLDER_ALGORITHM,
            content_hash=content_digest(document).hex(),
            signed_at=signed_at,
            validation_status=SignatureValidationStatus.PENDING,
        )
