"""Verification of embedded certificate signatures (used for receipts)."""

from __future__ import annotations

import base64
import binascii
from logging import getLogger
from typing import TYPE_CHECKING

from efiling.documents.fragment import content_digest, read_fragment
from efiling.domain.clock import system_clock
from efiling.domain.errors import SignatureError, UnverifiableSignatureError
from efiling.domain.model import SignatureType

from .certificates import TrustPolicy, load_certificate_der, verify_digest

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.domain.clock import Clock
    from efiling.domain.model import CertificateInfo

log = getLogger(__name__)


def verify_fragment(document: str, trust: TrustPolicy, *, now: datetime) -> CertificateInfo:
    """Check the embedded certificate signature of ``document``.

    The embedded certificate must match the declared metadata, pass the trust
    policy including its issuing authority check against the configured anchors,
    and verify the RSA-SHA256 signature over the canonical document without its
    fragment. Raises ``UnverifiableSignatureError`` when the signature type or a
    missing trust store rules verification out, ``SignatureError`` otherwise.
    """

    fragment = read_fragment(document)
    if fragment is None:
        raise SignatureError("Document is not signed")
    if fragment.signature_type is not SignatureType.LOCAL_CERTIFICATE:
        raise UnverifiableSignatureError(
            f"{fragment.signature_type} signatures cannot be verified locally"
        )
    if fragment.value is None or fragment.certificate_der is None:
        raise SignatureError("Signature value or certificate content is missing")

    certificate = load_certificate_der(fragment.certificate_der)
    serial_number = format(certificate.serial_number, "X")
    declared = fragment.certificate
    if declared is not None and declared.serial_number.upper() != serial_number:
        raise SignatureError(
            f"Declared certificate {declared.serial_number} differs from the embedded one"
        )
    info = trust.check_certificate(certificate, now=now, require_anchor=True)

    try:
        signature = base64.b64decode(fragment.value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SignatureError("Signature value is not valid base64") from exc
    verify_digest(certificate, signature, content_digest(document))
    log.debug(f"Verified signature {fragment.signature_id} from {info.subject}")
    return info


class FragmentVerifier:
    """Callable receipt verifier bound to a trust policy and a clock."""

    def __init__(self, trust: TrustPolicy | None = None, *, clock: Clock = system_clock) -> None:
        self._trust = trust or TrustPolicy()
        self._clock = clock

    def __call__(self, document: str) -> CertificateInfo:
        return verify_fragment(document, self._trust, now=self._clock())

