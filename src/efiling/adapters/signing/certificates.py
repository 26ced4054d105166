"""X.509 certificates, private keys and the trust policy applied to them."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from cryptography.x509.oid import NameOID

from efiling.config.signing import DEFAULT_TRUSTED_ISSUERS
from efiling.domain.errors import (
    SignatureError,
    UnverifiableSignatureError,
    UntrustedCertificateError,
)
from efiling.domain.model import CertificateInfo

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from pathlib import Path

    from efiling.config.signing import TrustConfig

log = getLogger(__name__)

RSA_SHA256 = "RSA-SHA256"


def _read(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SignatureError(f"Cannot read {what} at {path}: {exc}") from exc


def load_certificate(path: Path) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(_read(path, "certificate"))
    except ValueError as exc:
        raise SignatureError(f"{path} does not hold a PEM certificate") from exc


def load_certificate_der(content: str) -> x509.Certificate:
    """Load a certificate from base64 DER, as embedded in documents and headers."""

    try:
        return x509.load_der_x509_certificate(base64.b64decode(content, validate=True))
    except ValueError as exc:
        raise SignatureError("Embedded certificate cannot be decoded") from exc


def load_private_key(path: Path, passphrase: str | None = None) -> rsa.RSAPrivateKey:
    password = passphrase.encode() if passphrase else None
    try:
        key = serialization.load_pem_private_key(_read(path, "private key"), password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SignatureError(f"Cannot load the private key at {path}: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SignatureError(f"Private key at {path} is not an RSA key")
    return key


def certificate_info(certificate: x509.Certificate) -> CertificateInfo:
    return CertificateInfo(
        serial_number=format(certificate.serial_number, "X"),
        issuer=certificate.issuer.rfc4514_string(),
        subject=certificate.subject.rfc4514_string(),
        valid_from=certificate.not_valid_before_utc,
        valid_to=certificate.not_valid_after_utc,
    )


def certificate_der(certificate: x509.Certificate) -> str:
    return base64.b64encode(certificate.public_bytes(serialization.Encoding.DER)).decode("ascii")


def sign_digest(key: rsa.RSAPrivateKey, digest: bytes) -> bytes:
    """RSA PKCS#1 v1.5 signature over an already computed SHA-256 digest."""

    return key.sign(digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))


def verify_digest(certificate: x509.Certificate, signature: bytes, digest: bytes) -> None:
    public_key = certificate.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise SignatureError("Certificate does not carry an RSA public key")
    try:
        public_key.verify(signature, digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
    except InvalidSignature as exc:
        raise SignatureError("Signature does not match the signed content") from exc


@dataclass(slots=True, frozen=True)
class Credentials:
    """A certificate together with the private key it certifies."""

    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey

    @property
    def info(self) -> CertificateInfo:
        return certificate_info(self.certificate)

    @property
    def certificate_der(self) -> str:
        return certificate_der(self.certificate)


def load_credentials(
    certificate_path: Path,
    private_key_path: Path,
    passphrase: str | None = None,
) -> Credentials:
    certificate = load_certificate(certificate_path)
    private_key = load_private_key(private_key_path, passphrase)
    public_key = certificate.public_key()
    if (
        not isinstance(public_key, rsa.RSAPublicKey)
        or public_key.public_numbers() != private_key.public_key().public_numbers()
    ):
        raise SignatureError(
            f"Private key {private_key_path} does not match certificate {certificate_path}"
        )
    return Credentials(certificate=certificate, private_key=private_key)


@runtime_checkable
class RevocationChecker(Protocol):
    def is_revoked(self, certificate: CertificateInfo) -> bool: ...


class NoRevocationChecks:
    """Treat every certificate as not revoked."""

    def is_revoked(self, certificate: CertificateInfo) -> bool:  # noqa: ARG002
        return False


class StaticRevocationList:
    """Revocation by a fixed list of serial numbers (hex, case-insensitive)."""

    def __init__(self, serials: Iterable[str]) -> None:
        self._serials = frozenset(serial.strip().upper() for serial in serials if serial.strip())

    def is_revoked(self, certificate: CertificateInfo) -> bool:
        return certificate.serial_number.upper() in self._serials


def load_trust_anchors(path: Path) -> tuple[x509.Certificate, ...]:
    """Load every certificate from a PEM bundle of trusted issuing authorities."""

    try:
        anchors = tuple(x509.load_pem_x509_certificates(_read(path, "trust anchors")))
    except ValueError as exc:
        raise SignatureError(f"{path} does not hold PEM certificates") from exc
    log.info(f"Loaded {len(anchors)} trust anchor(s) from {path}")
    return anchors


_ISSUER_ATTRIBUTES = (NameOID.ORGANIZATION_NAME, NameOID.COMMON_NAME)


def _issuer_names(issuer: str) -> frozenset[str]:
    try:
        name = x509.Name.from_rfc4514_string(issuer)
    except ValueError:
        return frozenset()
    values = {issuer.casefold()}
    for oid in _ISSUER_ATTRIBUTES:
        attributes = name.get_attributes_for_oid(oid)
        values.update(str(attribute.value).casefold() for attribute in attributes)
    return frozenset(values)


class TrustPolicy:
    """Allow-listed issuer, anchored issuing authority, validity window, not revoked.

    An allow-list entry names an issuer by its full distinguished name or by the
    exact value of its organization or common name attribute. ``anchors`` are the
    certificates of the trusted issuing authorities; a certificate passes the
    anchor check only when one of them carries its issuer name and verifies its
    signature.
    """

    def __init__(
        self,
        trusted_issuers: Iterable[str] = DEFAULT_TRUSTED_ISSUERS,
        *,
        anchors: Iterable[x509.Certificate] = (),
        revocation: RevocationChecker | None = None,
    ) -> None:
        self._trusted_issuers = frozenset(name.strip().casefold() for name in trusted_issuers)
        self._anchors = tuple(anchors)
        self._revocation = revocation or NoRevocationChecks()

    @classmethod
    def from_config(cls, config: TrustConfig) -> TrustPolicy:
        revocation = (
            StaticRevocationList(config.revoked_serials) if config.revoked_serials else None
        )
        anchors = load_trust_anchors(config.anchors_path) if config.anchors_path else ()
        return cls(config.trusted_issuers, anchors=anchors, revocation=revocation)

    @property
    def has_anchors(self) -> bool:
        return bool(self._anchors)

    def is_trusted_issuer(self, issuer: str) -> bool:
        return not self._trusted_issuers.isdisjoint(_issuer_names(issuer))

    def check(self, certificate: CertificateInfo, *, now: datetime) -> None:
        if not self.is_trusted_issuer(certificate.issuer):
            raise UntrustedCertificateError(
                f"Certificate issuer {certificate.issuer!r} is not on the trusted list"
            )
        if now < certificate.valid_from:
            raise UntrustedCertificateError(
                f"Certificate {certificate.serial_number} is not valid before "
                f"{certificate.valid_from.isoformat()}"
            )
        if now > certificate.valid_to:
            raise UntrustedCertificateError(
                f"Certificate {certificate.serial_number} expired on "
                f"{certificate.valid_to.isoformat()}"
            )
        if self._revocation.is_revoked(certificate):
            raise UntrustedCertificateError(
                f"Certificate {certificate.serial_number} has been revoked"
            )
        log.debug(f"Certificate {certificate.serial_number} from {certificate.issuer} is trusted")

    def check_certificate(
        self,
        certificate: x509.Certificate,
        *,
        now: datetime,
        require_anchor: bool = False,
    ) -> CertificateInfo:
        """Apply :meth:`check` and, when anchors are known, the issuing authority check.

        With ``require_anchor`` a policy without anchors cannot vouch for the
        certificate and raises ``UnverifiableSignatureError``.
        """

        info = certificate_info(certificate)
        self.check(info, now=now)
        if self._anchors:
            self._check_issued_by_anchor(certificate, info, now=now)
        elif require_anchor:
            raise UnverifiableSignatureError(
                f"No trust anchors configured to verify certificate {info.serial_number}"
            )
        return info

    def _check_issued_by_anchor(
        self,
        certificate: x509.Certificate,
        info: CertificateInfo,
        *,
        now: datetime,
    ) -> None:
        candidates = [anchor for anchor in self._anchors if anchor.subject == certificate.issuer]
        if not candidates:
            raise UntrustedCertificateError(
                f"No trust anchor carries the issuer {info.issuer!r} of certificate "
                f"{info.serial_number}"
            )
        for anchor in candidates:
            anchor_info = certificate_info(anchor)
            if not anchor_info.is_current(now):
                log.debug(f"Skipping trust anchor {anchor_info.serial_number} outside its validity")
                continue
            try:
                certificate.verify_directly_issued_by(anchor)
            except (ValueError, TypeError, InvalidSignature):
                continue
            log.debug(f"Certificate {info.serial_number} issued by anchor {anchor_info.subject}")
            return
        raise UntrustedCertificateError(
            f"Certificate {info.serial_number} was not issued by a trusted authority "
            f"named {info.issuer!r}"
        )
