"""Certificates for signing and WS-Security tests.

Leaf certificates are issued by a throwaway authority whose certificate serves
as the trust anchor. Passing no authority produces a self-signed leaf.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

if TYPE_CHECKING:
    from pathlib import Path

TEST_ISSUER = "Test Certification Authority"
VALID_FROM = datetime(2024, 1, 1, tzinfo=UTC)
VALID_TO = datetime(2030, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class CertificateAuthority:
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey


@dataclass(frozen=True, slots=True)
class CertificateFiles:
    certificate_path: Path
    private_key_path: Path
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey


def _name(common_name: str, organization: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        ]
    )


def make_authority(
    *, organization: str = TEST_ISSUER, common_name: str = "Test Root CA"
) -> CertificateAuthority:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = _name(common_name, organization)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(VALID_FROM)
        .not_valid_after(VALID_TO)
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .sign(private_key, hashes.SHA256())
    )
    return CertificateAuthority(certificate=certificate, private_key=private_key)


def make_certificate(
    private_key: rsa.RSAPrivateKey,
    *,
    organization: str = TEST_ISSUER,
    common_name: str = "Jan Kowalski",
    serial_number: int | None = None,
    valid_from: datetime = VALID_FROM,
    valid_to: datetime = VALID_TO,
    authority: CertificateAuthority | None = None,
) -> x509.Certificate:
    subject = _name(common_name, organization)
    issuer = authority.certificate.subject if authority else subject
    signing_key = authority.private_key if authority else private_key
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(serial_number or x509.random_serial_number())
        .not_valid_before(valid_from)
        .not_valid_after(valid_to)
        .sign(signing_key, hashes.SHA256())
    )


def write_pem(path: Path, *certificates: x509.Certificate) -> Path:
    encoded = (certificate.public_bytes(serialization.Encoding.PEM) for certificate in certificates)
    path.write_bytes(b"".join(encoded))
    return path


def write_certificate(
    directory: Path,
    *,
    name: str,
    organization: str = TEST_ISSUER,
    passphrase: str | None = None,
    authority: CertificateAuthority | None = None,
) -> CertificateFiles:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    certificate = make_certificate(private_key, organization=organization, authority=authority)

    encryption: serialization.KeySerializationEncryption = (
        serialization.BestAvailableEncryption(passphrase.encode())
        if passphrase
        else serialization.NoEncryption()
    )
    certificate_path = write_pem(directory / f"{name}.crt.pem", certificate)
    private_key_path = directory / f"{name}.key.pem"
    private_key_path.write_bytes(
        private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            encryption,
        )
    )
    return CertificateFiles(
        certificate_path=certificate_path,
        private_key_path=private_key_path,
        certificate=certificate,
        private_key=private_key,
    )
