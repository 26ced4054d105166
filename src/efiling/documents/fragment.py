"""The embedded signature fragment (``Podpis``) and the content it covers."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from lxml import etree

from efiling.domain.errors import SignatureError
from efiling.domain.model import CertificateInfo, SignatureType

from .schemas import SIGNATURE_FRAGMENT
from .xml import (
    canonicalize,
    child_text,
    find_child,
    iter_children,
    parse_xml,
    serialize,
    sub_element,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(slots=True, frozen=True)
class SignatureFragment:
    signature_id: str
    signature_type: SignatureType
    signed_at: datetime
    value: str | None = None
    certificate: CertificateInfo | None = None
    certificate_der: str | None = None


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _fragments(root: etree._Element) -> Iterator[etree._Element]:
    return iter_children(root, SIGNATURE_FRAGMENT)


def strip_fragments(root: etree._Element) -> int:
    """Remove every signature fragment from ``root``; returns how many were removed."""

    found = list(_fragments(root))
    for node in found:
        root.remove(node)
    return len(found)


def _parse(document: str) -> etree._Element:
    try:
        return parse_xml(document, remove_blank_text=True)
    except etree.XMLSyntaxError as exc:
        raise SignatureError(f"Document is not well-formed XML: {exc}") from exc


def canonical_content(document: str) -> bytes:
    """Exclusive C14N of the document with any signature fragment removed."""

    root = _parse(document)
    strip_fragments(root)
    return canonicalize(root)


def content_digest(document: str) -> bytes:
    return hashlib.sha256(canonical_content(document)).digest()


def embed_fragment(document: str, fragment: SignatureFragment) -> str:
    """Insert ``fragment`` as the last child of the root, replacing any earlier one."""

    root = _parse(document)
    strip_fragments(root)
    node = sub_element(root, SIGNATURE_FRAGMENT)
    sub_element(node, "IdPodpisu", fragment.signature_id)
    sub_element(node, "RodzajPodpisu", fragment.signature_type.value)
    sub_element(node, "CzasPodpisu", format_timestamp(fragment.signed_at))
    if fragment.value is not None:
        sub_element(node, "WartoscPodpisu", fragment.value)
    if fragment.certificate is not None:
        certificate = sub_element(node, "Certyfikat")
        sub_element(certificate, "NumerSeryjny", fragment.certificate.serial_number)
        sub_element(certificate, "Wystawca", fragment.certificate.issuer)
        sub_element(certificate, "Podmiot", fragment.certificate.subject)
        sub_element(certificate, "WaznyOd", format_timestamp(fragment.certificate.valid_from))
        sub_element(certificate, "WaznyDo", format_timestamp(fragment.certificate.valid_to))
        if fragment.certificate_der is not None:
            sub_element(certificate, "Tresc", fragment.certificate_der)
    return serialize(root)


def read_fragment(document: str) -> SignatureFragment | None:
    """Read the embedded fragment back; ``None`` when the document is unsigned."""

    root = _parse(document)
    nodes = list(_fragments(root))
    if not nodes:
        return None
    if len(nodes) > 1:
        raise SignatureError("Document carries more than one signature fragment")
    node = nodes[0]

    signature_id = child_text(node, "IdPodpisu")
    kind = child_text(node, "RodzajPodpisu")
    signed_at = child_text(node, "CzasPodpisu")
    if signature_id is None or kind is None or signed_at is None:
        raise SignatureError("Signature fragment is missing its id, type or time")
    try:
        signature_type = SignatureType(kind)
        signing_time = parse_timestamp(signed_at)
    except ValueError as exc:
        raise SignatureError(f"Signature fragment is malformed: {exc}") from exc

    certificate: CertificateInfo | None = None
    certificate_der: str | None = None
    certificate_node = find_child(node, "Certyfikat")
    if certificate_node is not None:
        certificate = _read_certificate(certificate_node)
        certificate_der = child_text(certificate_node, "Tresc")

    return SignatureFragment(
        signature_id=signature_id,
        signature_type=signature_type,
        signed_at=signing_time,
        value=child_text(node, "WartoscPodpisu"),
        certificate=certificate,
        certificate_der=certificate_der,
    )


def _read_certificate(node: etree._Element) -> CertificateInfo:
    serial = child_text(node, "NumerSeryjny")
    issuer = child_text(node, "Wystawca")
    subject = child_text(node, "Podmiot")
    valid_from = child_text(node, "WaznyOd")
    valid_to = child_text(node, "WaznyDo")
    if serial is None or issuer is None or subject is None:
        raise SignatureError("Certificate metadata is incomplete")
    if valid_from is None or valid_to is None:
        raise SignatureError("Certificate validity window is missing")
    try:
        return CertificateInfo(
            serial_number=serial,
            issuer=issuer,
            subject=subject,
            valid_from=parse_timestamp(valid_from),
            valid_to=parse_timestamp(valid_to),
        )
    except ValueError as exc:
        raise SignatureError(f"Certificate validity window is malformed: {exc}") from exc
