"""SOAP 1.1 envelopes exchanged with the authority's gateway."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from lxml import etree

from efiling.documents.xml import XML_ENCODING, local_name, parse_xml, qn
from efiling.domain.errors import (
    AuthenticationFault,
    ProtocolFaultError,
    UnexpectedResponseError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

SOAP_NAMESPACE: Final[str] = "http://schemas.xmlsoap.org/soap/envelope/"
SERVICE_NAMESPACE: Final[str] = "https://e-deklaracje.mf.gov.pl/ws/"
WSU_NAMESPACE: Final[str] = (
    "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
)
BODY_ID: Final[str] = "Body"

_AUTHENTICATION_FAULT_MARKERS: Final[tuple[str, ...]] = (
    "authentication",
    "security",
    "unauthorized",
    "invalidcertificate",
)


def build_envelope(
    operation: str,
    fields: Mapping[str, object],
) -> tuple[etree._Element, etree._Element]:
    """Return ``(envelope, body)`` for one operation call.

    ``fields`` become children of ``<param>``; nested mappings become nested
    elements and ``None`` values are skipped.
    """

    envelope = etree.Element(
        qn(SOAP_NAMESPACE, "Envelope"),
        nsmap={"soap": SOAP_NAMESPACE, "wsu": WSU_NAMESPACE, "ed": SERVICE_NAMESPACE},
    )
    etree.SubElement(envelope, qn(SOAP_NAMESPACE, "Header"))
    body = etree.SubElement(envelope, qn(SOAP_NAMESPACE, "Body"))
    body.set(qn(WSU_NAMESPACE, "Id"), BODY_ID)
    call = etree.SubElement(body, qn(SERVICE_NAMESPACE, operation))
    _append_fields(etree.SubElement(call, qn(SERVICE_NAMESPACE, "param")), fields)
    return envelope, body


def _append_fields(parent: etree._Element, fields: Mapping[str, object]) -> None:
    for name, value in fields.items():
        if value is None:
            continue
        child = etree.SubElement(parent, qn(SERVICE_NAMESPACE, name))
        if isinstance(value, dict):
            _append_fields(child, value)
        else:
            child.text = str(value)


def header_of(envelope: etree._Element) -> etree._Element:
    header = envelope.find(qn(SOAP_NAMESPACE, "Header"))
    if header is None:
        header = etree.Element(qn(SOAP_NAMESPACE, "Header"))
        envelope.insert(0, header)
    return header


def to_bytes(envelope: etree._Element) -> bytes:
    return etree.tostring(envelope, xml_declaration=True, encoding=XML_ENCODING)


def element_to_dict(element: etree._Element) -> dict[str, object]:
    """Flatten a response element into nested dicts keyed by local name.

    Repeated children are collected into lists; leaves map to their text.
    """

    result: dict[str, object] = {}
    for child in element:
        if not isinstance(child.tag, str):
            continue
        name = local_name(child)
        value: object = element_to_dict(child) if len(child) else (child.text or "").strip()
        if name in result:
            existing = result[name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                result[name] = [existing, value]
        else:
            result[name] = value
    return result


def _raise_fault(fault: etree._Element) -> None:
    code = (fault.findtext("faultcode") or "").strip()
    message = (fault.findtext("faultstring") or "").strip() or "SOAP fault"
    lowered = code.lower()
    if any(marker in lowered for marker in _AUTHENTICATION_FAULT_MARKERS):
        raise AuthenticationFault(f"Gateway rejected credentials: {message}")
    raise ProtocolFaultError(f"Gateway fault {code or 'unknown'}: {message}", fault_code=code)


def parse_response(content: bytes, operation: str) -> etree._Element:
    """Return the ``<operation>Response`` element or raise the mapped fault."""

    try:
        envelope = parse_xml(content, remove_blank_text=True)
    except etree.XMLSyntaxError as exc:
        raise UnexpectedResponseError(f"Gateway returned malformed XML: {exc}") from exc

    body = envelope.find(qn(SOAP_NAMESPACE, "Body"))
    if body is None:
        raise UnexpectedResponseError("Gateway response has no SOAP body")
    fault = body.find(qn(SOAP_NAMESPACE, "Fault"))
    if fault is not None:
        _raise_fault(fault)

    expected = f"{operation}Response"
    for child in body:
        if isinstance(child.tag, str) and local_name(child) == expected:
            return child
    raise UnexpectedResponseError(f"Gateway response lacks {expected}")
