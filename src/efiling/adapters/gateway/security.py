"""WS-Security header signing the SOAP body with the configured certificate."""

from __future__ import annotations

import base64
import hashlib
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from lxml import etree

from efiling.adapters.signing.certificates import sign_digest
from efiling.documents.fragment import format_timestamp
from efiling.documents.xml import EXC_C14N_ALGORITHM, canonicalize, qn

from .envelope import BODY_ID, SOAP_NAMESPACE, WSU_NAMESPACE, header_of

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.adapters.signing.certificates import Credentials

WSSE_NAMESPACE: Final[str] = (
    "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
)
DS_NAMESPACE: Final[str] = "http://www.w3.org/2000/09/xmldsig#"
X509_TOKEN_TYPE: Final[str] = (
    "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-x509-token-profile-1.0#X509v3"
)
BASE64_ENCODING_TYPE: Final[str] = (
    "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-soap-message-security-1.0#Base64Binary"
)
RSA_SHA256_ALGORITHM: Final[str] = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256"
SHA256_ALGORITHM: Final[str] = "http://www.w3.org/2001/04/xmlenc#sha256"
TOKEN_ID: Final[str] = "X509Token"
TIMESTAMP_TTL: Final[timedelta] = timedelta(minutes=5)


def _ds(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    child = etree.SubElement(parent, qn(DS_NAMESPACE, tag))
    if text is not None:
        child.text = text
    return child


def _signed_info(body_digest: bytes) -> etree._Element:
    signed_info = etree.Element(qn(DS_NAMESPACE, "SignedInfo"), nsmap={"ds": DS_NAMESPACE})
    _ds(signed_info, "CanonicalizationMethod").set("Algorithm", EXC_C14N_ALGORITHM)
    _ds(signed_info, "SignatureMethod").set("Algorithm", RSA_SHA256_ALGORITHM)
    reference = _ds(signed_info, "Reference")
    reference.set("URI", f"#{BODY_ID}")
    _ds(_ds(reference, "Transforms"), "Transform").set("Algorithm", EXC_C14N_ALGORITHM)
    _ds(reference, "DigestMethod").set("Algorithm", SHA256_ALGORITHM)
    _ds(reference, "DigestValue", base64.b64encode(body_digest).decode("ascii"))
    return signed_info


def apply_ws_security(
    envelope: etree._Element,
    body: etree._Element,
    credentials: Credentials,
    *,
    now: datetime,
) -> None:
    """Add timestamp, certificate token and body signature to the SOAP header.

    The body must be complete before this is called.
    """

    security = etree.SubElement(
        header_of(envelope),
        qn(WSSE_NAMESPACE, "Security"),
        nsmap={"wsse": WSSE_NAMESPACE, "ds": DS_NAMESPACE},
    )
    security.set(qn(SOAP_NAMESPACE, "mustUnderstand"), "1")

    timestamp = etree.SubElement(security, qn(WSU_NAMESPACE, "Timestamp"))
    timestamp.set(qn(WSU_NAMESPACE, "Id"), "Timestamp")
    etree.SubElement(timestamp, qn(WSU_NAMESPACE, "Created")).text = format_timestamp(now)
    etree.SubElement(timestamp, qn(WSU_NAMESPACE, "Expires")).text = format_timestamp(
        now + TIMESTAMP_TTL
    )

    token = etree.SubElement(security, qn(WSSE_NAMESPACE, "BinarySecurityToken"))
    token.set("ValueType", X509_TOKEN_TYPE)
    token.set("EncodingType", BASE64_ENCODING_TYPE)
    token.set(qn(WSU_NAMESPACE, "Id"), TOKEN_ID)
    token.text = credentials.certificate_der

    signed_info = _signed_info(hashlib.sha256(canonicalize(body)).digest())
    signature_value = sign_digest(
        credentials.private_key, hashlib.sha256(canonicalize(signed_info)).digest()
    )

    signature = _ds(security, "Signature")
    signature.append(signed_info)
    _ds(signature, "SignatureValue", base64.b64encode(signature_value).decode("ascii"))
    reference = etree.SubElement(
        etree.SubElement(_ds(signature, "KeyInfo"), qn(WSSE_NAMESPACE, "SecurityTokenReference")),
        qn(WSSE_NAMESPACE, "Reference"),
    )
    reference.set("URI", f"#{TOKEN_ID}")
    reference.set("ValueType", X509_TOKEN_TYPE)
