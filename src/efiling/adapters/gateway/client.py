"""SOAP client for the authority's declaration gateway."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from lxml import etree
from pydantic import ValidationError

from efiling.adapters.http_resilience import ResilientClient
from efiling.config.gateway import GatewayConfig, get_gateway_config
from efiling.documents.xml import child_text, parse_xml
from efiling.domain.clock import system_clock
from efiling.domain.confirmation import parse_confirmation_date
from efiling.domain.errors import (
    AuthenticationFault,
    DeclarationValidationError,
    RateLimitedError,
    ServiceUnavailableError,
    TransportError,
    TransportNetworkError,
    TransportTimeoutError,
    UnexpectedResponseError,
)
from efiling.domain.model import AuthorityStatus
from efiling.domain.ports.transport import DeclarationGateway, StatusReport, SubmissionReceipt

from .envelope import SERVICE_NAMESPACE, build_envelope, element_to_dict, parse_response, to_bytes
from .schema import FormsResponse, ReceiptResponse, StatusResponse, SubmitResponse
from .security import apply_ws_security

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from pydantic import BaseModel

    from efiling.adapters.signing.certificates import Credentials
    from efiling.config.http_resilience import ResilienceConfig
    from efiling.domain.clock import Clock
    from efiling.domain.model import CertificateInfo

log = getLogger(__name__)

SUBMIT_OPERATION: Final[str] = "WyslijDeklaracje"
STATUS_OPERATION: Final[str] = "SprawdzStatus"
RECEIPT_OPERATION: Final[str] = "PobierzUPO"
FORMS_OPERATION: Final[str] = "PobierzFormularze"

STATUS_CODES: Final[Mapping[str, AuthorityStatus]] = {
    "100": AuthorityStatus.SUBMITTED,
    "200": AuthorityStatus.PROCESSING,
    "300": AuthorityStatus.ACCEPTED,
    "400": AuthorityStatus.REJECTED,
}
_UNAVAILABLE_CODES: Final[frozenset[int]] = frozenset({502, 503, 504})
_AUTHENTICATION_CODES: Final[frozenset[int]] = frozenset({401, 403})


def map_status_code(code: str) -> AuthorityStatus:
    return STATUS_CODES.get(code.strip(), AuthorityStatus.ERROR)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _document_metadata(document: str) -> tuple[str, str | None]:
    try:
        root = parse_xml(document)
    except etree.XMLSyntaxError as exc:
        raise DeclarationValidationError(f"Signed document is not well-formed: {exc}") from exc
    form_code = child_text(root, "Naglowek", "KodFormularza") or child_text(
        root, "Naglowek", "KodFormularzaDekl"
    )
    if form_code is None:
        raise DeclarationValidationError("Signed document has no form code")
    return form_code, child_text(root, "Naglowek", "Version")


@dataclass(slots=True)
class GatewayClient:
    """Request/response channel to the authority's SOAP gateway.

    Each call is one signed attempt; failures are raised as ``TransportError``
    subclasses and retry decisions are left to the caller.
    """

    credentials: Credentials
    config: GatewayConfig = field(default_factory=get_gateway_config)
    clock: Clock = system_clock
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def submit(
        self,
        signed_document: str,
        certificate: CertificateInfo | None = None,
    ) -> SubmissionReceipt:
        return asyncio.run(self.submit_async(signed_document, certificate))

    def check_status(self, confirmation_number: str) -> StatusReport:
        return asyncio.run(self.check_status_async(confirmation_number))

    def fetch_receipt(self, confirmation_number: str) -> str:
        return asyncio.run(self.fetch_receipt_async(confirmation_number))

    def probe_connectivity(self) -> bool:
        return asyncio.run(self.probe_connectivity_async())

    async def submit_async(
        self,
        signed_document: str,
        certificate: CertificateInfo | None = None,
    ) -> SubmissionReceipt:
        form_code, version = _document_metadata(signed_document)
        now = self.clock()
        fields: dict[str, object] = {
            "dokument": {
                "kodFormularza": form_code,
                "wersja": version,
                "zawartosc": signed_document,
                "dataUtworzenia": now.date().isoformat(),
                "opis": f"{form_code} declaration",
            },
            "certyfikat": (
                {
                    "numerSeryjny": certificate.serial_number,
                    "wystawca": certificate.issuer,
                    "dataOd": certificate.valid_from.date().isoformat(),
                    "dataDo": certificate.valid_to.date().isoformat(),
                }
                if certificate is not None
                else None
            ),
        }
        log.info(f"Submitting {form_code} to the {self.config.environment_name} gateway")
        payload = await self._call(SUBMIT_OPERATION, fields, SubmitResponse)
        confirmation = payload.confirmation
        receipt = SubmissionReceipt(
            confirmation_number=confirmation.confirmation_number,
            confirmation_date=self._parse_date(confirmation.confirmation_date),
            status=map_status_code(confirmation.status_code),
            status_code=confirmation.status_code,
            message=confirmation.description,
        )
        log.info(f"Gateway accepted submission as {receipt.confirmation_number}")
        return receipt

    async def check_status_async(self, confirmation_number: str) -> StatusReport:
        payload = await self._call(
            STATUS_OPERATION, {"numerPotwierdzenia": confirmation_number}, StatusResponse
        )
        report = StatusReport(
            confirmation_number=payload.confirmation_number,
            status_code=payload.status_code,
            status=map_status_code(payload.status_code),
            status_description=payload.status_description,
            processing_date=(
                self._parse_date(payload.processing_date) if payload.processing_date else None
            ),
        )
        log.debug(f"Status of {confirmation_number}: {report.status_code} ({report.status})")
        return report

    async def fetch_receipt_async(self, confirmation_number: str) -> str:
        payload = await self._call(
            RECEIPT_OPERATION, {"numerPotwierdzenia": confirmation_number}, ReceiptResponse
        )
        return payload.receipt

    async def probe_connectivity_async(self) -> bool:
        try:
            payload = await self._call(
                FORMS_OPERATION, {"data": self.clock().date().isoformat()}, FormsResponse
            )
        except TransportError as exc:
            log.warning(f"Gateway probe failed: {exc}")
            return False
        forms = len(payload.listing.forms) if payload.listing else 0
        log.info(f"Gateway reachable ({self.config.environment_name}), {forms} forms available")
        return True

    @staticmethod
    def _parse_date(value: str) -> datetime:
        try:
            return parse_confirmation_date(value)
        except ValueError as exc:
            raise UnexpectedResponseError(f"Gateway returned an invalid date {value!r}") from exc

    async def _call[M: BaseModel](
        self,
        operation: str,
        fields: Mapping[str, object],
        model: type[M],
    ) -> M:
        envelope, body = build_envelope(operation, fields)
        apply_ws_security(envelope, body, self.credentials, now=self.clock())
        try:
            async with self.client_factory(self.config.resilience) as client:
                response = await client.post(
                    self.config.endpoint_url,
                    content=to_bytes(envelope),
                    headers={"SOAPAction": f'"{SERVICE_NAMESPACE}{operation}"'},
                )
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(f"{operation} timed out") from exc
        except httpx.TransportError as exc:
            raise TransportNetworkError(f"{operation} failed: {exc}") from exc

        self._raise_for_status(operation, response)
        element = parse_response(response.content, operation)
        try:
            return model.model_validate(element_to_dict(element))
        except ValidationError as exc:
            raise UnexpectedResponseError(f"{operation} returned an incomplete payload") from exc

    @staticmethod
    def _raise_for_status(operation: str, response: httpx.Response) -> None:
        status = response.status_code
        if status in _AUTHENTICATION_CODES:
            raise AuthenticationFault(f"{operation} rejected with HTTP {status}")
        if status == 429:
            raise RateLimitedError(
                f"{operation} was rate limited", retry_after=_retry_after(response)
            )
        if status in _UNAVAILABLE_CODES:
            raise ServiceUnavailableError(f"{operation} unavailable (HTTP {status})")
        if response.is_error:
            parse_response(response.content, operation)
            raise UnexpectedResponseError(f"{operation} failed with HTTP {status}")


if TYPE_CHECKING:
    _gateway_check: type[DeclarationGateway] = GatewayClient
