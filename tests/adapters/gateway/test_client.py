from __future__ import annotations

import base64
import hashlib
from typing import TYPE_CHECKING

import httpx
import pytest
from lxml import etree

from efiling.adapters.gateway import GatewayClient, map_status_code
from efiling.adapters.gateway.envelope import SERVICE_NAMESPACE, SOAP_NAMESPACE
from efiling.adapters.gateway.security import DS_NAMESPACE, WSSE_NAMESPACE
from efiling.adapters.http_resilience import ResilienceConfig, ResilientClient
from efiling.adapters.signing import load_credentials
from efiling.adapters.signing.certificates import verify_digest
from efiling.config.gateway import GatewayConfig
from efiling.documents import render
from efiling.documents.xml import canonicalize
from efiling.domain.errors import (
    AuthenticationFault,
    DeclarationValidationError,
    ProtocolFaultError,
    RateLimitedError,
    ServiceUnavailableError,
    TransportNetworkError,
    TransportTimeoutError,
    UnexpectedResponseError,
)
from efiling.domain.model import AuthorityStatus, Variant
from tests.helpers.filing import CONFIRMATION_NUMBER

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from efiling.adapters.signing import Credentials
    from efiling.domain.model import CalculationData, EntityInfo
    from tests.helpers.certificates import CertificateFiles

ENDPOINT = "https://gateway.test/ws/e-Deklaracje"


def _soap(body: str) -> bytes:
    return (
        f'<soap:Envelope xmlns:soap="{SOAP_NAMESPACE}" xmlns:ed="{SERVICE_NAMESPACE}">'
        f"<soap:Body>{body}</soap:Body></soap:Envelope>"
    ).encode()


def _fault(code: str, message: str) -> bytes:
    return _soap(
        f"<soap:Fault><faultcode>{code}</faultcode><faultstring>{message}</faultstring>"
        "</soap:Fault>"
    )


def _submit_response(status_code: str = "100", date: str = "2025-03-10T09:00:00Z") -> bytes:
    return _soap(
        "<ed:WyslijDeklaracjeResponse><ed:potwierdzenie>"
        f"<ed:numerPotwierdzenia>{CONFIRMATION_NUMBER}</ed:numerPotwierdzenia>"
        f"<ed:dataPotwierdzenia>{date}</ed:dataPotwierdzenia>"
        f"<ed:kodStatusu>{status_code}</ed:kodStatusu>"
        "<ed:opis>Dokument przyjęty</ed:opis>"
        "</ed:potwierdzenie></ed:WyslijDeklaracjeResponse>"
    )


def _status_response(status_code: str) -> bytes:
    return _soap(
        "<ed:SprawdzStatusResponse>"
        f"<ed:numerPotwierdzenia>{CONFIRMATION_NUMBER}</ed:numerPotwierdzenia>"
        f"<ed:kodStatusu>{status_code}</ed:kodStatusu>"
        "<ed:opisStatusu>opis</ed:opisStatusu>"
        "<ed:dataPrzetworzenia></ed:dataPrzetworzenia>"
        "</ed:SprawdzStatusResponse>"
    )


class _Recorder:
    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def credentials(certificate_files: CertificateFiles) -> Credentials:
    return load_credentials(certificate_files.certificate_path, certificate_files.private_key_path)


@pytest.fixture
def document(vat_calculation: CalculationData, entity: EntityInfo) -> str:
    return render(vat_calculation, entity, Variant.MONTHLY)


@pytest.fixture
def make_client(
    credentials: Credentials, clock: Callable[[], datetime]
) -> Callable[[_Recorder], GatewayClient]:
    def make(recorder: _Recorder) -> GatewayClient:
        return GatewayClient(
            credentials=credentials,
            config=GatewayConfig(
                endpoint_url=ENDPOINT,
                test_environment=True,
                resilience=ResilienceConfig(name="gateway"),
            ),
            clock=clock,
            client_factory=_make_client_factory(recorder),
        )

    return make


def test_submit_posts_signed_envelope_and_reads_receipt(
    make_client: Callable[[_Recorder], GatewayClient],
    credentials: Credentials,
    document: str,
) -> None:
    recorder = _Recorder(httpx.Response(200, content=_submit_response()))

    receipt = make_client(recorder).submit(document)

    assert receipt.confirmation_number == CONFIRMATION_NUMBER
    assert receipt.status is AuthorityStatus.SUBMITTED
    assert receipt.status_code == "100"
    assert receipt.message == "Dokument przyjęty"
    assert receipt.confirmation_date.isoformat() == "2025-03-10T09:00:00+00:00"

    [request] = recorder.requests
    assert str(request.url) == ENDPOINT
    assert request.headers["SOAPAction"] == f'"{SERVICE_NAMESPACE}WyslijDeklaracje"'
    envelope = etree.fromstring(request.content)
    param = envelope.find(f".//{{{SERVICE_NAMESPACE}}}param")
    assert param is not None
    dokument = param.find(f"{{{SERVICE_NAMESPACE}}}dokument")
    assert dokument is not None
    assert dokument.findtext(f"{{{SERVICE_NAMESPACE}}}kodFormularza") == "VAT-7"
    assert dokument.findtext(f"{{{SERVICE_NAMESPACE}}}zawartosc") == document
    assert param.find(f"{{{SERVICE_NAMESPACE}}}certyfikat") is None
    token = envelope.findtext(f".//{{{WSSE_NAMESPACE}}}BinarySecurityToken")
    assert token == credentials.certificate_der


def test_ws_security_signature_covers_the_body(
    make_client: Callable[[_Recorder], GatewayClient],
    credentials: Credentials,
    document: str,
) -> None:
    recorder = _Recorder(httpx.Response(200, content=_submit_response()))
    make_client(recorder).submit(document)

    envelope = etree.fromstring(recorder.requests[0].content)
    body = envelope.find(f"{{{SOAP_NAMESPACE}}}Body")
    signed_info = envelope.find(f".//{{{DS_NAMESPACE}}}SignedInfo")
    assert body is not None
    assert signed_info is not None
    digest_value = signed_info.findtext(f".//{{{DS_NAMESPACE}}}DigestValue")
    assert digest_value == base64.b64encode(hashlib.sha256(canonicalize(body)).digest()).decode()
    signature = envelope.findtext(f".//{{{DS_NAMESPACE}}}SignatureValue")
    assert signature is not None
    verify_digest(
        credentials.certificate,
        base64.b64decode(signature),
        hashlib.sha256(canonicalize(signed_info)).digest(),
    )


def test_submit_passes_certificate_metadata(
    make_client: Callable[[_Recorder], GatewayClient],
    credentials: Credentials,
    document: str,
) -> None:
    recorder = _Recorder(httpx.Response(200, content=_submit_response()))

    make_client(recorder).submit(document, credentials.info)

    envelope = etree.fromstring(recorder.requests[0].content)
    serial = envelope.findtext(
        f".//{{{SERVICE_NAMESPACE}}}certyfikat/{{{SERVICE_NAMESPACE}}}numerSeryjny"
    )
    assert serial == credentials.info.serial_number


def test_submit_refuses_malformed_document_without_calling_out(
    make_client: Callable[[_Recorder], GatewayClient],
) -> None:
    recorder = _Recorder()

    with pytest.raises(DeclarationValidationError):
        make_client(recorder).submit("<Deklaracja>")

    assert recorder.requests == []


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("100", AuthorityStatus.SUBMITTED),
        ("200", AuthorityStatus.PROCESSING),
        ("300", AuthorityStatus.ACCEPTED),
        ("400", AuthorityStatus.REJECTED),
        ("401", AuthorityStatus.ERROR),
        ("999", AuthorityStatus.ERROR),
    ],
)
def test_check_status_maps_authority_codes(
    make_client: Callable[[_Recorder], GatewayClient],
    code: str,
    expected: AuthorityStatus,
) -> None:
    recorder = _Recorder(httpx.Response(200, content=_status_response(code)))

    report = make_client(recorder).check_status(CONFIRMATION_NUMBER)

    assert report.status is expected
    assert report.status_code == code
    assert report.status_description == "opis"
    assert report.processing_date is None
    assert map_status_code(f" {code} ") is expected


def test_fetch_receipt_returns_the_receipt_document(
    make_client: Callable[[_Recorder], GatewayClient],
) -> None:
    receipt = "<DeklaracjaPotwierdzenie/>"
    escaped = receipt.replace("<", "&lt;").replace(">", "&gt;")
    body = f"<ed:PobierzUPOResponse><ed:upo>{escaped}</ed:upo></ed:PobierzUPOResponse>"
    recorder = _Recorder(httpx.Response(200, content=_soap(body)))

    assert make_client(recorder).fetch_receipt(CONFIRMATION_NUMBER) == receipt


def test_rate_limit_carries_retry_after(
    make_client: Callable[[_Recorder], GatewayClient],
) -> None:
    recorder = _Recorder(httpx.Response(429, headers={"Retry-After": "90"}))

    with pytest.raises(RateLimitedError) as excinfo:
        make_client(recorder).check_status(CONFIRMATION_NUMBER)

    assert excinfo.value.retry_after == 90.0


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(503), ServiceUnavailableError),
        (httpx.Response(504), ServiceUnavailableError),
        (httpx.Response(401), AuthenticationFault),
        (httpx.Response(403), AuthenticationFault),
        (httpx.Response(500, content=_fault("soap:Server", "Internal")), ProtocolFaultError),
        (
            httpx.Response(500, content=_fault("wsse:InvalidSecurity", "Bad signature")),
            AuthenticationFault,
        ),
        (httpx.Response(200, content=_fault("soap:Client", "Bad request")), ProtocolFaultError),
        (httpx.Response(500, content=b"<html>oops</html>"), UnexpectedResponseError),
        (httpx.Response(200, content=b"not xml"), UnexpectedResponseError),
        (httpx.Response(200, content=_soap("<ed:InnaResponse/>")), UnexpectedResponseError),
        (
            httpx.Response(200, content=_soap("<ed:SprawdzStatusResponse/>")),
            UnexpectedResponseError,
        ),
    ],
)
def test_failures_are_mapped_to_transport_errors(
    make_client: Callable[[_Recorder], GatewayClient],
    response: httpx.Response,
    error: type[Exception],
) -> None:
    with pytest.raises(error):
        make_client(_Recorder(response)).check_status(CONFIRMATION_NUMBER)


def test_protocol_fault_keeps_the_fault_code(
    make_client: Callable[[_Recorder], GatewayClient],
) -> None:
    recorder = _Recorder(httpx.Response(500, content=_fault("soap:Server", "Internal")))

    with pytest.raises(ProtocolFaultError) as excinfo:
        make_client(recorder).check_status(CONFIRMATION_NUMBER)

    assert excinfo.value.fault_code == "soap:Server"


@pytest.mark.parametrize(
    ("exception", "error"),
    [
        (httpx.ConnectTimeout("slow"), TransportTimeoutError),
        (httpx.ReadTimeout("slow"), TransportTimeoutError),
        (httpx.ConnectError("refused"), TransportNetworkError),
    ],
)
def test_network_problems_are_classified(
    make_client: Callable[[_Recorder], GatewayClient],
    exception: Exception,
    error: type[Exception],
) -> None:
    with pytest.raises(error):
        make_client(_Recorder(exception)).check_status(CONFIRMATION_NUMBER)


def test_invalid_confirmation_date_is_unexpected(
    make_client: Callable[[_Recorder], GatewayClient],
    document: str,
) -> None:
    recorder = _Recorder(httpx.Response(200, content=_submit_response(date="jutro")))

    with pytest.raises(UnexpectedResponseError, match="invalid date"):
        make_client(recorder).submit(document)


def test_probe_reports_reachability(make_client: Callable[[_Recorder], GatewayClient]) -> None:
    listing = _soap(
        "<ed:PobierzFormularzeResponse><ed:formularze>"
        "<ed:formularz><ed:kodFormularza>VAT-7</ed:kodFormularza></ed:formularz>"
        "<ed:formularz><ed:kodFormularza>CIT-8</ed:kodFormularza></ed:formularz>"
        "</ed:formularze></ed:PobierzFormularzeResponse>"
    )
    reachable = _Recorder(httpx.Response(200, content=listing))
    unreachable = _Recorder(httpx.ConnectError("refused"))

    assert make_client(reachable).probe_connectivity() is True
    assert make_client(unreachable).probe_connectivity() is False
    assert reachable.requests[0].headers["SOAPAction"] == (
        f'"{SERVICE_NAMESPACE}PobierzFormularze"'
    )
