"""Fakes and builders for filing, tracking and receipt tests."""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from lxml import etree

from efiling.adapters.signing import build_signature_engine
from efiling.app import FilingApplication
from efiling.config import TrackingConfig
from efiling.domain.model import (
    AuthorityStatus,
    Declaration,
    DeclarationStatus,
    DeclarationType,
    Variant,
)
from efiling.domain.ports.signing import DelegatedSignature
from efiling.domain.ports.transport import StatusReport, SubmissionReceipt

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from efiling.adapters.signing import TrustPolicy
    from efiling.domain.model import CertificateInfo
    from efiling.domain.ports.unit_of_work import FilingUnitOfWork

CONFIRMATION_NUMBER = "AB12CD34EF56GH78IJ90KL12MN34OP56"


def confirmation_number(sequence: int) -> str:
    return f"CN{sequence:030d}"


def submission_receipt(
    number: str = CONFIRMATION_NUMBER,
    *,
    status: AuthorityStatus = AuthorityStatus.SUBMITTED,
    status_code: str = "100",
    confirmed_at: datetime | None = None,
) -> SubmissionReceipt:
    return SubmissionReceipt(
        confirmation_number=number,
        confirmation_date=confirmed_at or datetime(2025, 3, 10, 9, 0, tzinfo=UTC),
        status=status,
        status_code=status_code,
        message="przyjęto do przetwarzania",
    )


def status_report(
    number: str = CONFIRMATION_NUMBER,
    *,
    status: AuthorityStatus,
    status_code: str,
) -> StatusReport:
    return StatusReport(
        confirmation_number=number,
        status_code=status_code,
        status=status,
        status_description=f"status {status_code}",
    )


def receipt_xml(
    number: str = CONFIRMATION_NUMBER,
    *,
    form_code: str = "VAT-7",
    period: str = "2025-02",
    taxpayer_id: str = "1234563218",
    tax_office_code: str = "1471",
    confirmation_date: str = "2025-03-10",
    status_code: str = "300",
) -> str:
    root = etree.Element("DeklaracjaPotwierdzenie")
    header = etree.SubElement(root, "Naglowek")
    etree.SubElement(header, "KodFormularza").text = form_code
    etree.SubElement(header, "KodUrzedu").text = tax_office_code
    etree.SubElement(header, "Okres").text = period
    subject = etree.SubElement(header, "Podmiot")
    etree.SubElement(subject, "NIP").text = taxpayer_id
    etree.SubElement(header, "Kwota").text = "161"
    confirmation = etree.SubElement(root, "Potwierdzenie")
    etree.SubElement(confirmation, "NumerPotwierdzenia").text = number
    etree.SubElement(confirmation, "DataPotwierdzenia").text = confirmation_date
    etree.SubElement(confirmation, "Status").text = status_code
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8").decode("UTF-8")


class FakeGateway:
    """Scripted gateway; unscripted calls succeed with fresh confirmation numbers."""

    def __init__(
        self,
        *,
        submit_outcomes: Iterable[SubmissionReceipt | Exception] = (),
        reachable: bool = True,
    ) -> None:
        self.submit_outcomes: deque[SubmissionReceipt | Exception] = deque(submit_outcomes)
        self.status_outcomes: dict[str, deque[StatusReport | Exception]] = {}
        self.receipts: dict[str, str] = {}
        self.reachable = reachable
        self.submitted: list[str] = []
        self.certificates: list[CertificateInfo | None] = []
        self.status_checks: list[str] = []
        self.receipt_requests: list[str] = []
        self._sequence = 0

    def script_status(self, number: str, *outcomes: StatusReport | Exception) -> None:
        self.status_outcomes.setdefault(number, deque()).extend(outcomes)

    def submit(
        self,
        signed_document: str,
        certificate: CertificateInfo | None = None,
    ) -> SubmissionReceipt:
        self.submitted.append(signed_document)
        self.certificates.append(certificate)
        if self.submit_outcomes:
            outcome = self.submit_outcomes.popleft()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        self._sequence += 1
        return submission_receipt(confirmation_number(self._sequence))

    def check_status(self, confirmation_number: str) -> StatusReport:
        self.status_checks.append(confirmation_number)
        outcomes = self.status_outcomes.get(confirmation_number)
        if not outcomes:
            return status_report(
                confirmation_number, status=AuthorityStatus.PROCESSING, status_code="200"
            )
        outcome = outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def fetch_receipt(self, confirmation_number: str) -> str:
        self.receipt_requests.append(confirmation_number)
        return self.receipts.get(confirmation_number) or receipt_xml(confirmation_number)

    def probe_connectivity(self) -> bool:
        return self.reachable


class FakeIdentityProvider:
    def __init__(self, *, signed_at: datetime | None = None) -> None:
        self.requests: list[tuple[bytes, str]] = []
        self._signed_at = signed_at or datetime(2025, 3, 10, 9, 0, tzinfo=UTC)

    def request_signature(self, *, digest: bytes, reference: str) -> DelegatedSignature:
        self.requests.append((digest, reference))
        return DelegatedSignature(
            token=f"token-{digest.hex()[:16]}",
            signer_id=reference,
            signer_name="Jan Kowalski",
            issuer="Profil Zaufany",
            signed_at=self._signed_at,
        )


def build_application(
    unit_of_work_factory: Callable[[], FilingUnitOfWork],
    *,
    gateway: FakeGateway,
    trust: TrustPolicy,
    clock: Callable[[], datetime],
    max_retries: int = 3,
    batch_size: int = 10,
    identity_provider: FakeIdentityProvider | None = None,
) -> FilingApplication:
    signer = build_signature_engine(
        trust=trust,
        identity_provider=identity_provider,
        allow_placeholder=True,
        clock=clock,
    )
    return FilingApplication(
        unit_of_work_factory=unit_of_work_factory,
        gateway=gateway,
        signer=signer,
        identity_provider=identity_provider,
        tracking=TrackingConfig(max_retries=max_retries, batch_size=batch_size),
        trust=trust,
        clock=clock,
    )


class TickingClock:
    """Clock advancing by ``step`` on every read, so audit entries order strictly."""

    def __init__(
        self,
        start: datetime = datetime(2025, 3, 10, 9, 0, tzinfo=UTC),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


def store_declaration(
    unit_of_work_factory: Callable[[], FilingUnitOfWork],
    *,
    status: DeclarationStatus = DeclarationStatus.DRAFT,
    declaration_type: DeclarationType = DeclarationType.VAT_7,
    period: str = "2025-02",
    variant: Variant = Variant.MONTHLY,
    **fields: object,
) -> Declaration:
    declaration = Declaration(
        declaration_type=declaration_type,
        period=period,
        variant=variant,
        status=status,
        created_at=datetime(2025, 3, 1, tzinfo=UTC),
        updated_at=datetime(2025, 3, 1, tzinfo=UTC),
    )
    for name, value in fields.items():
        setattr(declaration, name, value)
    with unit_of_work_factory() as uow:
        uow.repositories.declarations.add(declaration)
        uow.commit()
    return declaration


def load_declaration(
    unit_of_work_factory: Callable[[], FilingUnitOfWork],
    declaration_id: UUID,
) -> Declaration:
    with unit_of_work_factory() as uow:
        declaration = uow.repositories.declarations.get(declaration_id)
    assert declaration is not None
    return declaration


if TYPE_CHECKING:
    from efiling.domain.ports.signing import IdentityProvider
    from efiling.domain.ports.transport import DeclarationGateway

    _gateway_check: DeclarationGateway = FakeGateway()
    _identity_check: IdentityProvider = FakeIdentityProvider()
