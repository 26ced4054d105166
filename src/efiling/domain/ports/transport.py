"""Port for the authority's submission gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.domain.model import AuthorityStatus, CertificateInfo


@dataclass(slots=True, frozen=True)
class SubmissionReceipt:
    confirmation_number: str
    confirmation_date: datetime
    status: AuthorityStatus
    status_code: str = ""
    message: str | None = None


@dataclass(slots=True, frozen=True)
class StatusReport:
    confirmation_number: str
    status_code: str
    status: AuthorityStatus
    status_description: str | None = None
    processing_date: datetime | None = None


@runtime_checkable
class DeclarationGateway(Protocol):
    """Request/response channel to the authority. Implementations never retry.

    Every failure is raised as a ``TransportError`` subclass.
    """

    def submit(
        self,
        signed_document: str,
        certificate: CertificateInfo | None = None,
    ) -> SubmissionReceipt: ...

    def check_status(self, confirmation_number: str) -> StatusReport: ...

    def fetch_receipt(self, confirmation_number: str) -> str: ...

    def probe_connectivity(self) -> bool: ...
