"""Domain ports (interfaces) implemented by adapters."""

from __future__ import annotations

from .documents import DocumentRenderer, DocumentValidator, ReceiptInspector
from .persistence import (
    ConfirmationRepository,
    DeclarationRepository,
    Repository,
    SignatureRecordRepository,
    StatusChangeRepository,
)
from .signing import (
    DelegatedSignature,
    DocumentSigner,
    IdentityProvider,
    SigningConfig,
    SigningResult,
)
from .transport import DeclarationGateway, StatusReport, SubmissionReceipt
from .unit_of_work import (
    FilingRepositories,
    FilingUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "ConfirmationRepository",
    "DeclarationGateway",
    "DeclarationRepository",
    "DelegatedSignature",
    "DocumentRenderer",
    "DocumentSigner",
    "DocumentValidator",
    "FilingRepositories",
    "FilingUnitOfWork",
    "IdentityProvider",
    "ReceiptInspector",
    "Repository",
    "RepositoryCollection",
    "SignatureRecordRepository",
    "SigningConfig",
    "SigningResult",
    "StatusChangeRepository",
    "StatusReport",
    "SubmissionReceipt",
    "UnitOfWork",
]
