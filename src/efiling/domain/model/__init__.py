"""Domain model for declarations, signatures, receipts and their audit trail."""

from __future__ import annotations

from .audit import StatusChange
from .confirmation import Confirmation, ReceiptDocument
from .declaration import SUPPORTED_VARIANTS, Declaration, expected_form_code
from .entity import Entity, new_id, utcnow
from .enums import (
    AWAITING_OUTCOME_STATUSES,
    TERMINAL_STATUSES,
    AuthorityStatus,
    DeclarationStatus,
    DeclarationType,
    ErrorCategory,
    Severity,
    SignatureType,
    SignatureValidationStatus,
    TransitionTrigger,
    Variant,
)
from .inputs import Address, Amount, CalculationData, EntityInfo, LedgerRow
from .period import ReportingPeriod
from .signature import CertificateInfo, SignatureRecord
from .validation import ValidationIssue, ValidationReport

__all__ = [
    "AWAITING_OUTCOME_STATUSES",
    "SUPPORTED_VARIANTS",
    "TERMINAL_STATUSES",
    "Address",
    "Amount",
    "AuthorityStatus",
    "CalculationData",
    "CertificateInfo",
    "Confirmation",
    "Declaration",
    "DeclarationStatus",
    "DeclarationType",
    "Entity",
    "EntityInfo",
    "ErrorCategory",
    "LedgerRow",
    "ReceiptDocument",
    "ReportingPeriod",
    "Severity",
    "SignatureRecord",
    "SignatureType",
    "SignatureValidationStatus",
    "StatusChange",
    "TransitionTrigger",
    "ValidationIssue",
    "ValidationReport",
    "Variant",
    "expected_form_code",
    "new_id",
    "utcnow",
]
