"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class DeclarationType(StrEnum):
    JPK_V7 = "JPK_V7"
    VAT_7 = "VAT-7"
    PIT_36 = "PIT-36"
    PIT_36L = "PIT-36L"
    CIT_8 = "CIT-8"


class Variant(StrEnum):
    """Filing frequency of a declaration type."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class DeclarationStatus(StrEnum):
    DRAFT = "draft"
    READY = "ready"
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    RETRY_PENDING = "retry_pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {DeclarationStatus.ACCEPTED, DeclarationStatus.REJECTED, DeclarationStatus.FAILED}
)
AWAITING_OUTCOME_STATUSES = frozenset(
    {
        DeclarationStatus.SUBMITTED,
        DeclarationStatus.PROCESSING,
        DeclarationStatus.RETRY_PENDING,
    }
)


class AuthorityStatus(StrEnum):
    """Semantic outcome reported by the authority for a submitted declaration."""

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERROR = "error"


class SignatureType(StrEnum):
    TRUSTED_IDENTITY = "trusted_identity"
    LOCAL_CERTIFICATE = "local_certificate"
    NONE = "none"


class SignatureValidationStatus(StrEnum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


class TransitionTrigger(StrEnum):
    CALLER = "caller"
    SWEEP = "sweep"
    TRANSPORT = "transport"
    OPERATOR = "operator"


class ErrorCategory(StrEnum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    PROTOCOL_FAULT = "protocol-fault"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    SERVICE_UNAVAILABLE = "service-unavailable"
    TEMPORARY = "temporary"
    UNKNOWN = "unknown"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
