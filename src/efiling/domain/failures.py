"""Failure classification for transport and tracking errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from efiling.domain.errors import (
    AuthenticationFault,
    DeclarationValidationError,
    ProtocolFaultError,
    RateLimitedError,
    ServiceUnavailableError,
    SignatureError,
    TemporaryFailureError,
    TransportNetworkError,
    TransportTimeoutError,
    UnexpectedResponseError,
)
from efiling.domain.model.enums import ErrorCategory

RETRYABLE_CATEGORIES: Final = frozenset(
    {
        ErrorCategory.TIMEOUT,
        ErrorCategory.NETWORK,
        ErrorCategory.PROTOCOL_FAULT,
        ErrorCategory.SERVICE_UNAVAILABLE,
        ErrorCategory.TEMPORARY,
    }
)

USER_MESSAGES: Final[dict[ErrorCategory, str]] = {
    ErrorCategory.TIMEOUT: "The authority did not answer in time. The submission will be retried.",
    ErrorCategory.NETWORK: "The authority could not be reached. The submission will be retried.",
    ErrorCategory.PROTOCOL_FAULT: "The authority returned a protocol error. Retrying.",
    ErrorCategory.AUTHENTICATION: "Credentials were rejected. Check the certificate configuration.",
    ErrorCategory.VALIDATION: "The declaration is invalid. Correct the data and render it again.",
    ErrorCategory.SERVICE_UNAVAILABLE: "The authority service is unavailable. Retrying later.",
    ErrorCategory.TEMPORARY: "The authority reported a temporary problem. Retrying later.",
    ErrorCategory.UNKNOWN: "Unexpected error. The declaration needs manual review.",
}

# first match wins, so subclasses go before their bases
_CLASSIFICATION: Final[tuple[tuple[type[BaseException], ErrorCategory], ...]] = (
    (AuthenticationFault, ErrorCategory.AUTHENTICATION),
    (SignatureError, ErrorCategory.AUTHENTICATION),
    (DeclarationValidationError, ErrorCategory.VALIDATION),
    (RateLimitedError, ErrorCategory.TEMPORARY),
    (TemporaryFailureError, ErrorCategory.TEMPORARY),
    (TransportTimeoutError, ErrorCategory.TIMEOUT),
    (TransportNetworkError, ErrorCategory.NETWORK),
    (ServiceUnavailableError, ErrorCategory.SERVICE_UNAVAILABLE),
    (ProtocolFaultError, ErrorCategory.PROTOCOL_FAULT),
    (UnexpectedResponseError, ErrorCategory.PROTOCOL_FAULT),
    (TimeoutError, ErrorCategory.TIMEOUT),
    (ConnectionError, ErrorCategory.NETWORK),
)


@dataclass(slots=True, frozen=True)
class ClassifiedFailure:
    category: ErrorCategory
    message: str
    error_type: str
    retry_after: float | None = None

    @property
    def retryable(self) -> bool:
        return self.category in RETRYABLE_CATEGORIES

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.category]

    def describe(self) -> str:
        return f"{self.category}: {self.error_type}: {self.message}"


def classify(error: BaseException) -> ClassifiedFailure:
    """Map a raised failure onto one of the fixed error categories."""

    category = ErrorCategory.UNKNOWN
    for error_type, candidate in _CLASSIFICATION:
        if isinstance(error, error_type):
            category = candidate
            break

    retry_after = error.retry_after if isinstance(error, RateLimitedError) else None
    return ClassifiedFailure(
        category=category,
        message=str(error) or error.__class__.__name__,
        error_type=error.__class__.__name__,
        retry_after=retry_after,
    )
