"""Error hierarchy raised across the filing pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from efiling.domain.model.validation import ValidationReport


class FilingError(RuntimeError):
    """Base class for every error raised by the filing pipeline."""


class DeclarationNotFoundError(FilingError, LookupError):
    def __init__(self, declaration_id: UUID) -> None:
        super().__init__(f"Declaration {declaration_id} not found")
        self.declaration_id = declaration_id


class DeclarationValidationError(FilingError):
    """Raised when input data or a document fails validation."""

    def __init__(self, message: str, *, report: ValidationReport | None = None) -> None:
        super().__init__(message)
        self.report = report


class RenderError(DeclarationValidationError):
    """Raised when calculation or entity data cannot be rendered."""


class DocumentFrozenError(FilingError):
    """Raised when a signed or submitted document would be modified."""


class SignatureError(FilingError):
    """Raised when a document cannot be signed with the requested strategy."""


class UntrustedCertificateError(SignatureError):
    """Raised when a certificate fails the trust policy."""


class UnverifiableSignatureError(SignatureError):
    """Raised when a signature is present but its type cannot be checked locally."""


class TransportError(FilingError):
    """Raised by the transport client for any failed exchange with the authority."""


class TransportTimeoutError(TransportError):
    pass


class TransportNetworkError(TransportError):
    pass


class ProtocolFaultError(TransportError):
    """The authority answered with a protocol-level fault."""

    def __init__(self, message: str, *, fault_code: str | None = None) -> None:
        super().__init__(message)
        self.fault_code = fault_code


class UnexpectedResponseError(TransportError):
    """The authority answered with a payload of an unexpected shape."""


class ServiceUnavailableError(TransportError):
    pass


class TemporaryFailureError(TransportError):
    """The authority reported a transient processing error."""


class RateLimitedError(TransportError):
    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationFault(TransportError):
    """The authority rejected our credentials; reconfiguration is required."""


class InvalidTransitionError(FilingError):
    """Raised when a status transition is not allowed for the given trigger."""


class TransitionInProgressError(FilingError):
    """Raised when another actor currently holds the declaration lock."""

    def __init__(self, declaration_id: UUID) -> None:
        super().__init__(f"Declaration {declaration_id} already in progress")
        self.declaration_id = declaration_id


class ConfirmationConflictError(FilingError):
    """Raised when a confirmation number is already owned by another declaration."""
