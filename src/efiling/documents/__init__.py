"""XML documents exchanged with the authority."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .fragment import (
    SignatureFragment,
    canonical_content,
    content_digest,
    embed_fragment,
    read_fragment,
)
from .receipt import ReceiptValidator, parse_receipt, validate_receipt
from .renderer import render
from .schemas import SUPPORTED_FORM_CODES, DocumentSchema, schema_for
from .validator import DocumentValidator, validate

if TYPE_CHECKING:
    from efiling.domain.ports.documents import (
        DocumentRenderer,
        DocumentValidator as DocumentValidatorPort,
        ReceiptInspector,
    )

    _renderer_check: DocumentRenderer = render
    _validator_check: DocumentValidatorPort = DocumentValidator()
    _inspector_check: ReceiptInspector = ReceiptValidator()

__all__ = [
    "SUPPORTED_FORM_CODES",
    "DocumentSchema",
    "DocumentValidator",
    "ReceiptValidator",
    "SignatureFragment",
    "canonical_content",
    "content_digest",
    "embed_fragment",
    "parse_receipt",
    "read_fragment",
    "render",
    "schema_for",
    "validate",
    "validate_receipt",
]
