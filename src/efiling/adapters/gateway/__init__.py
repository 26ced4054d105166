"""SOAP transport client for the authority's declaration gateway."""

from __future__ import annotations

from .client import STATUS_CODES, GatewayClient, map_status_code
from .envelope import build_envelope, parse_response
from .security import apply_ws_security

__all__ = [
    "STATUS_CODES",
    "GatewayClient",
    "apply_ws_security",
    "build_envelope",
    "map_status_code",
    "parse_response",
]
