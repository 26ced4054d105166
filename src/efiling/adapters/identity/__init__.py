"""Client for the trusted identity service issuing delegated signatures."""

from __future__ import annotations

from .client import TrustedProfileClient

__all__ = ["TrustedProfileClient"]
