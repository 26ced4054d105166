"""Signature engine and its strategies."""

from __future__ import annotations

from .certificates import (
    Credentials,
    NoRevocationChecks,
    RevocationChecker,
    StaticRevocationList,
    TrustPolicy,
    certificate_info,
    load_credentials,
    load_trust_anchors,
)
from .engine import SignatureEngine, build_signature_engine
from .strategies import (
    LocalCertificateStrategy,
    PlaceholderStrategy,
    SignatureArtifact,
    SigningStrategy,
    TrustedIdentityStrategy,
)
from .verification import FragmentVerifier, verify_fragment

__all__ = [
    "Credentials",
    "FragmentVerifier",
    "LocalCertificateStrategy",
    "NoRevocationChecks",
    "PlaceholderStrategy",
    "RevocationChecker",
    "SignatureArtifact",
    "SignatureEngine",
    "SigningStrategy",
    "StaticRevocationList",
    "TrustPolicy",
    "TrustedIdentityStrategy",
    "build_signature_engine",
    "certificate_info",
    "load_credentials",
    "load_trust_anchors",
    "verify_fragment",
]
