from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from efiling.adapters.signing import (
    LocalCertificateStrategy,
    PlaceholderStrategy,
    SignatureEngine,
    TrustedIdentityStrategy,
    TrustPolicy,
    build_signature_engine,
)
from efiling.documents import render
from efiling.documents.fragment import content_digest, read_fragment
from efiling.domain.errors import SignatureError, UntrustedCertificateError
from efiling.domain.model import SignatureType, SignatureValidationStatus, Variant
from efiling.domain.ports.signing import SigningConfig
from tests.helpers.certificates import TEST_ISSUER, write_certificate
from tests.helpers.filing import FakeIdentityProvider

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from efiling.adapters.signing import SigningStrategy
    from efiling.domain.model import CalculationData, EntityInfo
    from tests.helpers.certificates import CertificateFiles

SIGNED_AT = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
def document(vat_calculation: CalculationData, entity: EntityInfo) -> str:
    return render(vat_calculation, entity, Variant.MONTHLY)


def _engine(*strategies: SigningStrategy, allow_placeholder: bool = False) -> SignatureEngine:
    counter = iter(range(1, 100))
    return SignatureEngine(
        strategies,
        allow_placeholder=allow_placeholder,
        clock=lambda: SIGNED_AT,
        id_factory=lambda: f"sig-{next(counter)}",
    )


def _certificate_config(files: CertificateFiles) -> SigningConfig:
    return SigningConfig(
        signature_type=SignatureType.LOCAL_CERTIFICATE,
        certificate_path=files.certificate_path,
        private_key_path=files.private_key_path,
    )


def test_certificate_signature_is_embedded(
    document: str, certificate_files: CertificateFiles
) -> None:
    engine = _engine(LocalCertificateStrategy(TrustPolicy((TEST_ISSUER,))))

    result = engine.sign(document, _certificate_config(certificate_files))

    assert result.signature_id == "sig-1"
    assert result.signature_type is SignatureType.LOCAL_CERTIFICATE
    assert result.algorithm == "RSA-SHA256"
    assert result.validation_status is SignatureValidationStatus.VALID
    assert result.signing_time == SIGNED_AT
    assert result.content_hash == content_digest(document).hex()
    assert result.certificate_info is not None
    assert result.signer == result.certificate_info.subject
    fragment = read_fragment(result.signed_document)
    assert fragment is not None
    assert fragment.signature_id == "sig-1"
    assert fragment.value == result.signature_value
    assert fragment.certificate_der is not None


def test_resigning_replaces_the_fragment(
    document: str, certificate_files: CertificateFiles
) -> None:
    engine = _engine(LocalCertificateStrategy(TrustPolicy((TEST_ISSUER,))))
    config = _certificate_config(certificate_files)

    first = engine.sign(document, config)
    second = engine.sign(first.signed_document, config)

    assert second.signed_document.count("<Podpis") == 1
    assert second.content_hash == first.content_hash
    fragment = read_fragment(second.signed_document)
    assert fragment is not None
    assert fragment.signature_id == "sig-2"


def test_certificate_from_untrusted_issuer_is_refused(
    document: str, untrusted_certificate_files: CertificateFiles
) -> None:
    engine = _engine(LocalCertificateStrategy(TrustPolicy((TEST_ISSUER,))))

    with pytest.raises(UntrustedCertificateError, match="not on the trusted list"):
        engine.sign(document, _certificate_config(untrusted_certificate_files))


def test_signing_checks_the_issuer_against_configured_anchors(
    document: str, trust: TrustPolicy, certificate_files: CertificateFiles, tmp_path: Path
) -> None:
    engine = _engine(LocalCertificateStrategy(trust))
    self_signed = write_certificate(tmp_path, name="self-signed")

    with pytest.raises(UntrustedCertificateError, match="No trust anchor"):
        engine.sign(document, _certificate_config(self_signed))
    assert engine.sign(document, _certificate_config(certificate_files)).signed_document


def test_certificate_signing_needs_paths(document: str) -> None:
    engine = _engine(LocalCertificateStrategy())

    with pytest.raises(SignatureError, match="certificate and a private key"):
        engine.sign(document, SigningConfig(signature_type=SignatureType.LOCAL_CERTIFICATE))


def test_delegated_signature_carries_identity_token(document: str) -> None:
    provider = FakeIdentityProvider()
    engine = _engine(TrustedIdentityStrategy(provider))

    result = engine.sign(
        document,
        SigningConfig(
            signature_type=SignatureType.TRUSTED_IDENTITY, identity_reference="user-42"
        ),
    )

    digest = content_digest(document)
    assert provider.requests == [(digest, "user-42")]
    assert result.validation_status is SignatureValidationStatus.PENDING
    assert result.signature_value == f"token-{digest.hex()[:16]}"
    assert result.signer == "Jan Kowalski (user-42)"
    assert result.certificate_info is None


def test_delegated_signature_needs_reference(document: str) -> None:
    engine = _engine(TrustedIdentityStrategy(FakeIdentityProvider()))

    with pytest.raises(SignatureError, match="identity reference"):
        engine.sign(document, SigningConfig(signature_type=SignatureType.TRUSTED_IDENTITY))


def test_placeholder_is_refused_unless_allowed(document: str) -> None:
    config = SigningConfig(signature_type=SignatureType.NONE)

    with pytest.raises(SignatureError, match="test environments"):
        _engine(PlaceholderStrategy()).sign(document, config)

    result = _engine(PlaceholderStrategy(), allow_placeholder=True).sign(document, config)
    assert result.signature_type is SignatureType.NONE
    assert result.signature_value is None
    assert result.validation_status is SignatureValidationStatus.PENDING


def test_missing_strategy_is_reported(document: str) -> None:
    with pytest.raises(SignatureError, match="No signing strategy"):
        _engine().sign(
            document,
            SigningConfig(signature_type=SignatureType.TRUSTED_IDENTITY, identity_reference="x"),
        )


def test_explicit_signing_time_wins(
    document: str, clock: Callable[[], datetime]
) -> None:
    engine = build_signature_engine(allow_placeholder=True, clock=clock)
    when = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

    result = engine.sign(
        document, SigningConfig(signature_type=SignatureType.NONE, signing_time=when)
    )

    assert result.signing_time == when


def test_built_engine_lists_configured_strategies() -> None:
    plain = build_signature_engine()
    full = build_signature_engine(
        identity_provider=FakeIdentityProvider(), allow_placeholder=True
    )

    assert set(plain.available) == {SignatureType.LOCAL_CERTIFICATE}
    assert set(full.available) == {
        SignatureType.LOCAL_CERTIFICATE,
        SignatureType.TRUSTED_IDENTITY,
        SignatureType.NONE,
    }
