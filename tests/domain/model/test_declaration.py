from __future__ import annotations

import pytest

from efiling.domain.errors import DocumentFrozenError
from efiling.domain.model import (
    Declaration,
    DeclarationStatus,
    DeclarationType,
    ReportingPeriod,
    SignatureType,
    Variant,
    expected_form_code,
)


@pytest.mark.parametrize(
    ("declaration_type", "variant", "form_code"),
    [
        (DeclarationType.JPK_V7, Variant.MONTHLY, "JPK_V7M"),
        (DeclarationType.JPK_V7, Variant.QUARTERLY, "JPK_V7K"),
        (DeclarationType.VAT_7, Variant.MONTHLY, "VAT-7"),
        (DeclarationType.PIT_36, Variant.ANNUAL, "PIT-36"),
        (DeclarationType.PIT_36L, Variant.ANNUAL, "PIT-36L"),
        (DeclarationType.CIT_8, Variant.ANNUAL, "CIT-8"),
    ],
)
def test_expected_form_code(
    declaration_type: DeclarationType,
    variant: Variant,
    form_code: str,
) -> None:
    assert expected_form_code(declaration_type, variant) == form_code


def test_unsupported_variant_is_rejected() -> None:
    with pytest.raises(ValueError, match="cannot be filed"):
        expected_form_code(DeclarationType.PIT_36, Variant.MONTHLY)


@pytest.mark.parametrize(
    ("period", "variant", "token"),
    [
        ("2025-02", Variant.MONTHLY, "20250201"),
        ("2025-05", Variant.QUARTERLY, "20250201"),
        ("2025-12", Variant.QUARTERLY, "20250401"),
        ("2024", Variant.ANNUAL, "20240101"),
    ],
)
def test_version_token(period: str, variant: Variant, token: str) -> None:
    assert ReportingPeriod.parse(period).version_token(variant) == token


@pytest.mark.parametrize("value", ["2025-13", "25-01", "2025/01", "", "2025-1"])
def test_invalid_periods_are_rejected(value: str) -> None:
    with pytest.raises(ValueError):
        ReportingPeriod.parse(value)


def test_monthly_declaration_requires_a_month() -> None:
    with pytest.raises(ValueError, match="need a month"):
        Declaration(declaration_type=DeclarationType.VAT_7, period="2025", variant=Variant.MONTHLY)


def test_declaration_normalises_period_and_starts_as_draft() -> None:
    declaration = Declaration(
        declaration_type=DeclarationType.CIT_8, period=" 2024 ", variant=Variant.ANNUAL
    )

    assert declaration.period == "2024"
    assert declaration.status is DeclarationStatus.DRAFT
    assert declaration.form_code == "CIT-8"
    assert not declaration.is_signed


def test_attach_document_only_in_draft() -> None:
    declaration = Declaration(
        declaration_type=DeclarationType.VAT_7, period="2025-02", variant=Variant.MONTHLY
    )
    declaration.attach_document("<doc/>")
    declaration.status = DeclarationStatus.READY
    declaration.attach_signed_document("<signed/>", SignatureType.NONE)

    assert declaration.is_signed
    with pytest.raises(DocumentFrozenError):
        declaration.attach_document("<other/>")


def test_rendering_again_discards_the_signature() -> None:
    declaration = Declaration(
        declaration_type=DeclarationType.VAT_7, period="2025-02", variant=Variant.MONTHLY
    )
    declaration.attach_document("<doc/>")
    declaration.signature_type = SignatureType.NONE

    declaration.attach_document("<doc2/>")

    assert declaration.document == "<doc2/>"
    assert declaration.signature_type is None
    assert declaration.signed_at is None
