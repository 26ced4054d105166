"""Taxpayer identifier checksums."""

from __future__ import annotations

from typing import Final

NIP_WEIGHTS: Final[tuple[int, ...]] = (6, 5, 7, 2, 3, 4, 5, 6, 7)


def normalize_taxpayer_id(value: str) -> str:
    """Strip the separators people commonly type into a NIP."""

    return value.replace("-", "").replace(" ", "").strip()


def nip_check_digit(first_nine: str) -> int:
    """Weighted mod-11 check digit; a remainder of 10 maps to 0."""

    if len(first_nine) != len(NIP_WEIGHTS) or not first_nine.isdigit():
        raise ValueError(f"Expected nine digits, got {first_nine!r}")
    pairs = zip(first_nine, NIP_WEIGHTS, strict=True)
    remainder = sum(int(digit) * weight for digit, weight in pairs) % 11
    return 0 if remainder == 10 else remainder


def is_valid_nip(value: str) -> bool:
    digits = normalize_taxpayer_id(value)
    if len(digits) != 10 or not digits.isdigit():
        return False
    return nip_check_digit(digits[:9]) == int(digits[9])
