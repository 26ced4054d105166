"""Certificate and trust configuration for signing."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool, env_list, optional_env, require_env_vars

DEFAULT_TRUSTED_ISSUERS: Final[tuple[str, ...]] = (
    "Ministerstwo Finansów",
    "Krajowa Izba Rozliczeniowa",
    "Certum",
    "Profil Zaufany",
)


@dataclass(frozen=True, slots=True)
class CertificateConfig:
    """Locations of the PEM certificate and private key used for signing."""

    certificate_path: Path
    private_key_path: Path
    passphrase: str | None = None


@dataclass(frozen=True, slots=True)
class TrustConfig:
    trusted_issuers: tuple[str, ...] = DEFAULT_TRUSTED_ISSUERS
    revoked_serials: tuple[str, ...] = ()
    anchors_path: Path | None = None


def get_certificate_config() -> CertificateConfig:
    values = require_env_vars(("EFILING_CERT_PATH", "EFILING_KEY_PATH"))
    return CertificateConfig(
        certificate_path=Path(values["EFILING_CERT_PATH"]).expanduser(),
        private_key_path=Path(values["EFILING_KEY_PATH"]).expanduser(),
        passphrase=optional_env("EFILING_CERT_PASSPHRASE"),
    )


def _optional_path(name: str) -> Path | None:
    value = optional_env(name)
    return Path(value).expanduser() if value else None


def get_trust_config() -> TrustConfig:
    return TrustConfig(
        trusted_issuers=env_list("EFILING_TRUSTED_ISSUERS", default=DEFAULT_TRUSTED_ISSUERS),
        revoked_serials=env_list("EFILING_REVOKED_SERIALS", default=()),
        anchors_path=_optional_path("EFILING_TRUST_ANCHORS"),
    )


def placeholder_signatures_allowed() -> bool:
    """Placeholder (unsigned) submissions are only ever allowed against the test gateway."""

    return env_bool("EFILING_ALLOW_PLACEHOLDER_SIGNATURES", default=False) and env_bool(
        "EFILING_TEST_ENV", default=True
    )
