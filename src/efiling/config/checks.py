"""Startup checks over the whole configuration."""

from __future__ import annotations

from .env import env_bool, optional_env
from .errors import ConfigurationError
from .gateway import get_gateway_config
from .signing import get_certificate_config, get_trust_config
from .tracking import get_tracking_config

IDENTITY_KEYS = (
    "EFILING_IDENTITY_API_URL",
    "EFILING_IDENTITY_CLIENT_ID",
    "EFILING_IDENTITY_CLIENT_SECRET",
)


def _check_certificates(problems: list[str]) -> None:
    try:
        config = get_certificate_config()
    except ConfigurationError as exc:
        problems.append(str(exc))
        return
    for name, path in (
        ("EFILING_CERT_PATH", config.certificate_path),
        ("EFILING_KEY_PATH", config.private_key_path),
    ):
        if not path.is_file():
            problems.append(f"{name} points to a missing file: {path}")


def _check_trust_anchors(problems: list[str]) -> None:
    try:
        config = get_trust_config()
    except ConfigurationError as exc:
        problems.append(str(exc))
        return
    if config.anchors_path is not None and not config.anchors_path.is_file():
        problems.append(f"EFILING_TRUST_ANCHORS points to a missing file: {config.anchors_path}")


def _check_identity(problems: list[str]) -> None:
    configured = [key for key in IDENTITY_KEYS if optional_env(key) is not None]
    if configured and len(configured) != len(IDENTITY_KEYS):
        missing = ", ".join(key for key in IDENTITY_KEYS if key not in configured)
        problems.append(f"Identity service is partially configured, missing: {missing}")


def validate_settings() -> list[str]:
    """Return every configuration problem found; an empty list means ready to file."""

    problems: list[str] = []
    for loader in (get_gateway_config, get_tracking_config):
        try:
            loader()
        except ConfigurationError as exc:
            problems.append(str(exc))

    _check_certificates(problems)
    _check_trust_anchors(problems)
    _check_identity(problems)

    try:
        allow_placeholder = env_bool("EFILING_ALLOW_PLACEHOLDER_SIGNATURES", default=False)
        test_environment = env_bool("EFILING_TEST_ENV", default=True)
    except ConfigurationError as exc:
        problems.append(str(exc))
    else:
        if allow_placeholder and not test_environment:
            problems.append("Placeholder signatures cannot be enabled outside the test environment")

    return problems
