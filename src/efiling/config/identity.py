"""Trusted identity service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

IDENTITY_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class IdentityServiceConfig:
    """Holds the client credentials for the delegated-signature identity service."""

    api_url: str
    client_id: str
    client_secret: str
    resilience: ResilienceConfig


def get_identity_config(*, resilience: ResilienceConfig | None = None) -> IdentityServiceConfig:
    values = require_env_vars(
        (
            "EFILING_IDENTITY_API_URL",
            "EFILING_IDENTITY_CLIENT_ID",
            "EFILING_IDENTITY_CLIENT_SECRET",
        )
    )
    api_url = values["EFILING_IDENTITY_API_URL"].rstrip("/")
    return IdentityServiceConfig(
        api_url=api_url,
        client_id=values["EFILING_IDENTITY_CLIENT_ID"],
        client_secret=values["EFILING_IDENTITY_CLIENT_SECRET"],
        resilience=resilience
        or ResilienceConfig(
            name="identity",
            base_url=api_url,
            timeout_seconds=env_float(
                "EFILING_IDENTITY_TIMEOUT_SECONDS", default=IDENTITY_TIMEOUT_SECONDS, minimum=1.0
            ),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        ),
    )
