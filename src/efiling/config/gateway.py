"""Government gateway (transport) configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_bool, env_float, optional_env
from .http_resilience import RateLimit, ResilienceConfig

GATEWAY_TEST_URL: Final[str] = "https://test-e-deklaracje.mf.gov.pl/ws/e-Deklaracje"
GATEWAY_PRODUCTION_URL: Final[str] = "https://e-deklaracje.mf.gov.pl/ws/e-Deklaracje"
GATEWAY_TIMEOUT_SECONDS: Final[float] = 30.0
GATEWAY_CALLS_PER_SECOND: Final[float] = 2.0


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    """Where and how the transport client reaches the authority."""

    endpoint_url: str
    test_environment: bool
    resilience: ResilienceConfig

    @property
    def environment_name(self) -> str:
        return "test" if self.test_environment else "production"


def get_gateway_config(*, resilience: ResilienceConfig | None = None) -> GatewayConfig:
    test_environment = env_bool("EFILING_TEST_ENV", default=True)
    default_url = GATEWAY_TEST_URL if test_environment else GATEWAY_PRODUCTION_URL
    endpoint_url = optional_env("EFILING_GATEWAY_URL") or default_url
    timeout_seconds = env_float(
        "EFILING_TIMEOUT_SECONDS", default=GATEWAY_TIMEOUT_SECONDS, minimum=1.0
    )
    calls_per_second = env_float(
        "EFILING_RATE_LIMIT_PER_SECOND", default=GATEWAY_CALLS_PER_SECOND, minimum=0.1
    )
    return GatewayConfig(
        endpoint_url=endpoint_url,
        test_environment=test_environment,
        resilience=resilience
        or ResilienceConfig(
            name="gateway",
            base_url=endpoint_url,
            timeout_seconds=timeout_seconds,
            ratelimit=RateLimit(max_calls=1, per_seconds=1.0 / calls_per_second),
            default_headers={"Content-Type": "text/xml; charset=utf-8"},
        ),
    )
