"""Rate-limited async HTTP client used by the gateway and identity adapters.

The client performs exactly one attempt per call and caches nothing; retry
policy belongs to the status tracker.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter

from efiling.config.http_resilience import RateLimit, ResilienceConfig, ResponseHook

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

__all__ = [
    "RateLimit",
    "ResilienceConfig",
    "ResilientClient",
    "ResponseHook",
]

log = getLogger(__name__)


class ResilientClient:
    """POST-only client bound to one ``ResilienceConfig``.

    Every call waits for the configured rate limit before it is sent. Transport
    errors propagate as ``httpx`` exceptions for the adapter to classify.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=dict(config.default_headers) if config.default_headers else None,
            event_hooks={"response": list(config.response_hooks)}
            if config.response_hooks
            else None,
            transport=transport,
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(
        self,
        url: str,
        *,
        content: bytes | None = None,
        data: Mapping[str, str] | None = None,
        json: object = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._limiter is not None:
            await self._limiter.acquire()
        response = await self._client.post(
            url, content=content, data=data, json=json, headers=headers
        )
        log.debug(f"{self.config.name}: POST {url} -> HTTP {response.status_code}")
        return response
