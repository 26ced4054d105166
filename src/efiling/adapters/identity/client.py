"""HTTP client for the trusted identity (delegated signature) service."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass, field
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from efiling.adapters.http_resilience import ResilientClient
from efiling.config.identity import IdentityServiceConfig, get_identity_config
from efiling.domain.errors import SignatureError
from efiling.domain.ports.signing import DelegatedSignature, IdentityProvider

from .schema import ErrorResponse, SignatureRequest, SignatureResponse, TokenResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from efiling.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

TOKEN_PATH = "/oauth2/token"
SIGNATURE_PATH = "/v1/signatures"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return f"HTTP {response.status_code}"
    return payload.error_description or payload.error


@dataclass(slots=True)
class TrustedProfileClient:
    """Requests delegated signatures for a document digest.

    Authenticates with client credentials, then posts the digest together with
    the caller's identity reference. Any failure surfaces as ``SignatureError``.
    """

    config: IdentityServiceConfig = field(default_factory=get_identity_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def request_signature(self, *, digest: bytes, reference: str) -> DelegatedSignature:
        return asyncio.run(self._request_signature_async(digest=digest, reference=reference))

    async def _request_signature_async(
        self, *, digest: bytes, reference: str
    ) -> DelegatedSignature:
        request = SignatureRequest(
            reference=reference, digest=base64.b64encode(digest).decode("ascii")
        )
        try:
            async with self.client_factory(self.config.resilience) as client:
                token = await self._authenticate(client)
                response = await client.post(
                    SIGNATURE_PATH,
                    json=request.model_dump(by_alias=True),
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as exc:
            raise SignatureError(f"Identity service is unreachable: {exc}") from exc

        if response.status_code in {401, 403}:
            raise SignatureError(
                f"Identity service refused the request: {_error_message(response)}"
            )
        if response.is_error:
            raise SignatureError(f"Identity service failed to sign: {_error_message(response)}")
        try:
            payload = SignatureResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SignatureError("Identity service returned an unexpected payload") from exc

        signed_at = payload.signed_at
        if signed_at.tzinfo is None:
            signed_at = signed_at.replace(tzinfo=UTC)
        log.info(f"Delegated signature issued by {payload.issuer} for {payload.signer.id}")
        return DelegatedSignature(
            token=payload.token,
            signer_id=payload.signer.id,
            signer_name=payload.signer.name,
            issuer=payload.issuer,
            signed_at=signed_at.astimezone(UTC),
        )

    async def _authenticate(self, client: ResilientClient) -> str:
        response = await client.post(
            TOKEN_PATH,
            data={
                "grant_type": "client_credentials",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
        )
        if response.is_error:
            raise SignatureError(
                f"Identity service authentication failed: {_error_message(response)}"
            )
        try:
            return TokenResponse.model_validate(response.json()).access_token
        except (ValueError, ValidationError) as exc:
            raise SignatureError("Identity service returned an unexpected token payload") from exc


if TYPE_CHECKING:
    _provider_check: IdentityProvider = TrustedProfileClient()
