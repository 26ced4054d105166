"""Pydantic models for the trusted identity service payloads."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field


class IdentityBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TokenResponse(IdentityBaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None


class SignatureRequest(IdentityBaseModel):
    reference: str
    digest: str
    digest_algorithm: str = Field(default="SHA-256", serialization_alias="digestAlgorithm")


class SignerPayload(IdentityBaseModel):
    id: str
    name: str


class SignatureResponse(IdentityBaseModel):
    token: str
    signer: SignerPayload
    issuer: str
    signed_at: datetime = Field(alias="signedAt")


class ErrorResponse(IdentityBaseModel):
    error: str
    error_description: str | None = None
