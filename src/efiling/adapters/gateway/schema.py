"""Pydantic models for the gateway's response payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GatewayBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)


class ConfirmationPayload(GatewayBaseModel):
    confirmation_number: str = Field(alias="numerPotwierdzenia", min_length=1)
    confirmation_date: str = Field(alias="dataPotwierdzenia", min_length=1)
    status_code: str = Field(default="100", alias="kodStatusu")
    description: str | None = Field(default=None, alias="opis")


class SubmitResponse(GatewayBaseModel):
    confirmation: ConfirmationPayload = Field(alias="potwierdzenie")


class StatusResponse(GatewayBaseModel):
    confirmation_number: str = Field(alias="numerPotwierdzenia", min_length=1)
    status_code: str = Field(alias="kodStatusu", min_length=1)
    status_description: str | None = Field(default=None, alias="opisStatusu")
    processing_date: str | None = Field(default=None, alias="dataPrzetworzenia")

    @field_validator("status_description", "processing_date")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        return value or None


class ReceiptResponse(GatewayBaseModel):
    receipt: str = Field(alias="upo", min_length=1)


class FormPayload(GatewayBaseModel):
    form_code: str = Field(alias="kodFormularza")
    version: str | None = Field(default=None, alias="wersja")


class FormsListing(GatewayBaseModel):
    forms: list[FormPayload] = Field(default_factory=list, alias="formularz")

    @field_validator("forms", mode="before")
    @classmethod
    def _single_form(cls, value: object) -> object:
        if isinstance(value, dict):
            return [value]
        return value


class FormsResponse(GatewayBaseModel):
    listing: FormsListing | None = Field(default=None, alias="formularze")

    @field_validator("listing", mode="before")
    @classmethod
    def _empty_listing(cls, value: object) -> object:
        return value or None
