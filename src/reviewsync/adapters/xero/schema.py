"""Pydantic models describing the Xero accounting and identity payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class XeroBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ContactRefPayload(XeroBaseModel):
    contact_id: str | None = Field(default=None, alias="ContactID")
    name: str | None = Field(default=None, alias="Name")

    _normalize = field_validator("contact_id", "name", mode="before")(_blank_to_none)


class LineItemPayload(XeroBaseModel):
    description: str | None = Field(default=None, alias="Description")


class InvoicePayload(XeroBaseModel):
    invoice_id: str | None = Field(default=None, alias="InvoiceID")
    type: str | None = Field(default=None, alias="Type")
    contact: ContactRefPayload | None = Field(default=None, alias="Contact")
    status: str | None = Field(default=None, alias="Status")
    sent_to_contact: bool | None = Field(default=None, alias="SentToContact")
    date: str | None = Field(default=None, alias="Date")
    line_items: list[LineItemPayload] = Field(default_factory=list, alias="LineItems")

    _normalize = field_validator("invoice_id", "type", "status", "date", mode="before")(
        _blank_to_none
    )

    @field_validator("line_items", mode="before")
    @classmethod
    def _null_items(cls, value: object) -> object:
        return [] if value is None else value


class InvoicesResponse(XeroBaseModel):
    invoices: list[InvoicePayload] = Field(default_factory=list, alias="Invoices")


class PhonePayload(XeroBaseModel):
    phone_type: str | None = Field(default=None, alias="PhoneType")
    number: str | None = Field(default=None, alias="PhoneNumber")
    area_code: str | None = Field(default=None, alias="PhoneAreaCode")
    country_code: str | None = Field(default=None, alias="PhoneCountryCode")

    _normalize = field_validator(
        "phone_type", "number", "area_code", "country_code", mode="before"
    )(_blank_to_none)


class ContactPayload(XeroBaseModel):
    contact_id: str = Field(alias="ContactID")
    name: str | None = Field(default=None, alias="Name")
    first_name: str | None = Field(default=None, alias="FirstName")
    last_name: str | None = Field(default=None, alias="LastName")
    email: str | None = Field(default=None, alias="EmailAddress")
    phones: list[PhonePayload] = Field(default_factory=list, alias="Phones")
    is_customer: bool | None = Field(default=None, alias="IsCustomer")

    _normalize = field_validator("name", "first_name", "last_name", "email", mode="before")(
        _blank_to_none
    )

    @field_validator("phones", mode="before")
    @classmethod
    def _null_phones(cls, value: object) -> object:
        return [] if value is None else value


class ContactsResponse(XeroBaseModel):
    contacts: list[ContactPayload] = Field(default_factory=list, alias="Contacts")


class ConnectionPayload(XeroBaseModel):
    id: str | None = None
    tenant_id: str = Field(alias="tenantId")
    tenant_type: str | None = Field(default=None, alias="tenantType")
    tenant_name: str | None = Field(default=None, alias="tenantName")
