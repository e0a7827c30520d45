"""Translate Xero payloads into provider records."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from reviewsync.domain.model import Tenant
from reviewsync.domain.reconciliation.contracts import ExternalContact, ExternalInvoice

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .schema import ConnectionPayload, ContactPayload, InvoicePayload, PhonePayload

PHONE_PREFERENCE = ("DEFAULT", "MOBILE", "DDI", "FAX")

# Xero's JSON dates look like /Date(1735689600000+0000)/
_MS_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


def parse_xero_date(value: str | None) -> date | None:
    if not value:
        return None
    text = value.strip()
    match = _MS_DATE.match(text)
    if match:
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=UTC).date()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _phone_rank(phone: PhonePayload) -> int:
    phone_type = (phone.phone_type or "").upper()
    if phone_type in PHONE_PREFERENCE:
        return PHONE_PREFERENCE.index(phone_type)
    return len(PHONE_PREFERENCE)


def pick_phone(phones: Sequence[PhonePayload]) -> str | None:
    """First non-blank number by type preference, rendered ``+CC AREA NUMBER``."""
    for phone in sorted(phones, key=_phone_rank):
        if not phone.number:
            continue
        parts = [
            f"+{phone.country_code}" if phone.country_code else None,
            phone.area_code,
            phone.number,
        ]
        return " ".join(part for part in parts if part)
    return None


def to_external_invoice(payload: InvoicePayload) -> ExternalInvoice:
    contact = payload.contact
    return ExternalInvoice(
        invoice_id=payload.invoice_id,
        invoice_type=payload.type,
        contact_id=contact.contact_id if contact else None,
        contact_name=contact.name if contact else None,
        status=payload.status,
        sent_to_contact=bool(payload.sent_to_contact),
        issued_on=parse_xero_date(payload.date),
        line_descriptions=tuple(
            item.description for item in payload.line_items if item.description
        ),
    )


def to_external_contact(payload: ContactPayload) -> ExternalContact:
    name = payload.name
    if name is None:
        joined = " ".join(part for part in (payload.first_name, payload.last_name) if part)
        name = joined or None
    return ExternalContact(
        contact_id=payload.contact_id,
        name=name,
        email=payload.email,
        phone=pick_phone(payload.phones),
        is_customer=payload.is_customer,
    )


def to_tenant(payload: ConnectionPayload) -> Tenant:
    return Tenant(tenant_id=payload.tenant_id, name=payload.tenant_name, kind=payload.tenant_type)
