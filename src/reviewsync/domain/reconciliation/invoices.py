"""Derive per-contact activity from a sales invoice listing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from reviewsync.domain.model import InvoiceStatus, clean_text
from reviewsync.domain.reconciliation.contracts import ContactActivity, ContactRecord

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from reviewsync.domain.reconciliation.contracts import ExternalContact, ExternalInvoice
    from reviewsync.domain.reconciliation.diagnostics import SyncDiagnostics

SALES_INVOICE_PREFIX = "ACCREC"
DESCRIPTION_SEPARATOR = " | "


def invoice_status(status: str | None, *, sent_to_contact: bool) -> InvoiceStatus:
    if (status or "").upper() == "PAID":
        return InvoiceStatus.PAID if sent_to_contact else InvoiceStatus.PAID_BUT_NOT_SENT
    return InvoiceStatus.SENT if sent_to_contact else InvoiceStatus.DRAFT


def is_sales_invoice(invoice: ExternalInvoice) -> bool:
    """Receivables only; untyped rows are kept."""
    invoice_type = (invoice.invoice_type or "").upper()
    return not invoice_type or invoice_type.startswith(SALES_INVOICE_PREFIX)


@dataclass(slots=True)
class _Accumulator:
    contact_id: str
    fallback_name: str | None = None
    descriptions: list[str] = field(default_factory=list[str])
    latest_on: date | None = None
    latest_status: InvoiceStatus | None = None
    has_latest: bool = False

    def add(self, invoice: ExternalInvoice) -> None:
        name = clean_text(invoice.contact_name)
        if name:
            self.fallback_name = name
        for description in invoice.line_descriptions:
            cleaned = clean_text(description)
            if cleaned and cleaned not in self.descriptions:
                self.descriptions.append(cleaned)
        # later-or-equal dates win; undated invoices only count when nothing is dated
        if not self.has_latest or _on_or_after(invoice.issued_on, self.latest_on):
            self.has_latest = True
            self.latest_on = invoice.issued_on
            self.latest_status = invoice_status(
                invoice.status, sent_to_contact=invoice.sent_to_contact
            )

    def build(self) -> ContactActivity:
        return ContactActivity(
            contact_id=self.contact_id,
            fallback_name=self.fallback_name,
            item_description=DESCRIPTION_SEPARATOR.join(self.descriptions) or None,
            invoice_status=self.latest_status,
            latest_invoice_on=self.latest_on,
        )


def _on_or_after(candidate: date | None, current: date | None) -> bool:
    if candidate is None:
        return current is None
    return current is None or candidate >= current


def summarize_invoices(
    invoices: Iterable[ExternalInvoice],
    diagnostics: SyncDiagnostics | None = None,
) -> dict[str, ContactActivity]:
    """Group sales invoices by contact id, in first-seen order."""

    accumulators: dict[str, _Accumulator] = {}
    for invoice in invoices:
        if not is_sales_invoice(invoice):
            if diagnostics is not None:
                diagnostics.bump("invoices_not_sales")
            continue
        contact_id = clean_text(invoice.contact_id)
        if contact_id is None:
            if diagnostics is not None:
                diagnostics.bump("invoices_without_contact")
            continue
        accumulator = accumulators.get(contact_id)
        if accumulator is None:
            accumulator = accumulators[contact_id] = _Accumulator(contact_id=contact_id)
        accumulator.add(invoice)
    return {contact_id: acc.build() for contact_id, acc in accumulators.items()}


def build_contact_record(activity: ContactActivity, contact: ExternalContact) -> ContactRecord:
    return ContactRecord(
        external_id=contact.contact_id,
        display_name=clean_text(contact.name) or activity.fallback_name,
        email=contact.email,
        phone=contact.phone,
        invoice_status=activity.invoice_status,
        item_description=activity.item_description,
    )
