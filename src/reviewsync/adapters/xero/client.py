"""HTTP client for the Xero identity and accounting APIs."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from pydantic import TypeAdapter, ValidationError

from reviewsync.adapters.provider_http import ProviderSession, default_client_factory
from reviewsync.config.xero import XERO_AUTHORIZE_URL, XERO_TOKEN_URL, get_xero_config
from reviewsync.domain.errors import ProviderError
from reviewsync.domain.model import ProviderKind
from reviewsync.domain.ports.providers import InvoiceProvider, Page

from .schema import ConnectionPayload, ContactsResponse, InvoicesResponse
from .translator import to_external_contact, to_external_invoice, to_tenant

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from reviewsync.adapters.provider_http import ClientFactory
    from reviewsync.config.xero import XeroConfig
    from reviewsync.domain.model import Tenant, TokenGrant
    from reviewsync.domain.ports.providers import Cursor
    from reviewsync.domain.reconciliation.contracts import (
        ExternalContact,
        ExternalInvoice,
        XeroInvoiceQuery,
    )

log = getLogger(__name__)

XERO_CONNECTIONS_PATH = "/connections"
XERO_INVOICES_PATH = "/api.xro/2.0/Invoices"
XERO_CONTACTS_PATH = "/api.xro/2.0/Contacts"

_CONNECTIONS = TypeAdapter(list[ConnectionPayload])


def since_where(since: date) -> str:
    return f"Date >= DateTime({since.year}, {since.month}, {since.day})"


class XeroClient(ProviderSession):
    """Xero capability: invoice pages by page number, contacts by id batch."""

    name = "xero"

    def __init__(
        self,
        config: XeroConfig | None = None,
        *,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.config = config or get_xero_config()
        super().__init__(self.config.resilience, client_factory=client_factory)

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.XERO

    def authorize_url(self, *, state: str, redirect_uri: str) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.config.client_id,
                "redirect_uri": redirect_uri,
                "scope": " ".join(self.config.scopes),
                "state": state,
            }
        )
        return f"{XERO_AUTHORIZE_URL}?{query}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        return await self.post_token(
            XERO_TOKEN_URL,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
            context="Xero code exchange",
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        return await self.post_token(
            XERO_TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
            context="Xero token refresh",
        )

    async def list_tenants(self, access_token: str) -> list[Tenant]:
        payload = await self.get_json(
            XERO_CONNECTIONS_PATH, access_token=access_token, context="Xero connections"
        )
        try:
            connections = _CONNECTIONS.validate_python(payload)
        except ValidationError as exc:
            raise ProviderError("Unexpected Xero connections payload", reason="schema") from exc
        return [to_tenant(connection) for connection in connections]

    async def list_page(
        self, access_token: str, query: XeroInvoiceQuery, cursor: Cursor
    ) -> Page[ExternalInvoice]:
        page = int(cursor) if cursor is not None else 1
        payload = await self.get_json(
            XERO_INVOICES_PATH,
            access_token=access_token,
            context=f"Xero invoices page {page}",
            params={"page": page, "where": since_where(query.since)},
            headers={"Xero-tenant-id": query.tenant_id},
        )
        try:
            response = InvoicesResponse.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError(
                f"Unexpected Xero invoices payload on page {page}", reason="schema"
            ) from exc
        records = [to_external_invoice(invoice) for invoice in response.invoices]
        log.debug(f"Xero invoices page {page}: {len(records)} invoice(s)")
        # Xero has no next link; an empty page ends the listing
        return Page(records=records, next_cursor=page + 1 if records else None)

    async def fetch_contacts(
        self, access_token: str, tenant_id: str, contact_ids: Sequence[str]
    ) -> list[ExternalContact]:
        if not contact_ids:
            return []
        payload = await self.get_json(
            XERO_CONTACTS_PATH,
            access_token=access_token,
            context=f"Xero contacts batch of {len(contact_ids)}",
            params={"IDs": ",".join(contact_ids)},
            headers={"Xero-tenant-id": tenant_id},
        )
        try:
            response = ContactsResponse.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError("Unexpected Xero contacts payload", reason="schema") from exc
        return [to_external_contact(contact) for contact in response.contacts]


if TYPE_CHECKING:
    _capability_check: InvoiceProvider = XeroClient()
