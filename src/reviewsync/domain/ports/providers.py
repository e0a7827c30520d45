"""Capability interfaces each provider adapter implements.

The shared pager and token broker only ever see these protocols, so adding a
provider means implementing ``list_page`` and ``refresh_token`` plus the
handshake calls, not another paging or refresh loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from reviewsync.domain.model import Business, ProviderKind, Tenant, TokenGrant
    from reviewsync.domain.reconciliation.contracts import (
        ExternalContact,
        ExternalInvoice,
        ExternalReview,
        GoogleReviewQuery,
        ReviewLocation,
        XeroInvoiceQuery,
    )

type Cursor = str | int | None


@dataclass(frozen=True, slots=True)
class Page[TRecord]:
    records: Sequence[TRecord] = field(default_factory=tuple)
    next_cursor: Cursor = None


@runtime_checkable
class TokenRefresher(Protocol):
    @property
    def kind(self) -> ProviderKind: ...

    async def refresh_token(self, refresh_token: str) -> TokenGrant: ...


@runtime_checkable
class ProviderCapability[TQuery, TRecord](TokenRefresher, Protocol):
    """Open/close the provider session with ``async with``; pages are fetched inside it."""

    async def __aenter__(self) -> Self: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    async def list_page(self, access_token: str, query: TQuery, cursor: Cursor) -> Page[TRecord]:
        """Return one page; 401/403 raise ``Unauthorized``, other failures ``ProviderError``."""
        ...

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant: ...

    async def list_tenants(self, access_token: str) -> list[Tenant]: ...

    def authorize_url(self, *, state: str, redirect_uri: str) -> str: ...


@runtime_checkable
class ContactDirectory(Protocol):
    async def fetch_contacts(
        self, access_token: str, tenant_id: str, contact_ids: Sequence[str]
    ) -> list[ExternalContact]: ...


@runtime_checkable
class LocationDirectory(Protocol):
    async def resolve_location(
        self, access_token: str, account: str, business: Business
    ) -> ReviewLocation: ...


@runtime_checkable
class InvoiceProvider(
    ProviderCapability["XeroInvoiceQuery", "ExternalInvoice"], ContactDirectory, Protocol
):
    """Lists sales invoices page by page and resolves their contacts by id."""


@runtime_checkable
class ReviewProvider(
    ProviderCapability["GoogleReviewQuery", "ExternalReview"], LocationDirectory, Protocol
):
    """Lists reviews for one resolved business location."""
