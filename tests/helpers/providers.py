"""In-memory provider capabilities and connection builders for sync tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Self

from reviewsync.domain.authorization import AuthorizationContext
from reviewsync.domain.errors import ProviderError, RefreshFailed
from reviewsync.domain.model import ProviderConnection, ProviderKind, Tenant, TokenGrant
from reviewsync.domain.ports.providers import Page
from reviewsync.domain.reconciliation import ReviewLocation

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime
    from types import TracebackType
    from uuid import UUID

    from reviewsync.domain.model import Business
    from reviewsync.domain.ports.providers import Cursor
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation import (
        ExternalContact,
        ExternalInvoice,
        ExternalReview,
        GoogleReviewQuery,
        XeroInvoiceQuery,
    )

TENANT_ID = "tenant-1"


@dataclass
class _FakeCapability:
    grant: TokenGrant = field(default_factory=lambda: TokenGrant(access_token="fresh-token"))
    tenants: list[Tenant] = field(default_factory=lambda: [Tenant(tenant_id=TENANT_ID)])
    refresh_error: Exception | None = None
    refresh_calls: list[str] = field(default_factory=list)
    exchanged: list[tuple[str, str]] = field(default_factory=list)
    tokens_seen: list[str] = field(default_factory=list)
    opened: int = 0

    async def __aenter__(self) -> Self:
        self.opened += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.grant

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        self.exchanged.append((code, redirect_uri))
        return self.grant

    async def list_tenants(self, access_token: str) -> list[Tenant]:
        self.tokens_seen.append(access_token)
        return list(self.tenants)

    def authorize_url(self, *, state: str, redirect_uri: str) -> str:
        return f"https://provider.test/authorize?state={state}&redirect_uri={redirect_uri}"


@dataclass
class FakeInvoiceProvider(_FakeCapability):
    """Invoice pages addressed by page number; contacts looked up by id."""

    pages: list[list[ExternalInvoice]] = field(default_factory=list)
    contacts: dict[str, ExternalContact] = field(default_factory=dict)
    page_error: ProviderError | None = None
    contact_error: ProviderError | None = None
    page_calls: list[int] = field(default_factory=list)
    contact_batches: list[list[str]] = field(default_factory=list)
    queries: list[XeroInvoiceQuery] = field(default_factory=list)

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.XERO

    async def list_page(
        self, access_token: str, query: XeroInvoiceQuery, cursor: Cursor
    ) -> Page[ExternalInvoice]:
        page = int(cursor) if cursor is not None else 1
        self.page_calls.append(page)
        self.queries.append(query)
        self.tokens_seen.append(access_token)
        if self.page_error is not None:
            raise self.page_error
        records = self.pages[page - 1] if page <= len(self.pages) else []
        return Page(records=records, next_cursor=page + 1 if records else None)

    async def fetch_contacts(
        self, access_token: str, tenant_id: str, contact_ids: Sequence[str]
    ) -> list[ExternalContact]:
        self.contact_batches.append(list(contact_ids))
        if self.contact_error is not None:
            raise self.contact_error
        return [self.contacts[cid] for cid in contact_ids if cid in self.contacts]


@dataclass
class FakeReviewProvider(_FakeCapability):
    """Review pages addressed by string tokens ``"p2"``, ``"p3"`` and so on."""

    pages: list[list[ExternalReview]] = field(default_factory=list)
    location: ReviewLocation = field(
        default_factory=lambda: ReviewLocation(parent="accounts/1/locations/9", title="Acme")
    )
    location_error: ProviderError | None = None
    cursors: list[Cursor] = field(default_factory=list)

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.GOOGLE

    async def resolve_location(
        self, access_token: str, account: str, business: Business
    ) -> ReviewLocation:
        if self.location_error is not None:
            raise self.location_error
        return self.location

    async def list_page(
        self, access_token: str, query: GoogleReviewQuery, cursor: Cursor
    ) -> Page[ExternalReview]:
        self.cursors.append(cursor)
        self.tokens_seen.append(access_token)
        index = int(str(cursor)[1:]) - 1 if cursor else 0
        records = self.pages[index] if index < len(self.pages) else []
        next_cursor = f"p{index + 2}" if index + 1 < len(self.pages) else None
        return Page(records=records, next_cursor=next_cursor)


def failing_refresh() -> RefreshFailed:
    return RefreshFailed("token refresh failed (400)", status=400, body='{"error":"invalid_grant"}')


def store_connection(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    business_id: UUID,
    provider: ProviderKind,
    *,
    now: datetime,
    expires_in: timedelta = timedelta(hours=1),
    tenant_id: str = TENANT_ID,
    access_token: str | None = "stored-token",
    refresh_token: str | None = "stored-refresh",
    is_primary: bool = True,
    is_connected: bool = True,
) -> ProviderConnection:
    """Insert a connection row directly, bypassing the OAuth handshake."""

    connection = ProviderConnection(
        business_id=business_id,
        provider=provider,
        tenant_id=tenant_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=now + expires_in,
        is_primary=is_primary,
        is_connected=is_connected,
        created_at=now - timedelta(days=1),
    )
    auth = AuthorizationContext.for_user("fixture", [business_id])
    with uow_factory() as uow:
        uow.repositories.connections.add(auth, connection)
        uow.commit()
    return connection
