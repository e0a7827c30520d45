"""HTTP client for the Google OAuth and Business Profile APIs."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from pydantic import ValidationError

from reviewsync.adapters.provider_http import ProviderSession, default_client_factory
from reviewsync.config.google import (
    GOOGLE_ACCOUNTS_URL,
    GOOGLE_AUTHORIZE_URL,
    GOOGLE_LOCATIONS_BASE_URL,
    GOOGLE_REVIEWS_BASE_URL,
    GOOGLE_TOKEN_URL,
    get_google_config,
)
from reviewsync.domain.errors import ProviderError
from reviewsync.domain.model import ProviderKind
from reviewsync.domain.ports.providers import Page, ReviewProvider

from .schema import AccountsResponse, LocationPayload, LocationsResponse, ReviewsResponse
from .translator import choose_location, to_external_review, to_tenant

if TYPE_CHECKING:
    from reviewsync.adapters.provider_http import ClientFactory
    from reviewsync.config.google import GoogleConfig
    from reviewsync.domain.model import Business, Tenant, TokenGrant
    from reviewsync.domain.ports.providers import Cursor
    from reviewsync.domain.reconciliation.contracts import (
        ExternalReview,
        GoogleReviewQuery,
        ReviewLocation,
    )

log = getLogger(__name__)

REVIEWS_PAGE_SIZE = 50
LOCATIONS_PAGE_SIZE = 100
MAX_DIRECTORY_PAGES = 20
LOCATION_READ_MASK = ",".join(
    (
        "name",
        "title",
        "metadata.placeId",
        "metadata.mapsUri",
        "metadata.newReviewUri",
    )
)


class GoogleBusinessClient(ProviderSession):
    """Business Profile capability: accounts as tenants, reviews by page token."""

    name = "google"

    def __init__(
        self,
        config: GoogleConfig | None = None,
        *,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.config = config or get_google_config()
        super().__init__(self.config.resilience, client_factory=client_factory)

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.GOOGLE

    def authorize_url(self, *, state: str, redirect_uri: str) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.config.client_id,
                "redirect_uri": redirect_uri,
                "scope": " ".join(self.config.scopes),
                "state": state,
                "access_type": "offline",
                "prompt": "consent",
                "include_granted_scopes": "true",
            }
        )
        return f"{GOOGLE_AUTHORIZE_URL}?{query}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        return await self.post_token(
            GOOGLE_TOKEN_URL,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
            context="Google code exchange",
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        return await self.post_token(
            GOOGLE_TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
            context="Google token refresh",
        )

    async def list_tenants(self, access_token: str) -> list[Tenant]:
        tenants: list[Tenant] = []
        page_token: str | None = None
        for _ in range(MAX_DIRECTORY_PAGES):
            params = {"pageToken": page_token} if page_token else None
            payload = await self.get_json(
                GOOGLE_ACCOUNTS_URL,
                access_token=access_token,
                context="Google accounts",
                params=params,
            )
            try:
                response = AccountsResponse.model_validate(payload)
            except ValidationError as exc:
                raise ProviderError("Unexpected Google accounts payload", reason="schema") from exc
            tenants.extend(
                tenant for tenant in map(to_tenant, response.accounts) if tenant is not None
            )
            page_token = response.next_page_token
            if not page_token:
                break
        return tenants

    async def _list_locations(self, access_token: str, account: str) -> list[LocationPayload]:
        locations: list[LocationPayload] = []
        page_token: str | None = None
        for _ in range(MAX_DIRECTORY_PAGES):
            params: dict[str, str | int] = {
                "pageSize": LOCATIONS_PAGE_SIZE,
                "readMask": LOCATION_READ_MASK,
            }
            if page_token:
                params["pageToken"] = page_token
            payload = await self.get_json(
                f"{GOOGLE_LOCATIONS_BASE_URL}/{account}/locations",
                access_token=access_token,
                context="Google locations",
                params=params,
            )
            try:
                response = LocationsResponse.model_validate(payload)
            except ValidationError as exc:
                raise ProviderError("Unexpected Google locations payload", reason="schema") from exc
            locations.extend(response.locations)
            page_token = response.next_page_token
            if not page_token:
                break
        return locations

    async def resolve_location(
        self, access_token: str, account: str, business: Business
    ) -> ReviewLocation:
        locations = await self._list_locations(access_token, account)
        location = choose_location(account, locations, business)
        if location is None:
            raise ProviderError(
                f"No Business Profile location found under {account}",
                reason="NO_LOCATION",
            )
        log.info(f"Using Google location {location.parent} ({location.matched_by})")
        return location

    async def list_page(
        self, access_token: str, query: GoogleReviewQuery, cursor: Cursor
    ) -> Page[ExternalReview]:
        params: dict[str, str | int] = {"pageSize": REVIEWS_PAGE_SIZE}
        if cursor:
            params["pageToken"] = str(cursor)
        payload = await self.get_json(
            f"{GOOGLE_REVIEWS_BASE_URL}/{query.parent}/reviews",
            access_token=access_token,
            context="Google reviews",
            params=params,
        )
        try:
            response = ReviewsResponse.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError("Unexpected Google reviews payload", reason="schema") from exc
        return Page(
            records=[to_external_review(review) for review in response.reviews],
            next_cursor=response.next_page_token,
        )


if TYPE_CHECKING:
    _capability_check: ReviewProvider = GoogleBusinessClient()
