"""Shared HTTP plumbing for OAuth-protected provider APIs."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Self

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from reviewsync.adapters.http_resilience import ResilientClient
from reviewsync.domain.errors import ProviderError, RefreshFailed, Unauthorized
from reviewsync.domain.model import TokenGrant

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType

    from reviewsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

_BODY_EXCERPT = 500

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


def default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None
    scope: str | None = None
    id_token: str | None = None

    def to_grant(self) -> TokenGrant:
        return TokenGrant(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_in=self.expires_in,
            token_type=self.token_type,
            scope=self.scope,
            id_token=self.id_token,
        )


def _excerpt(response: httpx.Response) -> str:
    try:
        return response.text[:_BODY_EXCERPT]
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""


def raise_for_provider_status(response: httpx.Response, *, context: str) -> None:
    """401/403 become ``Unauthorized``; any other non-2xx becomes ``ProviderError``."""

    if response.is_success:
        return
    body = _excerpt(response)
    if response.status_code in {401, 403}:
        raise Unauthorized(
            f"{context} was rejected ({response.status_code})",
            status=response.status_code,
            body=body,
        )
    raise ProviderError(
        f"{context} failed ({response.status_code})",
        status=response.status_code,
        body=body,
    )


class ProviderSession:
    """Base for provider adapters: owns one ``ResilientClient`` per ``async with`` block."""

    name: str = "provider"

    def __init__(
        self,
        resilience: ResilienceConfig,
        *,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.resilience = resilience
        self.client_factory = client_factory
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> Self:
        if self._client is None:
            self._client = self.client_factory(self.resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    @property
    def client(self) -> ResilientClient:
        if self._client is None:
            raise RuntimeError(f"{self.name} session used outside 'async with'")
        return self._client

    async def get_json(
        self,
        url: str,
        *,
        access_token: str,
        context: str,
        params: Mapping[str, str | int] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> object:
        request_headers = {"Authorization": f"Bearer {access_token}", **(headers or {})}
        try:
            response = await self.client.get(url, params=params, headers=request_headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{context} failed: {exc}", reason="transport") from exc
        raise_for_provider_status(response, context=context)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{context} returned invalid JSON",
                status=response.status_code,
                body=_excerpt(response),
            ) from exc

    async def post_token(
        self,
        url: str,
        form: Mapping[str, str],
        *,
        auth: tuple[str, str] | None = None,
        context: str,
    ) -> TokenGrant:
        """POST a token grant; any failure surfaces as ``RefreshFailed`` with the body."""

        try:
            response = await self.client.post(url, data=dict(form), auth=auth)
        except httpx.HTTPError as exc:
            raise RefreshFailed(f"{context} failed: {exc}") from exc
        if not response.is_success:
            log.warning(f"{self.name} {context} failed with {response.status_code}")
            raise RefreshFailed(
                f"{context} failed ({response.status_code})",
                status=response.status_code,
                body=_excerpt(response),
            )
        try:
            return TokenResponse.model_validate(response.json()).to_grant()
        except (ValueError, ValidationError) as exc:
            raise RefreshFailed(
                f"{context} returned no access token",
                status=response.status_code,
                body=_excerpt(response),
            ) from exc
