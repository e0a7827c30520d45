"""MockTransport wiring for the resilient provider clients."""

from __future__ import annotations

from collections.abc import Callable  # noqa: TC003

import httpx

from reviewsync.adapters.http_resilience import ResilientClient
from reviewsync.config.http_resilience import ResilienceConfig  # noqa: TC001

type Handler = Callable[[httpx.Request], httpx.Response]


def mock_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            transport=httpx.MockTransport(async_handler),
            base_url=resilience.base_url or "",
        )
        return client

    return factory
