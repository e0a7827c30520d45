"""httpx client for provider APIs: retries, per-tenant rate limits, optional caching."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from reviewsync.config.storage import get_storage_config

if TYPE_CHECKING:
    from httpx._client import UseClientDefault
    from httpx._types import (
        AuthTypes,
        HeaderTypes,
        QueryParamTypes,
        RequestData,
        TimeoutTypes,
        URLTypes,
    )

    from reviewsync.config.http_resilience import (
        CacheConfig,
        ResilienceConfig,
        ResponseHook,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)


class RequestOptions(TypedDict, total=False):
    data: RequestData | None
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    auth: AuthTypes | UseClientDefault | None
    timeout: TimeoutTypes | UseClientDefault


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: HeaderTypes
    event_hooks: dict[str, list[ResponseHook]]
    transport: httpx.AsyncBaseTransport


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


class ResilientClient:
    """One provider's HTTP client, owned by a provider session.

    Calls are throttled per partition: when the rate limit names a
    ``partition_header`` (Xero's tenant header), each header value gets its
    own limiter, otherwise all calls share one.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiters: dict[str, AsyncLimiter] = {}

        options: AsyncClientOptions = {
            "timeout": config.timeout_seconds,
            "transport": RetryTransport(retry=build_retry(config.retry)),
        }
        if config.base_url is not None:
            options["base_url"] = config.base_url
        if config.default_headers:
            options["headers"] = dict(config.default_headers)
        if config.response_hooks:
            options["event_hooks"] = {"response": list(config.response_hooks)}

        storage, policy = _build_cache_components(config.cache)
        if storage is not None:
            self._client = AsyncCacheClient(**options, storage=storage, policy=policy)
        else:
            self._client = httpx.AsyncClient(**options)

    async def aclose(self) -> None:
        await self._client.aclose()

    def limiter_for(self, headers: HeaderTypes | None) -> AsyncLimiter | None:
        limit = self.config.ratelimit
        if limit is None:
            return None
        key = ""
        if limit.partition_header and headers is not None:
            key = httpx.Headers(headers).get(limit.partition_header, "")
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = AsyncLimiter(limit.max_calls, limit.per_seconds)
            self._limiters[key] = limiter
        return limiter

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        limiter = self.limiter_for(kwargs.get("headers"))
        if limiter is None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with limiter:
                response = await self._client.request(method, url, **kwargs)

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            retry_after = response.headers.get("Retry-After")
            log.warning(
                f"{self.config.name} still throttled after retries (Retry-After={retry_after})"
            )
        else:
            log.debug(f"{self.config.name} {method} {response.url.path}: {response.status_code}")
        return response

    async def get(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("POST", url, **kwargs)


class _PayloadFilter(BaseFilter[HishelCacheResponse]):
    """Hishel response filter that asks a predicate about the decoded JSON body."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if not body:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _build_cache_components(
    config: CacheConfig | None,
) -> tuple[AsyncSqliteStorage | None, FilterPolicy | None]:
    if config is None or not config.enabled:
        return None, None

    if config.backend == "sqlite":
        database_path = config.sqlite_path or str(get_storage_config().http_cache_path())
    else:
        database_path = ":memory:"
    storage = AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )
    policy = FilterPolicy(response_filters=[_PayloadFilter(config.should_cache)])
    return storage, policy
