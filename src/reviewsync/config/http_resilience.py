"""Configuration types for resilient provider HTTP clients."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import httpx

from .env import optional_env
from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

ResponseHook = Callable[[httpx.Response], Awaitable[None] | None]
ShouldCacheHook = Callable[[object], bool]

HTTP_CACHE_ENV = "REVIEWSYNC_HTTP_CACHE"

_UNCACHEABLE_KEYS = frozenset({"access_token", "refresh_token", "error"})


def cacheable_payload(payload: object) -> bool:
    """Token grants and error bodies never enter the response cache."""
    if isinstance(payload, dict):
        return _UNCACHEABLE_KEYS.isdisjoint(payload)  # pyright: ignore[reportUnknownArgumentType]
    return True


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    respect_retry_after_header: bool = True
    # token grants are single-use, so POST is not replayed
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"GET", "HEAD", "OPTIONS"})
    )
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    backoff_jitter: float = 1.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float
    partition_header: str | None = None


@dataclass(slots=True, frozen=True)
class CacheConfig:
    enabled: bool = True
    backend: Literal["sqlite", "memory"] = "memory"
    sqlite_path: str | None = None
    default_ttl_seconds: float | None = 300.0
    refresh_ttl_on_access: bool = False
    should_cache: ShouldCacheHook = cacheable_payload


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    response_hooks: tuple[ResponseHook, ...] = field(default_factory=tuple)
    default_headers: Mapping[str, str] | None = None


def cache_from_env() -> CacheConfig | None:
    """Return the response cache requested via ``REVIEWSYNC_HTTP_CACHE``.

    Caching is off unless the variable is ``memory`` or ``sqlite``.
    """

    value = (optional_env(HTTP_CACHE_ENV) or "off").lower()
    if value in {"off", "none", "0", "false"}:
        return None
    if value == "memory":
        return CacheConfig(backend="memory")
    if value == "sqlite":
        return CacheConfig(backend="sqlite")
    raise ConfigurationError(f"{HTTP_CACHE_ENV} must be off, memory or sqlite, got {value!r}")
