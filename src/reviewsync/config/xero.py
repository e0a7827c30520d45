"""Xero API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, cache_from_env

XERO_API_BASE_URL = "https://api.xero.com"
XERO_TOKEN_URL = "https://identity.xero.com/connect/token"
XERO_AUTHORIZE_URL = "https://login.xero.com/identity/connect/authorize"
XERO_TIMEOUT_SECONDS = 30.0
DEFAULT_XERO_SCOPES = (
    "offline_access",
    "accounting.transactions.read",
    "accounting.contacts.read",
)


@dataclass(frozen=True)
class XeroConfig:
    """Holds the Xero app credentials and client behaviour."""

    client_id: str
    client_secret: str
    scopes: tuple[str, ...]
    resilience: ResilienceConfig


def xero_resilience() -> ResilienceConfig:
    # Xero allows 60 calls per minute per tenant
    return ResilienceConfig(
        name="xero",
        base_url=XERO_API_BASE_URL,
        timeout_seconds=XERO_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=60, per_seconds=60.0, partition_header="Xero-tenant-id"),
        cache=cache_from_env(),
        default_headers={"Accept": "application/json"},
    )


def get_xero_config(*, resilience: ResilienceConfig | None = None) -> XeroConfig:
    values = require_env_vars(("XERO_CLIENT_ID", "XERO_CLIENT_SECRET"))
    raw_scopes = optional_env("XERO_SCOPES")
    scopes = tuple(raw_scopes.split()) if raw_scopes else DEFAULT_XERO_SCOPES
    return XeroConfig(
        client_id=values["XERO_CLIENT_ID"],
        client_secret=values["XERO_CLIENT_SECRET"],
        scopes=scopes,
        resilience=resilience or xero_resilience(),
    )
