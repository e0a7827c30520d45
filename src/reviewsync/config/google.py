"""Google Business Profile configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, cache_from_env

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_ACCOUNTS_URL = "https://mybusinessaccountmanagement.googleapis.com/v1/accounts"
GOOGLE_LOCATIONS_BASE_URL = "https://mybusinessbusinessinformation.googleapis.com/v1"
GOOGLE_REVIEWS_BASE_URL = "https://mybusiness.googleapis.com/v4"
GOOGLE_TIMEOUT_SECONDS = 20.0
DEFAULT_GOOGLE_SCOPES = ("https://www.googleapis.com/auth/business.manage",)


@dataclass(frozen=True)
class GoogleConfig:
    """Holds the Google OAuth client and Business Profile client behaviour."""

    client_id: str
    client_secret: str
    scopes: tuple[str, ...]
    resilience: ResilienceConfig


def google_resilience() -> ResilienceConfig:
    return ResilienceConfig(
        name="google",
        timeout_seconds=GOOGLE_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        cache=cache_from_env(),
        default_headers={"Accept": "application/json"},
    )


def get_google_config(*, resilience: ResilienceConfig | None = None) -> GoogleConfig:
    values = require_env_vars(("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET"))
    return GoogleConfig(
        client_id=values["GOOGLE_CLIENT_ID"],
        client_secret=values["GOOGLE_CLIENT_SECRET"],
        scopes=DEFAULT_GOOGLE_SCOPES,
        resilience=resilience or google_resilience(),
    )
