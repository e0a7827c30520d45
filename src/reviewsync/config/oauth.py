"""Settings for the OAuth connect/callback handshake."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int, optional_env, require_env_vars

DEFAULT_REDIRECT_BASE = "http://localhost:3000"
DEFAULT_STATE_MAX_AGE_SECONDS = 600
DEFAULT_RETURN_TO = "/dashboard"


@dataclass(frozen=True, slots=True)
class OAuthConfig:
    state_secret: str
    redirect_base: str = DEFAULT_REDIRECT_BASE
    state_max_age_seconds: int = DEFAULT_STATE_MAX_AGE_SECONDS

    def redirect_uri(self, provider: str) -> str:
        return f"{self.redirect_base.rstrip('/')}/api/{provider}/callback"


def get_oauth_config() -> OAuthConfig:
    values = require_env_vars(("OAUTH_STATE_SECRET",))
    return OAuthConfig(
        state_secret=values["OAUTH_STATE_SECRET"],
        redirect_base=optional_env("OAUTH_REDIRECT_BASE", DEFAULT_REDIRECT_BASE)
        or DEFAULT_REDIRECT_BASE,
        state_max_age_seconds=env_int(
            "OAUTH_STATE_MAX_AGE_SECONDS", DEFAULT_STATE_MAX_AGE_SECONDS
        ),
    )
