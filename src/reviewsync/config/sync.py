"""Reconciliation run defaults."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from .env import env_int

DEFAULT_MAX_PAGES = 50
DEFAULT_CONTACT_BATCH_SIZE = 100
DEFAULT_TOKEN_SKEW_SECONDS = 60
DEFAULT_SAMPLE_CAP = 20
DEFAULT_GOOD_STAR_THRESHOLD = 3
DEFAULT_INVOICES_SINCE = date(2025, 1, 1)


@dataclass(frozen=True, slots=True)
class SyncConfig:
    max_pages: int = DEFAULT_MAX_PAGES
    contact_batch_size: int = DEFAULT_CONTACT_BATCH_SIZE
    token_skew_seconds: int = DEFAULT_TOKEN_SKEW_SECONDS
    sample_cap: int = DEFAULT_SAMPLE_CAP
    good_star_threshold: int = DEFAULT_GOOD_STAR_THRESHOLD
    invoices_since: date = DEFAULT_INVOICES_SINCE

    @property
    def token_skew(self) -> timedelta:
        return timedelta(seconds=self.token_skew_seconds)


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        max_pages=env_int("REVIEWSYNC_MAX_PAGES", DEFAULT_MAX_PAGES),
        contact_batch_size=env_int("REVIEWSYNC_CONTACT_BATCH_SIZE", DEFAULT_CONTACT_BATCH_SIZE),
    )
