"""Translate Business Profile payloads into provider records."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from reviewsync.domain.model import Tenant, slugify
from reviewsync.domain.reconciliation.contracts import ExternalReview, ReviewLocation

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reviewsync.domain.model import Business

    from .schema import AccountPayload, LocationPayload, ReviewPayload

log = getLogger(__name__)

STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}


def star_rating(value: str | None) -> int | None:
    if value is None:
        return None
    return STAR_RATINGS.get(value.upper())


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        log.debug(f"Ignoring unparseable review timestamp {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_external_review(payload: ReviewPayload) -> ExternalReview:
    return ExternalReview(
        review_id=payload.review_id,
        author_name=payload.reviewer.display_name,
        text=payload.comment,
        stars=star_rating(payload.star_rating),
        published_at=parse_timestamp(payload.create_time),
        updated_at=parse_timestamp(payload.update_time),
    )


def to_tenant(payload: AccountPayload) -> Tenant | None:
    if payload.name is None:
        return None
    return Tenant(tenant_id=payload.name, name=payload.account_name, kind=payload.type)


def reviews_parent(account: str, location_name: str) -> str:
    """Normalise a location name to ``accounts/{a}/locations/{l}``."""
    if location_name.startswith("accounts/"):
        return location_name
    if location_name.startswith("locations/"):
        return f"{account}/{location_name}"
    return f"{account}/locations/{location_name.lstrip('/')}"


def choose_location(
    account: str, locations: Sequence[LocationPayload], business: Business
) -> ReviewLocation | None:
    """Pick the business's location: by place id, then by title slug, then the first one."""

    named = [location for location in locations if location.name]
    if not named:
        return None

    chosen: LocationPayload | None = None
    matched_by = "first"
    place_id = business.place_id_hint
    if place_id:
        chosen = next((loc for loc in named if loc.metadata.place_id == place_id), None)
        matched_by = "place-id"
    if chosen is None and business.slug:
        chosen = next((loc for loc in named if slugify(loc.title) == business.slug), None)
        matched_by = "title"
    if chosen is None:
        chosen = named[0]
        matched_by = "first"

    return ReviewLocation(
        parent=reviews_parent(account, chosen.name or ""),
        title=chosen.title,
        place_id=chosen.metadata.place_id,
        matched_by=matched_by,
    )
