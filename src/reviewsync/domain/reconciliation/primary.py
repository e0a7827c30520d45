"""Read-time choice of the one review text shown for a client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from reviewsync.domain.model import PrimarySource

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from reviewsync.domain.model import Client, ReviewRecord


@dataclass(frozen=True, slots=True)
class DisplayedReview:
    text: str
    timestamp: datetime
    source: PrimarySource


def _recency(review: ReviewRecord) -> tuple[datetime, bool, str]:
    return review.last_touched_at, review.updated_at is not None, str(review.id)


def resolve_primary_review(
    client: Client, reviews: Iterable[ReviewRecord]
) -> DisplayedReview | None:
    """Latest internal text if any, else latest imported text; nothing while unreviewed."""

    if not client.is_reviewed:
        return None

    own = [review for review in reviews if review.client_id == client.id]

    internal = [review for review in own if review.has_internal_text]
    if internal:
        best = max(internal, key=_recency)
        return DisplayedReview(
            text=(best.internal_text or "").strip(),
            timestamp=best.last_touched_at,
            source=PrimarySource.INTERNAL,
        )

    external = [review for review in own if review.has_external_text]
    if external:
        best = max(external, key=_recency)
        return DisplayedReview(
            text=(best.external_text or "").strip(),
            timestamp=best.last_touched_at,
            source=PrimarySource.EXTERNAL,
        )
    return None
