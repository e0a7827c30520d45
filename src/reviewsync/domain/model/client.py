"""Canonical client and review records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from reviewsync.domain.model.base import TimestampedEntity
from reviewsync.domain.model.enums import InvoiceStatus, PrimarySource, Sentiment
from reviewsync.domain.model.identifiers import name_key

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


def sentiment_for_stars(stars: int, *, threshold: int) -> Sentiment:
    return Sentiment.GOOD if stars >= threshold else Sentiment.BAD


@dataclass(eq=False, kw_only=True)
class Client(TimestampedEntity):
    business_id: UUID
    display_name: str
    email: str | None = None
    phone: str | None = None
    sentiment: Sentiment = Sentiment.UNREVIEWED
    invoice_status: InvoiceStatus | None = None
    external_id: str | None = None
    item_description: str | None = None
    created_by: str | None = None
    deleted_at: datetime | None = None

    # stored so name matching can be an indexed equality lookup
    match_name: str | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.match_name = name_key(self.display_name)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_reviewed(self) -> bool:
        return self.sentiment is not Sentiment.UNREVIEWED

    def rename(self, display_name: str) -> None:
        self.display_name = display_name
        self.match_name = name_key(display_name)

    def infer_sentiment(self, stars: int | None, *, threshold: int) -> bool:
        """Derive sentiment from a star rating while the client is still unreviewed.

        Returns whether the sentiment changed.
        """
        if self.is_reviewed or stars is None:
            return False
        self.sentiment = sentiment_for_stars(stars, threshold=threshold)
        return True


@dataclass(eq=False, kw_only=True)
class ReviewRecord(TimestampedEntity):
    """One review row per client; internal and imported text live side by side."""

    business_id: UUID
    client_id: UUID
    internal_text: str | None = None
    external_text: str | None = None
    external_review_id: str | None = None
    stars: int | None = None
    primary_source: PrimarySource = PrimarySource.INTERNAL
    happy: bool | None = None

    @property
    def has_internal_text(self) -> bool:
        return bool(self.internal_text and self.internal_text.strip())

    @property
    def has_external_text(self) -> bool:
        return bool(self.external_text and self.external_text.strip())
