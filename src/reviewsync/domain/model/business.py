"""The tenant that owns clients, reviews and provider connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import parse_qs, urlsplit

from reviewsync.domain.model.base import Entity, utcnow
from reviewsync.domain.model.identifiers import slugify


@dataclass(eq=False, kw_only=True)
class Business(Entity):
    owner_user_id: str
    display_name: str
    google_place_id: str | None = None
    google_review_link: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def slug(self) -> str:
        return slugify(self.display_name)

    @property
    def place_id_hint(self) -> str | None:
        """Google place id, either stored directly or carried by the review link."""
        if self.google_place_id:
            return self.google_place_id
        if not self.google_review_link:
            return None
        query = parse_qs(urlsplit(self.google_review_link).query)
        values = query.get("placeid") or query.get("place_id")
        return values[0] if values else None
