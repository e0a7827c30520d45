"""Application services for businesses, clients and internally authored reviews."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from reviewsync.domain.authorization import resolve_authorization
from reviewsync.domain.errors import ClientNotFound, DuplicateClient, ReviewAlreadySubmitted
from reviewsync.domain.model import (
    Business,
    Client,
    PrimarySource,
    ReviewRecord,
    Sentiment,
    clean_text,
    normalize_email,
    utcnow,
)
from reviewsync.domain.reconciliation.primary import resolve_primary_review

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation.primary import DisplayedReview

log = getLogger(__name__)

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_STARS = 5


def _happy_for(sentiment: Sentiment) -> bool | None:
    if sentiment is Sentiment.GOOD:
        return True
    if sentiment is Sentiment.BAD:
        return False
    return None


@dataclass(frozen=True, slots=True)
class ClientOverview:
    client: Client
    review: DisplayedReview | None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": str(self.client.id),
            "display_name": self.client.display_name,
            "email": self.client.email,
            "phone": self.client.phone,
            "sentiment": self.client.sentiment.value,
            "invoice_status": (
                self.client.invoice_status.value if self.client.invoice_status else None
            ),
            "external_id": self.client.external_id,
            "item_description": self.client.item_description,
            "review": (
                {
                    "text": self.review.text,
                    "timestamp": self.review.timestamp.isoformat(),
                    "source": self.review.source.value,
                }
                if self.review is not None
                else None
            ),
        }


def create_business(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    user_id: str,
    display_name: str,
    google_place_id: str | None = None,
    google_review_link: str | None = None,
) -> Business:
    name = clean_text(display_name)
    if name is None:
        raise ValueError("Business name is required")

    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        business = Business(
            owner_user_id=user_id,
            display_name=name,
            google_place_id=clean_text(google_place_id),
            google_review_link=clean_text(google_review_link),
        )
        uow.repositories.businesses.add(auth.granting(business.id), business)
        uow.commit()
    log.info(f"Created business {business.id} ({business.slug}) for {user_id}")
    return business


def add_client(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    user_id: str,
    business_id: UUID,
    display_name: str,
    email: str | None = None,
    phone: str | None = None,
    sentiment: Sentiment = Sentiment.UNREVIEWED,
    initial_review: str | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Client:
    """Add a client by hand, optionally with the review they already gave."""

    name = clean_text(display_name)
    if name is None:
        raise ValueError("Client name is required")
    normalized_email = normalize_email(email)
    if normalized_email is not None and not _EMAIL.match(normalized_email):
        raise ValueError(f"Invalid email address: {email}")

    now = clock()
    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        auth.require(business_id)
        if normalized_email is not None:
            taken = uow.repositories.clients.find_by_email(
                auth, business_id, normalized_email, include_deleted=True
            )
            if taken is not None:
                raise DuplicateClient(
                    f"A client with email {normalized_email} already exists",
                    details={"client_id": str(taken.id), "deleted": taken.is_deleted},
                )
        client = Client(
            business_id=business_id,
            display_name=name,
            email=normalized_email,
            phone=clean_text(phone),
            sentiment=sentiment,
            created_by=user_id,
            created_at=now,
        )
        uow.repositories.clients.add(auth, client)

        text = clean_text(initial_review)
        if text is not None:
            uow.repositories.reviews.add(
                auth,
                ReviewRecord(
                    business_id=business_id,
                    client_id=client.id,
                    internal_text=text,
                    primary_source=PrimarySource.INTERNAL,
                    happy=_happy_for(sentiment),
                    created_at=now,
                ),
            )
        uow.commit()
    return client


def submit_internal_review(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    user_id: str,
    business_id: UUID,
    client_id: UUID,
    sentiment: Sentiment,
    text: str,
    stars: float | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> ReviewRecord:
    """Record the client's own review and set their sentiment from it.

    A client reviews internally once. An imported review already on file is
    kept next to the internal text, which becomes the primary source.
    """

    if sentiment is Sentiment.UNREVIEWED:
        raise ValueError("Review sentiment must be good or bad")
    body = clean_text(text)
    if body is None:
        raise ValueError("Review text is required")
    rating = round(stars) if stars is not None and 0 <= stars <= MAX_STARS else None

    now = clock()
    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        auth.require(business_id)
        client = uow.repositories.clients.get(auth, business_id, client_id)
        if client is None or client.is_deleted:
            raise ClientNotFound(f"Client {client_id} not found for this business")

        reviews = uow.repositories.reviews
        review = reviews.latest_for_client(auth, business_id, client_id)
        if review is not None and review.has_internal_text:
            raise ReviewAlreadySubmitted(f"Client {client_id} already submitted a review")

        if review is None:
            review = ReviewRecord(
                business_id=business_id,
                client_id=client_id,
                created_at=now,
            )
            reviews.add(auth, review)
        else:
            review.updated_at = now
        review.internal_text = body
        review.primary_source = PrimarySource.INTERNAL
        review.happy = _happy_for(sentiment)
        if rating is not None:
            review.stars = rating

        client.sentiment = sentiment
        client.updated_at = now
        uow.commit()
    return review


def list_client_reviews(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    user_id: str,
    business_id: UUID,
) -> list[ClientOverview]:
    """Active clients of a business, each with the single review text to display."""

    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        auth.require(business_id)
        clients = uow.repositories.clients.list_active(auth, business_id)
        reviews = uow.repositories.reviews.list_for_business(auth, business_id)
        by_client: dict[UUID, list[ReviewRecord]] = {}
        for review in reviews:
            by_client.setdefault(review.client_id, []).append(review)
        return [
            ClientOverview(
                client=client, review=resolve_primary_review(client, by_client.get(client.id, []))
            )
            for client in clients
        ]
