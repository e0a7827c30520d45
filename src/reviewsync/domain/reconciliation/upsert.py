"""Insert-or-merge of provider records into clients, reviews and raw reviews."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from reviewsync.domain.errors import RecordMergeError
from reviewsync.domain.model import (
    Client,
    ExternalReviewRaw,
    PrimarySource,
    ReviewRecord,
    clean_text,
    normalize_email,
    utcnow,
)
from reviewsync.domain.reconciliation.contracts import Match, UpsertOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime
    from uuid import UUID

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation.contracts import (
        ContactRecord,
        ExternalReview,
        MatchResult,
    )
    from reviewsync.domain.reconciliation.diagnostics import SyncDiagnostics

log = getLogger(__name__)

UNKNOWN_CONTACT_NAME = "(Unknown Contact)"
DEFAULT_GOOD_STAR_THRESHOLD = 3


def merge_fields(target: object, updates: Mapping[str, object | None]) -> list[str]:
    """Copy non-empty incoming values onto ``target``; return the names that changed.

    ``None`` and blank strings never overwrite a stored value.
    """

    changed: list[str] = []
    for name, incoming in updates.items():
        if incoming is None:
            continue
        if isinstance(incoming, str) and not incoming.strip():
            continue
        if getattr(target, name) != incoming:
            setattr(target, name, incoming)
            changed.append(name)
    return changed


class ReconciliationUpserter:
    """Applies matched or new provider records inside the caller's unit of work.

    Writes are flushed as they happen so constraint violations surface on the
    record that caused them.
    """

    def __init__(
        self,
        uow: ReconciliationUnitOfWork,
        auth: AuthorizationContext,
        *,
        clock: Callable[[], datetime] = utcnow,
        good_star_threshold: int = DEFAULT_GOOD_STAR_THRESHOLD,
        diagnostics: SyncDiagnostics | None = None,
    ) -> None:
        self.uow = uow
        self.auth = auth
        self.clock = clock
        self.good_star_threshold = good_star_threshold
        self.diagnostics = diagnostics

    # Contacts ----------------------------------------------------------------

    def apply_contact(
        self, business_id: UUID, record: ContactRecord, match: MatchResult
    ) -> UpsertOutcome:
        clients = self.uow.repositories.clients
        email = normalize_email(record.email)

        if isinstance(match, Match):
            client = clients.get(self.auth, business_id, match.client_id)
            if client is None:
                raise RecordMergeError(record.external_id, "Matched client no longer exists")
            return self._merge_contact(client, record, email, link=False)

        if self._held_by_deleted_client(business_id, record.external_id, email):
            log.info(f"Contact {record.external_id} belongs to a deleted client; left deleted")
            return UpsertOutcome.SKIPPED

        existing = clients.find_by_email(self.auth, business_id, email) if email else None
        if existing is not None:
            return self._merge_contact(existing, record, email, link=True)

        now = self.clock()
        client = Client(
            business_id=business_id,
            display_name=clean_text(record.display_name) or UNKNOWN_CONTACT_NAME,
            email=email,
            phone=clean_text(record.phone),
            invoice_status=record.invoice_status,
            external_id=record.external_id,
            item_description=clean_text(record.item_description),
            created_by=self.auth.user_id,
            created_at=now,
            updated_at=now,
        )
        clients.add(self.auth, client)
        self.uow.flush()
        return UpsertOutcome.INSERTED

    def _held_by_deleted_client(
        self, business_id: UUID, external_id: str, email: str | None
    ) -> bool:
        """Deleted clients keep their ContactID and email, so they stay deleted."""

        clients = self.uow.repositories.clients
        holder = clients.find_by_external_id(
            self.auth, business_id, external_id, include_deleted=True
        )
        if holder is None and email:
            holder = clients.find_by_email(self.auth, business_id, email, include_deleted=True)
        return holder is not None and holder.is_deleted

    def _merge_contact(
        self, client: Client, record: ContactRecord, email: str | None, *, link: bool
    ) -> UpsertOutcome:
        changed = merge_fields(
            client,
            {
                "email": email,
                "phone": clean_text(record.phone),
                "invoice_status": record.invoice_status,
                "item_description": clean_text(record.item_description),
            },
        )
        name = clean_text(record.display_name)
        if name and name != UNKNOWN_CONTACT_NAME and name != client.display_name:
            client.rename(name)
            changed.append("display_name")
        if link and client.external_id is None:
            client.external_id = record.external_id
            changed.append("external_id")

        if not changed:
            return UpsertOutcome.UNCHANGED
        client.updated_at = self.clock()
        self.uow.flush()
        return UpsertOutcome.UPDATED

    # Reviews -----------------------------------------------------------------

    def upsert_raw_review(
        self, business_id: UUID, review: ExternalReview
    ) -> tuple[ExternalReviewRaw, UpsertOutcome]:
        """Stage a fetched review keyed by its provider id; ``linked`` is left alone."""

        repository = self.uow.repositories.external_reviews
        raw = repository.get_by_external_id(self.auth, business_id, review.review_id)
        if raw is None:
            raw = ExternalReviewRaw(
                business_id=business_id,
                external_review_id=review.review_id,
                author_name=clean_text(review.author_name),
                text=clean_text(review.text),
                stars=review.stars,
                published_at=review.published_at,
                created_at=self.clock(),
            )
            repository.add(self.auth, raw)
            self.uow.flush()
            return raw, UpsertOutcome.INSERTED

        changed = merge_fields(
            raw,
            {
                "author_name": clean_text(review.author_name),
                "text": clean_text(review.text),
                "stars": review.stars,
                "published_at": review.published_at,
            },
        )
        if not changed:
            return raw, UpsertOutcome.UNCHANGED
        raw.updated_at = self.clock()
        self.uow.flush()
        return raw, UpsertOutcome.UPDATED

    def apply_review(
        self, business_id: UUID, raw: ExternalReviewRaw, client_id: UUID
    ) -> UpsertOutcome:
        """Attach an imported review to a client and mark the raw review linked.

        Internal text keeps primacy: imported text is stored next to it and the
        primary source only points at the import when no internal text exists.
        """

        client = self.uow.repositories.clients.get(self.auth, business_id, client_id)
        if client is None:
            raise RecordMergeError(raw.external_review_id, "Matched client no longer exists")

        reviews = self.uow.repositories.reviews
        current = reviews.latest_for_client(self.auth, business_id, client_id)
        text = clean_text(raw.text)
        now = self.clock()
        happy = raw.stars >= self.good_star_threshold if raw.stars is not None else None

        if current is None:
            record = ReviewRecord(
                business_id=business_id,
                client_id=client_id,
                external_text=text,
                external_review_id=raw.external_review_id,
                stars=raw.stars,
                primary_source=PrimarySource.EXTERNAL,
                happy=happy,
                created_at=now,
                updated_at=now,
            )
            reviews.add(self.auth, record)
            outcome = UpsertOutcome.INSERTED
        else:
            changed = merge_fields(
                current,
                {
                    "external_text": text,
                    "external_review_id": raw.external_review_id,
                    "stars": raw.stars,
                },
            )
            if current.has_internal_text:
                primary = PrimarySource.INTERNAL
            elif current.has_external_text:
                primary = PrimarySource.EXTERNAL
            else:
                primary = current.primary_source
            if primary != current.primary_source:
                current.primary_source = primary
                changed.append("primary_source")
            if current.happy is None and happy is not None:
                current.happy = happy
                changed.append("happy")
            if changed:
                current.updated_at = now
            outcome = UpsertOutcome.UPDATED if changed else UpsertOutcome.UNCHANGED

        if client.infer_sentiment(raw.stars, threshold=self.good_star_threshold):
            client.updated_at = now
            if self.diagnostics is not None:
                self.diagnostics.bump("sentiment_inferred")
        self.uow.flush()

        raw.linked = True
        raw.updated_at = now
        self.uow.flush()
        return outcome
