"""Normalised provider records and the value types passed between run phases."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date, datetime
    from uuid import UUID

    from reviewsync.domain.model import InvoiceStatus


# Provider records ------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExternalInvoice:
    invoice_id: str | None
    invoice_type: str | None
    contact_id: str | None
    contact_name: str | None
    status: str | None
    sent_to_contact: bool
    issued_on: date | None
    line_descriptions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ExternalContact:
    contact_id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    is_customer: bool | None = None


@dataclass(frozen=True, slots=True)
class ContactActivity:
    """What the invoice listing says about one contact."""

    contact_id: str
    fallback_name: str | None
    item_description: str | None
    invoice_status: InvoiceStatus | None
    latest_invoice_on: date | None


@dataclass(frozen=True, slots=True)
class ContactRecord:
    """A customer contact ready to be merged into a client."""

    external_id: str
    display_name: str | None
    email: str | None = None
    phone: str | None = None
    invoice_status: InvoiceStatus | None = None
    item_description: str | None = None


@dataclass(frozen=True, slots=True)
class ExternalReview:
    review_id: str
    author_name: str | None = None
    text: str | None = None
    stars: int | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ReviewLocation:
    parent: str
    title: str | None = None
    place_id: str | None = None
    matched_by: str = "first"


# Queries ---------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class XeroInvoiceQuery:
    tenant_id: str
    since: date


@dataclass(frozen=True, slots=True)
class GoogleReviewQuery:
    parent: str


# Matching --------------------------------------------------------------------


class MatchTier(StrEnum):
    EXACT = "exact"
    NAME = "name"


class UnmatchedReason(StrEnum):
    INVALID_IDENTIFIER = "invalid-identifier"
    NO_IDENTIFIER_MATCH = "no-identifier-match"
    NO_NAME_MATCH = "no-name-match"
    MISSING_NAME = "missing-name"


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """The identifying facets of one external record.

    ``source_id`` is the record's own id in the provider; ``external_id`` is the
    stable id a client stores for that provider, when the record carries one.
    """

    source_id: str
    external_id: str | None = None
    display_name: str | None = None
    occurred_at: datetime | None = None
    require_identifier: bool = False
    allow_name_fallback: bool = False


@dataclass(frozen=True, slots=True)
class Match:
    candidate: MatchCandidate
    client_id: UUID
    tier: MatchTier
    ambiguous: bool = False


@dataclass(frozen=True, slots=True)
class Unmatched:
    candidate: MatchCandidate
    reason: UnmatchedReason


type MatchResult = Match | Unmatched


class UpsertOutcome(StrEnum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
