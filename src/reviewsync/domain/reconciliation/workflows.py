"""Provider-specific fetch, match and merge phases driven by the coordinator."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Any, Protocol

from reviewsync.domain.errors import InvalidIdentifier, RecordMergeError
from reviewsync.domain.model import ProviderKind, is_canonical_identifier
from reviewsync.domain.reconciliation.contracts import (
    GoogleReviewQuery,
    Match,
    MatchCandidate,
    Unmatched,
    UnmatchedReason,
    UpsertOutcome,
    XeroInvoiceQuery,
)
from reviewsync.domain.reconciliation.invoices import build_contact_record, summarize_invoices
from reviewsync.domain.reconciliation.matching import select_winners

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import Business, ExternalReviewRaw
    from reviewsync.domain.ports.providers import (
        InvoiceProvider,
        ProviderCapability,
        ReviewProvider,
    )
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation.contracts import (
        ContactActivity,
        ContactRecord,
        ExternalContact,
        ExternalInvoice,
        ExternalReview,
        MatchResult,
    )
    from reviewsync.domain.reconciliation.diagnostics import SyncCounts, SyncDiagnostics
    from reviewsync.domain.reconciliation.matching import MatchingEngine
    from reviewsync.domain.reconciliation.pager import ProviderPager
    from reviewsync.domain.reconciliation.tokens import AccessToken
    from reviewsync.domain.reconciliation.upsert import ReconciliationUpserter

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncOptions:
    since: date | None = None
    tenant_id: str | None = None
    force_refresh: bool = False


@dataclass(slots=True)
class RunContext:
    """Everything one run's phases share; lives exactly as long as the unit of work."""

    uow: ReconciliationUnitOfWork
    auth: AuthorizationContext
    business: Business
    token: AccessToken
    options: SyncOptions
    pager: ProviderPager
    matcher: MatchingEngine
    upserter: ReconciliationUpserter
    diagnostics: SyncDiagnostics
    counts: SyncCounts


class SyncWorkflow[TFetched, TPlan](Protocol):
    @property
    def provider(self) -> ProviderKind: ...

    @property
    def capability(self) -> ProviderCapability[Any, Any]: ...

    async def fetch(self, run: RunContext) -> TFetched: ...

    def match(self, run: RunContext, fetched: TFetched) -> TPlan: ...

    def merge(self, run: RunContext, plan: TPlan) -> None: ...


def apply_record(run: RunContext, record_id: str, action: Callable[[], UpsertOutcome]) -> None:
    """Run one record's writes in a savepoint; a failure is logged and counted, not raised."""

    try:
        with run.uow.savepoint():
            outcome = action()
    except (RecordMergeError, InvalidIdentifier) as exc:
        run.counts.skipped += 1
        run.diagnostics.error(record_id, exc)
        log.warning(f"Record {record_id} not merged: {exc.message}")
        return

    if outcome is UpsertOutcome.INSERTED:
        run.counts.inserted += 1
    elif outcome is UpsertOutcome.UPDATED:
        run.counts.updated += 1
    elif outcome is UpsertOutcome.SKIPPED:
        run.counts.skipped += 1
        run.diagnostics.skip(record_id, "client-deleted")


def _record_unmatched(run: RunContext, result: Unmatched, **extra: object) -> None:
    run.counts.skipped += 1
    candidate = result.candidate
    if result.reason is UnmatchedReason.INVALID_IDENTIFIER:
        run.diagnostics.invalid(candidate.external_id or candidate.source_id)
        run.diagnostics.error(
            candidate.source_id, InvalidIdentifier(candidate.external_id or candidate.source_id)
        )
        return
    run.diagnostics.skip(candidate.source_id, result.reason.value, **extra)


# Xero: invoices -> contacts -> clients -------------------------------------------


@dataclass(frozen=True, slots=True)
class XeroFetchResult:
    activity: dict[str, ContactActivity]
    contacts: dict[str, ExternalContact]


@dataclass(frozen=True, slots=True)
class ContactPlanItem:
    record: ContactRecord
    match: MatchResult


class XeroContactsWorkflow:
    """Discovers customer contacts through their sales invoices and merges them."""

    provider = ProviderKind.XERO

    def __init__(self, capability: InvoiceProvider, *, default_since: date) -> None:
        self.capability = capability
        self.default_since = default_since

    async def fetch(self, run: RunContext) -> XeroFetchResult:
        since = run.options.since or self.default_since
        query = XeroInvoiceQuery(tenant_id=run.token.tenant_id, since=since)
        run.diagnostics.note(f"Invoices dated on or after {since.isoformat()}")
        invoices = [
            invoice
            async for invoice in run.pager.fetch_all(
                self.capability, run.token.token, query, run.diagnostics
            )
        ]
        activity = summarize_invoices(invoices, run.diagnostics)
        lookup_ids = [contact_id for contact_id in activity if is_canonical_identifier(contact_id)]
        contacts = await run.pager.fetch_in_batches(
            partial(self.capability.fetch_contacts, run.token.token, run.token.tenant_id),
            lookup_ids,
            run.diagnostics,
        )
        by_id = {contact.contact_id: contact for contact in contacts}
        for contact in by_id.values():
            if contact.is_customer is True:
                run.diagnostics.bump("is_customer_true")
            elif contact.is_customer is False:
                run.diagnostics.bump("is_customer_false")
            else:
                run.diagnostics.bump("is_customer_null")
        return XeroFetchResult(activity=activity, contacts=by_id)

    def match(self, run: RunContext, fetched: XeroFetchResult) -> list[ContactPlanItem]:
        plan: list[ContactPlanItem] = []
        for contact_id, activity in fetched.activity.items():
            run.counts.considered += 1
            candidate = MatchCandidate(
                source_id=contact_id,
                external_id=contact_id,
                display_name=activity.fallback_name,
                occurred_at=None,
                require_identifier=True,
            )
            if not is_canonical_identifier(contact_id):
                _record_unmatched(
                    run, Unmatched(candidate=candidate, reason=UnmatchedReason.INVALID_IDENTIFIER)
                )
                continue

            contact = fetched.contacts.get(contact_id)
            if contact is None:
                run.counts.skipped += 1
                run.diagnostics.skip(contact_id, "missing-contact")
                run.diagnostics.bump("skipped_missing_contact")
                continue
            if contact.is_customer is not True:
                run.counts.skipped += 1
                run.diagnostics.skip(contact_id, "not-customer")
                run.diagnostics.bump("skipped_not_customer")
                continue

            result = run.matcher.match(run.business.id, candidate)
            if isinstance(result, Match):
                run.counts.matched += 1
            elif result.reason is UnmatchedReason.INVALID_IDENTIFIER:
                _record_unmatched(run, result)
                continue
            record = build_contact_record(activity, contact)
            plan.append(ContactPlanItem(record=record, match=result))
        run.diagnostics.extra["customers_included"] = len(plan)
        return plan

    def merge(self, run: RunContext, plan: list[ContactPlanItem]) -> None:
        for item in plan:
            apply_record(
                run,
                item.record.external_id,
                partial(run.upserter.apply_contact, run.business.id, item.record, item.match),
            )


# Google: reviews -> raw reviews -> review records --------------------------------


@dataclass(frozen=True, slots=True)
class ReviewPlanItem:
    match: Match
    raw: ExternalReviewRaw


class GoogleReviewsWorkflow:
    """Stages fetched reviews, links them to clients by name and merges them."""

    provider = ProviderKind.GOOGLE

    def __init__(self, capability: ReviewProvider) -> None:
        self.capability = capability

    async def fetch(self, run: RunContext) -> list[ExternalReview]:
        location = await self.capability.resolve_location(
            run.token.token, run.token.tenant_id, run.business
        )
        run.diagnostics.note(f"Reviews for {location.parent} (chosen by {location.matched_by})")
        query = GoogleReviewQuery(parent=location.parent)
        return [
            review
            async for review in run.pager.fetch_all(
                self.capability, run.token.token, query, run.diagnostics
            )
        ]

    def match(self, run: RunContext, fetched: list[ExternalReview]) -> list[ReviewPlanItem]:
        staged: dict[str, ExternalReviewRaw] = {}
        matches: list[Match] = []
        for review in fetched:
            run.counts.considered += 1
            try:
                with run.uow.savepoint():
                    raw, outcome = run.upserter.upsert_raw_review(run.business.id, review)
            except RecordMergeError as exc:
                run.counts.skipped += 1
                run.diagnostics.error(review.review_id, exc)
                continue
            run.diagnostics.bump(f"raw_{outcome.value}")
            staged[review.review_id] = raw

            candidate = MatchCandidate(
                source_id=review.review_id,
                display_name=review.author_name,
                occurred_at=review.updated_at or review.published_at,
                allow_name_fallback=True,
            )
            result = run.matcher.match(run.business.id, candidate)
            if isinstance(result, Unmatched):
                _record_unmatched(run, result, author=review.author_name)
                continue
            if result.ambiguous:
                run.diagnostics.bump("ambiguous_name_matches")
            run.counts.matched += 1
            matches.append(result)

        winners, superseded = select_winners(matches)
        for loser in superseded:
            run.counts.skipped += 1
            run.diagnostics.skip(loser.candidate.source_id, "superseded")

        plan: list[ReviewPlanItem] = []
        for winner in winners:
            raw = staged[winner.candidate.source_id]
            if raw.linked:
                run.counts.skipped += 1
                run.diagnostics.skip(winner.candidate.source_id, "already-linked")
                continue
            plan.append(ReviewPlanItem(match=winner, raw=raw))
        return plan

    def merge(self, run: RunContext, plan: list[ReviewPlanItem]) -> None:
        for item in plan:
            apply_record(
                run,
                item.raw.external_review_id,
                partial(run.upserter.apply_review, run.business.id, item.raw, item.match.client_id),
            )
