"""Reconciliation of provider records into a business's clients and reviews."""

from __future__ import annotations

from .contracts import (
    ContactActivity,
    ContactRecord,
    ExternalContact,
    ExternalInvoice,
    ExternalReview,
    GoogleReviewQuery,
    Match,
    MatchCandidate,
    MatchResult,
    MatchTier,
    ReviewLocation,
    Unmatched,
    UnmatchedReason,
    UpsertOutcome,
    XeroInvoiceQuery,
)
from .coordinator import (
    SyncFailure,
    SyncResult,
    SyncState,
    SyncStateMachine,
    SyncStatus,
    TransactionCoordinator,
)
from .diagnostics import SampleList, SyncCounts, SyncDiagnostics
from .invoices import build_contact_record, invoice_status, summarize_invoices
from .matching import MatchingEngine, select_winners
from .pager import ProviderPager
from .primary import DisplayedReview, resolve_primary_review
from .tokens import AccessToken, TokenBroker
from .upsert import UNKNOWN_CONTACT_NAME, ReconciliationUpserter, merge_fields
from .workflows import (
    GoogleReviewsWorkflow,
    RunContext,
    SyncOptions,
    SyncWorkflow,
    XeroContactsWorkflow,
)

__all__ = [
    "UNKNOWN_CONTACT_NAME",
    "AccessToken",
    "ContactActivity",
    "ContactRecord",
    "DisplayedReview",
    "ExternalContact",
    "ExternalInvoice",
    "ExternalReview",
    "GoogleReviewQuery",
    "GoogleReviewsWorkflow",
    "Match",
    "MatchCandidate",
    "MatchResult",
    "MatchTier",
    "MatchingEngine",
    "ProviderPager",
    "ReconciliationUpserter",
    "ReviewLocation",
    "RunContext",
    "SampleList",
    "SyncCounts",
    "SyncDiagnostics",
    "SyncFailure",
    "SyncOptions",
    "SyncResult",
    "SyncState",
    "SyncStateMachine",
    "SyncStatus",
    "SyncWorkflow",
    "TokenBroker",
    "TransactionCoordinator",
    "Unmatched",
    "UnmatchedReason",
    "UpsertOutcome",
    "XeroContactsWorkflow",
    "XeroInvoiceQuery",
    "build_contact_record",
    "invoice_status",
    "merge_fields",
    "resolve_primary_review",
    "select_winners",
    "summarize_invoices",
]
