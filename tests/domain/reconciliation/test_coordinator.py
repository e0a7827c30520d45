from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from reviewsync.domain.clients import add_client, list_client_reviews
from reviewsync.domain.errors import ProviderError, TransactionError
from reviewsync.domain.model import InvoiceStatus, PrimarySource, ProviderKind, Sentiment
from reviewsync.domain.reconciliation import (
    ExternalContact,
    ExternalInvoice,
    ExternalReview,
    GoogleReviewsWorkflow,
    ProviderPager,
    SyncOptions,
    SyncState,
    SyncStateMachine,
    SyncStatus,
    TransactionCoordinator,
    XeroContactsWorkflow,
)
from tests.helpers.constants import NOW, OTHER_USER_ID, OWNER_ID
from tests.helpers.providers import FakeInvoiceProvider, FakeReviewProvider, store_connection

if TYPE_CHECKING:
    from collections.abc import Callable

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import Business
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation.workflows import ContactPlanItem, RunContext

CUSTOMER_ID = "c0ffee00-0000-4000-8000-00000000000a"
SUPPLIER_ID = "c0ffee00-0000-4000-8000-00000000000b"
SINCE = date(2025, 1, 1)

SUCCESS_STATES = [
    SyncState.IDLE,
    SyncState.AUTHENTICATING,
    SyncState.TOKEN_READY,
    SyncState.FETCHING,
    SyncState.MATCHING,
    SyncState.MERGING,
    SyncState.COMMITTED,
]


def _invoice(contact_id: str, name: str, *, status: str = "PAID") -> ExternalInvoice:
    return ExternalInvoice(
        invoice_id=f"inv-{contact_id}",
        invoice_type="ACCREC",
        contact_id=contact_id,
        contact_name=name,
        status=status,
        sent_to_contact=True,
        issued_on=date(2025, 3, 1),
        line_descriptions=("Bathroom renovation",),
    )


def _xero_provider() -> FakeInvoiceProvider:
    return FakeInvoiceProvider(
        pages=[
            [
                _invoice(CUSTOMER_ID, "Acme Co"),
                _invoice(SUPPLIER_ID, "Supplies Ltd"),
                _invoice("legacy-42", "Legacy Customer"),
            ]
        ],
        contacts={
            CUSTOMER_ID: ExternalContact(
                contact_id=CUSTOMER_ID,
                name="Acme Co",
                email="accounts@acme.test",
                phone="+61 2 5550 1234",
                is_customer=True,
            ),
            SUPPLIER_ID: ExternalContact(
                contact_id=SUPPLIER_ID, name="Supplies", is_customer=False
            ),
        },
    )


def _review(
    review_id: str, author: str, stars: int, text: str, *, when: datetime = NOW
) -> ExternalReview:
    return ExternalReview(
        review_id=review_id, author_name=author, text=text, stars=stars, published_at=when
    )


def _xero(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    provider: FakeInvoiceProvider,
    clock: Callable[[], datetime],
    workflow_type: type[XeroContactsWorkflow] = XeroContactsWorkflow,
    **options: object,
) -> TransactionCoordinator:
    return TransactionCoordinator(
        uow_factory,
        workflow_type(provider, default_since=SINCE),
        clock=clock,
        **options,  # type: ignore[arg-type]
    )


def _google(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    provider: FakeReviewProvider,
    clock: Callable[[], datetime],
) -> TransactionCoordinator:
    return TransactionCoordinator(uow_factory, GoogleReviewsWorkflow(provider), clock=clock)


def _overviews(uow_factory: Callable[[], ReconciliationUnitOfWork], business: Business):
    return list_client_reviews(uow_factory, user_id=OWNER_ID, business_id=business.id)


# State machine ------------------------------------------------------------------


def test_state_machine_rejects_skipping_phases() -> None:
    machine = SyncStateMachine()
    machine.advance(SyncState.AUTHENTICATING)

    with pytest.raises(RuntimeError, match="Illegal"):
        machine.advance(SyncState.MERGING)


def test_state_machine_fails_from_any_live_state() -> None:
    machine = SyncStateMachine()
    machine.advance(SyncState.AUTHENTICATING)
    machine.advance(SyncState.FAILED)
    machine.advance(SyncState.ROLLED_BACK)

    with pytest.raises(RuntimeError):
        machine.advance(SyncState.FAILED)


# Xero ------------------------------------------------------------------------


def test_xero_sync_imports_invoiced_customers(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    provider = _xero_provider()

    result = _xero(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert result.ok
    assert result.states == SUCCESS_STATES
    assert result.counts.to_dict() == {
        "considered": 3,
        "matched": 0,
        "inserted": 1,
        "updated": 0,
        "skipped": 2,
    }
    assert result.diagnostics.invalid_ids.to_dict()["samples"] == [{"id": "legacy-42"}]
    assert result.diagnostics.extra["skipped_not_customer"] == 1
    assert provider.contact_batches == [[CUSTOMER_ID, SUPPLIER_ID]]
    assert provider.queries[0].since == SINCE

    [overview] = _overviews(sqlite_unit_of_work, business)
    client = overview.client
    assert client.external_id == CUSTOMER_ID
    assert client.email == "accounts@acme.test"
    assert client.invoice_status is InvoiceStatus.PAID
    assert client.item_description == "Bathroom renovation"
    assert client.sentiment is Sentiment.UNREVIEWED
    assert overview.review is None


def test_xero_sync_is_idempotent(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    provider = _xero_provider()
    coordinator = _xero(sqlite_unit_of_work, provider, clock)

    coordinator.run(OWNER_ID, business.id)
    second = coordinator.run(OWNER_ID, business.id)

    assert second.ok
    assert second.counts.inserted == 0
    assert second.counts.updated == 0
    assert second.counts.matched == 1
    assert len(_overviews(sqlite_unit_of_work, business)) == 1


def test_xero_sync_leaves_deleted_clients_deleted(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    coordinator = _xero(sqlite_unit_of_work, _xero_provider(), clock)
    coordinator.run(OWNER_ID, business.id)
    with sqlite_unit_of_work() as uow:
        client = uow.repositories.clients.find_by_external_id(owner_auth, business.id, CUSTOMER_ID)
        assert client is not None
        client.deleted_at = NOW
        uow.commit()

    second = coordinator.run(OWNER_ID, business.id)

    assert second.ok
    assert second.counts.inserted == 0
    assert second.counts.skipped == 3
    assert {"id": CUSTOMER_ID, "reason": "client-deleted"} in second.diagnostics.skipped.items
    assert all(error["code"] != "RECORD_MERGE_ERROR" for error in second.diagnostics.errors.items)
    assert _overviews(sqlite_unit_of_work, business) == []


def test_xero_sync_uses_explicit_since(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    provider = _xero_provider()

    _xero(sqlite_unit_of_work, provider, clock).run(
        OWNER_ID, business.id, SyncOptions(since=date(2025, 5, 1))
    )

    assert provider.queries[0].since == date(2025, 5, 1)


class _ExplodingMerge(XeroContactsWorkflow):
    def merge(self, run: RunContext, plan: list[ContactPlanItem]) -> None:
        super().merge(run, plan)
        raise TransactionError("disk full")


def test_failure_after_merge_rolls_back_every_write(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
    clock: Callable[[], datetime],
) -> None:
    store_connection(
        sqlite_unit_of_work,
        business.id,
        ProviderKind.XERO,
        now=NOW,
        expires_in=timedelta(seconds=10),
    )
    provider = _xero_provider()

    result = _xero(sqlite_unit_of_work, provider, clock, _ExplodingMerge).run(
        OWNER_ID, business.id
    )

    assert result.status is SyncStatus.ROLLED_BACK
    assert result.error is not None
    assert result.error.code == "TRANSACTION_ERROR"
    assert result.error.step == "merging"
    assert result.states[-2:] == [SyncState.FAILED, SyncState.ROLLED_BACK]
    assert result.diagnostics.token_refreshed is True
    assert _overviews(sqlite_unit_of_work, business) == []
    with sqlite_unit_of_work() as uow:
        connection = uow.repositories.connections.select_active(
            owner_auth, business.id, ProviderKind.XERO
        )
        assert connection is not None
        assert connection.access_token == "stored-token"


def test_provider_error_rolls_back_and_reports(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    provider = _xero_provider()
    provider.contact_error = ProviderError("Xero contacts failed (503)", status=503)

    result = _xero(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert result.status is SyncStatus.ROLLED_BACK
    assert result.error is not None
    assert result.error.code == "PROVIDER_ERROR"
    assert result.error.step == "fetching"
    assert result.to_dict()["error"]["details"]["reason"] == "batch 0-1"  # type: ignore[index]
    assert _overviews(sqlite_unit_of_work, business) == []


def test_missing_connection_is_reported(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    provider = _xero_provider()

    result = _xero(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert not result.ok
    assert result.error is not None
    assert result.error.code == "NO_CONNECTION"
    assert result.error.step == "authenticating"
    assert provider.page_calls == []


def test_other_users_cannot_sync_a_business(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    provider = _xero_provider()

    result = _xero(sqlite_unit_of_work, provider, clock).run(OTHER_USER_ID, business.id)

    assert result.error is not None
    assert result.error.code == "ACCESS_DENIED"
    assert provider.page_calls == []


def test_page_ceiling_is_surfaced_in_diagnostics(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW)
    provider = _xero_provider()
    provider.pages = provider.pages * 4

    result = _xero(
        sqlite_unit_of_work, provider, clock, pager=ProviderPager(max_pages=2)
    ).run(OWNER_ID, business.id)

    assert result.ok
    assert result.diagnostics.page_ceiling_reached is True
    assert result.diagnostics.pages_fetched == 2


# Google ----------------------------------------------------------------------


def test_review_links_to_client_by_folded_name(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    add_client(
        sqlite_unit_of_work, user_id=OWNER_ID, business_id=business.id, display_name="Acme Co"
    )
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.GOOGLE, now=NOW)
    provider = FakeReviewProvider(pages=[[_review("rev-1", "acme co", 5, "Brilliant work")]])

    result = _google(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert result.ok
    assert result.counts.matched == 1
    assert result.counts.inserted == 1
    [overview] = _overviews(sqlite_unit_of_work, business)
    assert overview.client.sentiment is Sentiment.GOOD
    assert overview.review is not None
    assert overview.review.text == "Brilliant work"
    assert overview.review.source is PrimarySource.EXTERNAL


def test_internal_review_stays_primary_after_import(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    add_client(
        sqlite_unit_of_work,
        user_id=OWNER_ID,
        business_id=business.id,
        display_name="Acme Co",
        sentiment=Sentiment.BAD,
        initial_review="Poor communication",
        clock=lambda: NOW - timedelta(days=7),
    )
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.GOOGLE, now=NOW)
    provider = FakeReviewProvider(pages=[[_review("rev-1", "Acme Co", 5, "Changed my mind")]])

    result = _google(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert result.ok
    assert result.counts.updated == 1
    [overview] = _overviews(sqlite_unit_of_work, business)
    assert overview.client.sentiment is Sentiment.BAD
    assert overview.review is not None
    assert overview.review.text == "Poor communication"
    assert overview.review.source is PrimarySource.INTERNAL


def test_second_google_run_inserts_nothing(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    add_client(
        sqlite_unit_of_work, user_id=OWNER_ID, business_id=business.id, display_name="Acme Co"
    )
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.GOOGLE, now=NOW)
    provider = FakeReviewProvider(pages=[[_review("rev-1", "Acme Co", 4, "Good job")]])
    coordinator = _google(sqlite_unit_of_work, provider, clock)

    coordinator.run(OWNER_ID, business.id)
    second = coordinator.run(OWNER_ID, business.id)

    assert second.ok
    assert second.counts.inserted == 0
    assert second.counts.updated == 0
    assert second.diagnostics.extra["raw_unchanged"] == 1
    samples = second.diagnostics.skipped.to_dict()["samples"]
    assert samples == [{"id": "rev-1", "reason": "already-linked"}]


def test_newest_review_wins_per_client_and_strangers_stay_unlinked(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
    clock: Callable[[], datetime],
) -> None:
    add_client(
        sqlite_unit_of_work, user_id=OWNER_ID, business_id=business.id, display_name="Acme Co"
    )
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.GOOGLE, now=NOW)
    provider = FakeReviewProvider(
        pages=[
            [_review("rev-old", "Acme Co", 2, "Meh", when=datetime(2025, 1, 1, tzinfo=UTC))],
            [
                _review("rev-new", "ACME CO", 5, "Much better now"),
                _review("rev-x", "Someone Else", 1, "Who?"),
            ],
        ]
    )

    result = _google(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert result.ok
    assert provider.cursors == [None, "p2"]
    assert result.counts.considered == 3
    assert result.counts.matched == 2
    assert result.counts.inserted == 1
    reasons = {item["id"]: item["reason"] for item in result.diagnostics.skipped.items}
    assert reasons == {"rev-old": "superseded", "rev-x": "no-name-match"}
    [overview] = _overviews(sqlite_unit_of_work, business)
    assert overview.review is not None
    assert overview.review.text == "Much better now"
    with sqlite_unit_of_work() as uow:
        unlinked = uow.repositories.external_reviews.list_unlinked(owner_auth, business.id)
        assert sorted(raw.external_review_id for raw in unlinked) == ["rev-old", "rev-x"]


def test_missing_location_rolls_back_google_run(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    clock: Callable[[], datetime],
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.GOOGLE, now=NOW)
    provider = FakeReviewProvider(
        location_error=ProviderError("No Business Profile location", reason="NO_LOCATION")
    )

    result = _google(sqlite_unit_of_work, provider, clock).run(OWNER_ID, business.id)

    assert result.status is SyncStatus.ROLLED_BACK
    assert result.error is not None
    assert result.error.details == {"status": None, "body": None, "reason": "NO_LOCATION"}
