"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any, Self

from reviewsync.adapters.google import GoogleBusinessClient
from reviewsync.adapters.sqlalchemy import (
    SqlAlchemyReconciliationUnitOfWork,
    create_database_engine,
    create_session_factory,
    start_mappers,
)
from reviewsync.adapters.sqlalchemy.migrations import upgrade_head
from reviewsync.adapters.xero import XeroClient
from reviewsync.config import (
    DatabaseConfig,
    OAuthConfig,
    SyncConfig,
    get_database_config,
    get_oauth_config,
    get_sync_config,
)
from reviewsync.domain import clients as client_services
from reviewsync.domain import connect
from reviewsync.domain.model import ProviderKind
from reviewsync.domain.reconciliation import (
    GoogleReviewsWorkflow,
    ProviderPager,
    SyncOptions,
    TransactionCoordinator,
    XeroContactsWorkflow,
)

if TYPE_CHECKING:
    from datetime import date
    from types import TracebackType
    from uuid import UUID

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session, sessionmaker

    from reviewsync.domain.clients import ClientOverview
    from reviewsync.domain.connect import ConnectionOutcome, ConnectionStart
    from reviewsync.domain.model import Business, Client, ReviewRecord, Sentiment
    from reviewsync.domain.ports.providers import (
        InvoiceProvider,
        ProviderCapability,
        ReviewProvider,
    )
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation import SyncResult, SyncWorkflow

log = getLogger(__name__)


class RuntimeNotOpenError(RuntimeError):
    """Raised when services are used before ``Runtime.open()``."""


@dataclass(slots=True)
class Runtime:
    """Owns the engine and session factory for one process.

    Nothing is created at import time; ``open()`` builds the engine and brings
    the schema to head, ``close()`` disposes it.
    """

    database: DatabaseConfig
    sync: SyncConfig = field(default_factory=SyncConfig)
    oauth: OAuthConfig | None = None
    _engine: Engine | None = field(default=None, init=False)
    _session_factory: sessionmaker[Session] | None = field(default=None, init=False)

    @classmethod
    def from_env(cls) -> Runtime:
        return cls(database=get_database_config(), sync=get_sync_config())

    def open(self) -> Self:
        if self._engine is not None:
            return self
        start_mappers()
        engine = create_database_engine(self.database.uri, echo=self.database.echo)
        upgrade_head(engine=engine)
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        return self

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def __enter__(self) -> Self:
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeNotOpenError("Runtime is not open; call Runtime.open() first")
        return self._engine

    def unit_of_work(self) -> ReconciliationUnitOfWork:
        if self._session_factory is None:
            raise RuntimeNotOpenError("Runtime is not open; call Runtime.open() first")
        return SqlAlchemyReconciliationUnitOfWork(self._session_factory)

    def oauth_config(self) -> OAuthConfig:
        if self.oauth is None:
            self.oauth = get_oauth_config()
        return self.oauth

    def state_signer(self) -> connect.StateSigner:
        oauth = self.oauth_config()
        return connect.StateSigner(
            oauth.state_secret, max_age=timedelta(seconds=oauth.state_max_age_seconds)
        )


def build_capability(provider: ProviderKind) -> ProviderCapability[Any, Any]:
    if provider is ProviderKind.XERO:
        return XeroClient()
    return GoogleBusinessClient()


def _coordinator(runtime: Runtime, workflow: SyncWorkflow[Any, Any]) -> TransactionCoordinator:
    settings = runtime.sync
    return TransactionCoordinator(
        runtime.unit_of_work,
        workflow,
        pager=ProviderPager(
            max_pages=settings.max_pages, batch_size=settings.contact_batch_size
        ),
        token_skew=settings.token_skew,
        sample_cap=settings.sample_cap,
        good_star_threshold=settings.good_star_threshold,
    )


def sync_xero_clients(
    runtime: Runtime,
    *,
    user_id: str,
    business_id: UUID,
    since: date | None = None,
    tenant_id: str | None = None,
    force_refresh: bool = False,
    capability: InvoiceProvider | None = None,
) -> SyncResult:
    """Import invoiced Xero customers as clients of ``business_id``."""

    workflow = XeroContactsWorkflow(
        capability or XeroClient(), default_since=runtime.sync.invoices_since
    )
    log.info(f"Starting Xero client sync: business={business_id}, since={since}")
    result = _coordinator(runtime, workflow).run(
        user_id,
        business_id,
        SyncOptions(since=since, tenant_id=tenant_id, force_refresh=force_refresh),
    )
    log.info(f"Finished Xero client sync: status={result.status}, counts={result.counts}")
    return result


def sync_google_reviews(
    runtime: Runtime,
    *,
    user_id: str,
    business_id: UUID,
    tenant_id: str | None = None,
    force_refresh: bool = False,
    capability: ReviewProvider | None = None,
) -> SyncResult:
    """Import Google reviews and link them to existing clients of ``business_id``."""

    workflow = GoogleReviewsWorkflow(capability or GoogleBusinessClient())
    log.info(f"Starting Google review sync: business={business_id}")
    result = _coordinator(runtime, workflow).run(
        user_id,
        business_id,
        SyncOptions(tenant_id=tenant_id, force_refresh=force_refresh),
    )
    log.info(f"Finished Google review sync: status={result.status}, counts={result.counts}")
    return result


def start_connection(
    runtime: Runtime,
    *,
    user_id: str,
    business_id: UUID,
    provider: ProviderKind,
    return_to: str | None = None,
    origin: str | None = None,
    capability: ProviderCapability[Any, Any] | None = None,
) -> ConnectionStart:
    return connect.begin_connection(
        runtime.unit_of_work,
        user_id=user_id,
        business_id=business_id,
        capability=capability or build_capability(provider),
        signer=runtime.state_signer(),
        redirect_uri=runtime.oauth_config().redirect_uri(provider.value),
        return_to=return_to,
        origin=origin,
    )


def finish_connection(
    runtime: Runtime,
    *,
    provider: ProviderKind,
    state: str,
    code: str,
    capability: ProviderCapability[Any, Any] | None = None,
) -> ConnectionOutcome:
    return asyncio.run(
        connect.complete_connection(
            runtime.unit_of_work,
            state=state,
            code=code,
            capability=capability or build_capability(provider),
            signer=runtime.state_signer(),
            redirect_uri=runtime.oauth_config().redirect_uri(provider.value),
        )
    )


def disconnect_provider(
    runtime: Runtime, *, user_id: str, business_id: UUID, provider: ProviderKind
) -> int:
    changed = connect.disconnect(
        runtime.unit_of_work, user_id=user_id, business_id=business_id, provider=provider
    )
    log.info(f"Disconnected {changed} {provider} connection(s) from business {business_id}")
    return changed


def create_business(
    runtime: Runtime,
    *,
    user_id: str,
    display_name: str,
    google_place_id: str | None = None,
    google_review_link: str | None = None,
) -> Business:
    return client_services.create_business(
        runtime.unit_of_work,
        user_id=user_id,
        display_name=display_name,
        google_place_id=google_place_id,
        google_review_link=google_review_link,
    )


def add_client(
    runtime: Runtime,
    *,
    user_id: str,
    business_id: UUID,
    display_name: str,
    email: str | None = None,
    phone: str | None = None,
    initial_review: str | None = None,
) -> Client:
    return client_services.add_client(
        runtime.unit_of_work,
        user_id=user_id,
        business_id=business_id,
        display_name=display_name,
        email=email,
        phone=phone,
        initial_review=initial_review,
    )


def submit_internal_review(
    runtime: Runtime,
    *,
    user_id: str,
    business_id: UUID,
    client_id: UUID,
    sentiment: Sentiment,
    text: str,
    stars: float | None = None,
) -> ReviewRecord:
    return client_services.submit_internal_review(
        runtime.unit_of_work,
        user_id=user_id,
        business_id=business_id,
        client_id=client_id,
        sentiment=sentiment,
        text=text,
        stars=stars,
    )


def list_client_reviews(
    runtime: Runtime, *, user_id: str, business_id: UUID
) -> list[ClientOverview]:
    return client_services.list_client_reviews(
        runtime.unit_of_work, user_id=user_id, business_id=business_id
    )

