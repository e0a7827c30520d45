"""Drives one reconciliation run inside a single unit of work."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from reviewsync.domain.authorization import resolve_authorization
from reviewsync.domain.errors import AccessDenied, SyncError
from reviewsync.domain.model import utcnow
from reviewsync.domain.reconciliation.diagnostics import (
    DEFAULT_SAMPLE_CAP,
    SyncCounts,
    SyncDiagnostics,
)
from reviewsync.domain.reconciliation.matching import MatchingEngine
from reviewsync.domain.reconciliation.pager import ProviderPager
from reviewsync.domain.reconciliation.tokens import DEFAULT_SKEW, TokenBroker
from reviewsync.domain.reconciliation.upsert import (
    DEFAULT_GOOD_STAR_THRESHOLD,
    ReconciliationUpserter,
)
from reviewsync.domain.reconciliation.workflows import RunContext, SyncOptions

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta
    from uuid import UUID

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import Business, ProviderKind
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork
    from reviewsync.domain.reconciliation.tokens import AccessToken
    from reviewsync.domain.reconciliation.workflows import SyncWorkflow

log = getLogger(__name__)


class SyncState(StrEnum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    TOKEN_READY = "token_ready"
    FETCHING = "fetching"
    MATCHING = "matching"
    MERGING = "merging"
    COMMITTED = "committed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


_TERMINAL = frozenset({SyncState.COMMITTED, SyncState.ROLLED_BACK})

_TRANSITIONS: dict[SyncState, frozenset[SyncState]] = {
    SyncState.IDLE: frozenset({SyncState.AUTHENTICATING}),
    SyncState.AUTHENTICATING: frozenset({SyncState.TOKEN_READY}),
    SyncState.TOKEN_READY: frozenset({SyncState.FETCHING}),
    SyncState.FETCHING: frozenset({SyncState.MATCHING}),
    SyncState.MATCHING: frozenset({SyncState.MERGING}),
    SyncState.MERGING: frozenset({SyncState.COMMITTED}),
    SyncState.FAILED: frozenset({SyncState.ROLLED_BACK}),
    SyncState.COMMITTED: frozenset(),
    SyncState.ROLLED_BACK: frozenset(),
}


class SyncStateMachine:
    """Tracks a run's lifecycle; ``FAILED`` is reachable from any live state."""

    def __init__(self) -> None:
        self.state = SyncState.IDLE
        self.history: list[SyncState] = [SyncState.IDLE]

    def advance(self, target: SyncState) -> None:
        allowed = _TRANSITIONS[self.state]
        if target is SyncState.FAILED and self.state not in _TERMINAL | {SyncState.FAILED}:
            allowed = allowed | {SyncState.FAILED}
        if target not in allowed:
            raise RuntimeError(f"Illegal sync transition {self.state} -> {target}")
        self.state = target
        self.history.append(target)


class SyncStatus(StrEnum):
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True, slots=True)
class SyncFailure:
    code: str
    message: str
    step: str
    details: object = None

    @classmethod
    def from_error(cls, error: SyncError, step: str) -> SyncFailure:
        return cls(code=error.code, message=error.message, step=step, details=error.details)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"code": self.code, "message": self.message, "step": self.step}
        if self.details is not None:
            payload["details"] = self.details
        return payload


@dataclass(slots=True)
class SyncResult:
    business_id: UUID
    provider: ProviderKind
    status: SyncStatus
    counts: SyncCounts
    diagnostics: SyncDiagnostics
    states: list[SyncState] = field(default_factory=list[SyncState])
    error: SyncFailure | None = None

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.COMMITTED

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "business_id": str(self.business_id),
            "provider": self.provider.value,
            "status": self.status.value,
            "counts": self.counts.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
            "states": [state.value for state in self.states],
            "error": self.error.to_dict() if self.error is not None else None,
        }


class TransactionCoordinator:
    """Runs ``workflow`` for one business: authenticate, fetch, match, merge, commit.

    Everything a run writes, refreshed tokens included, lands in one unit of
    work. A fatal ``SyncError`` rolls all of it back and is reported in the
    returned ``SyncResult`` instead of being raised.
    """

    def __init__(
        self,
        uow_factory: Callable[[], ReconciliationUnitOfWork],
        workflow: SyncWorkflow[Any, Any],
        *,
        pager: ProviderPager | None = None,
        broker: TokenBroker | None = None,
        clock: Callable[[], datetime] = utcnow,
        token_skew: timedelta = DEFAULT_SKEW,
        sample_cap: int = DEFAULT_SAMPLE_CAP,
        good_star_threshold: int = DEFAULT_GOOD_STAR_THRESHOLD,
    ) -> None:
        self.uow_factory = uow_factory
        self.workflow = workflow
        self.pager = pager or ProviderPager()
        self.broker = broker or TokenBroker(workflow.capability, clock=clock, skew=token_skew)
        self.clock = clock
        self.sample_cap = sample_cap
        self.good_star_threshold = good_star_threshold

    def run(
        self, user_id: str, business_id: UUID, options: SyncOptions | None = None
    ) -> SyncResult:
        return asyncio.run(self.run_async(user_id, business_id, options))

    async def run_async(
        self, user_id: str, business_id: UUID, options: SyncOptions | None = None
    ) -> SyncResult:
        options = options or SyncOptions()
        provider = self.workflow.provider
        machine = SyncStateMachine()
        counts = SyncCounts()
        diagnostics = SyncDiagnostics(sample_cap=self.sample_cap)
        log.info(f"Starting {provider} sync for business {business_id}")

        try:
            with self.uow_factory() as uow:
                await self._execute(
                    uow, user_id, business_id, options, machine, counts, diagnostics
                )
        except SyncError as exc:
            step = machine.state.value
            machine.advance(SyncState.FAILED)
            machine.advance(SyncState.ROLLED_BACK)
            log.warning(f"{provider} sync for business {business_id} rolled back: {exc.message}")
            return SyncResult(
                business_id=business_id,
                provider=provider,
                status=SyncStatus.ROLLED_BACK,
                counts=counts,
                diagnostics=diagnostics,
                states=list(machine.history),
                error=SyncFailure.from_error(exc, step),
            )

        log.info(
            f"{provider} sync for business {business_id} committed: "
            f"{counts.inserted} inserted, {counts.updated} updated, {counts.skipped} skipped"
        )
        return SyncResult(
            business_id=business_id,
            provider=provider,
            status=SyncStatus.COMMITTED,
            counts=counts,
            diagnostics=diagnostics,
            states=list(machine.history),
        )

    async def _execute(
        self,
        uow: ReconciliationUnitOfWork,
        user_id: str,
        business_id: UUID,
        options: SyncOptions,
        machine: SyncStateMachine,
        counts: SyncCounts,
        diagnostics: SyncDiagnostics,
    ) -> None:
        def enter(state: SyncState) -> None:
            machine.advance(state)
            diagnostics.step = state.value

        enter(SyncState.AUTHENTICATING)
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        auth.require(business_id)
        business = uow.repositories.businesses.get(auth, business_id)
        if business is None:
            raise AccessDenied(f"Business {business_id} does not exist")

        async with self.workflow.capability:
            token = await self._token(uow, auth, business_id, options, diagnostics)
            enter(SyncState.TOKEN_READY)

            run = self._context(uow, auth, business, token, options, counts, diagnostics)
            enter(SyncState.FETCHING)
            fetched = await self.workflow.fetch(run)

        enter(SyncState.MATCHING)
        plan = self.workflow.match(run, fetched)
        enter(SyncState.MERGING)
        self.workflow.merge(run, plan)
        uow.commit()
        enter(SyncState.COMMITTED)

    async def _token(
        self,
        uow: ReconciliationUnitOfWork,
        auth: AuthorizationContext,
        business_id: UUID,
        options: SyncOptions,
        diagnostics: SyncDiagnostics,
    ) -> AccessToken:
        token = await self.broker.ensure_valid_access_token(
            uow,
            auth,
            business_id,
            tenant_id=options.tenant_id,
            force_refresh=options.force_refresh,
        )
        diagnostics.tenant_id = token.tenant_id
        diagnostics.token_refreshed = diagnostics.token_refreshed or token.refreshed
        return token

    def _context(
        self,
        uow: ReconciliationUnitOfWork,
        auth: AuthorizationContext,
        business: Business,
        token: AccessToken,
        options: SyncOptions,
        counts: SyncCounts,
        diagnostics: SyncDiagnostics,
    ) -> RunContext:
        return RunContext(
            uow=uow,
            auth=auth,
            business=business,
            token=token,
            options=options,
            pager=self.pager,
            matcher=MatchingEngine(uow.repositories.clients, auth),
            upserter=ReconciliationUpserter(
                uow,
                auth,
                clock=self.clock,
                good_star_threshold=self.good_star_threshold,
                diagnostics=diagnostics,
            ),
            diagnostics=diagnostics,
            counts=counts,
        )
