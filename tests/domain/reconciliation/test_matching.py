from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

from reviewsync.domain.clients import create_business
from reviewsync.domain.model import Client
from reviewsync.domain.reconciliation import (
    Match,
    MatchCandidate,
    MatchingEngine,
    MatchTier,
    Unmatched,
    UnmatchedReason,
    select_winners,
)
from tests.helpers.constants import NOW, OWNER_ID

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import Business
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork

CONTACT_ID = "8f14e45f-ceea-467f-a0e6-3c1d5b0f7a11"


def _add_clients(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    auth: AuthorizationContext,
    *clients: Client,
) -> None:
    with uow_factory() as uow:
        for client in clients:
            uow.repositories.clients.add(auth, client)
        uow.commit()


def _match(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    auth: AuthorizationContext,
    business: Business,
    candidate: MatchCandidate,
):
    with uow_factory() as uow:
        return MatchingEngine(uow.repositories.clients, auth).match(business.id, candidate)


def test_exact_tier_uses_stored_external_id(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    client = Client(business_id=business.id, display_name="Acme Co", external_id=CONTACT_ID)
    _add_clients(sqlite_unit_of_work, owner_auth, client)

    result = _match(
        sqlite_unit_of_work,
        owner_auth,
        business,
        MatchCandidate(source_id=CONTACT_ID, external_id=CONTACT_ID, require_identifier=True),
    )

    assert isinstance(result, Match)
    assert result.client_id == client.id
    assert result.tier is MatchTier.EXACT


def test_invalid_identifier_is_never_looked_up(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    result = _match(
        sqlite_unit_of_work,
        owner_auth,
        business,
        MatchCandidate(source_id="abc", external_id="abc", require_identifier=True),
    )

    assert isinstance(result, Unmatched)
    assert result.reason is UnmatchedReason.INVALID_IDENTIFIER


def test_name_tier_is_case_insensitive_and_exact(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    client = Client(business_id=business.id, display_name="Acme Co")
    _add_clients(sqlite_unit_of_work, owner_auth, client)

    folded = _match(
        sqlite_unit_of_work,
        owner_auth,
        business,
        MatchCandidate(source_id="r1", display_name="acme co", allow_name_fallback=True),
    )
    partial = _match(
        sqlite_unit_of_work,
        owner_auth,
        business,
        MatchCandidate(source_id="r2", display_name="Acme", allow_name_fallback=True),
    )

    assert isinstance(folded, Match)
    assert folded.tier is MatchTier.NAME
    assert folded.client_id == client.id
    assert isinstance(partial, Unmatched)
    assert partial.reason is UnmatchedReason.NO_NAME_MATCH


def test_name_tier_is_off_unless_allowed(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    _add_clients(
        sqlite_unit_of_work, owner_auth, Client(business_id=business.id, display_name="Acme Co")
    )

    result = _match(
        sqlite_unit_of_work,
        owner_auth,
        business,
        MatchCandidate(source_id="r1", display_name="Acme Co"),
    )

    assert isinstance(result, Unmatched)
    assert result.reason is UnmatchedReason.NO_IDENTIFIER_MATCH


def test_shared_name_picks_oldest_and_flags_ambiguity(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    older = Client(
        business_id=business.id, display_name="Jane Doe", created_at=NOW - timedelta(days=2)
    )
    newer = Client(business_id=business.id, display_name="jane doe", created_at=NOW)
    deleted = Client(
        business_id=business.id,
        display_name="Jane Doe",
        created_at=NOW - timedelta(days=9),
        deleted_at=NOW,
    )
    _add_clients(sqlite_unit_of_work, owner_auth, newer, older, deleted)

    result = _match(
        sqlite_unit_of_work,
        owner_auth,
        business,
        MatchCandidate(source_id="r1", display_name="JANE DOE", allow_name_fallback=True),
    )

    assert isinstance(result, Match)
    assert result.client_id == older.id
    assert result.ambiguous is True


def test_matching_is_scoped_to_the_business(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    other = create_business(sqlite_unit_of_work, user_id=OWNER_ID, display_name="Other Shop")
    auth = owner_auth.granting(other.id)
    _add_clients(sqlite_unit_of_work, auth, Client(business_id=other.id, display_name="Acme Co"))

    result = _match(
        sqlite_unit_of_work,
        auth,
        business,
        MatchCandidate(source_id="r1", display_name="Acme Co", allow_name_fallback=True),
    )

    assert isinstance(result, Unmatched)


def _match_for(client_id: UUID, source_id: str, occurred_at: datetime | None) -> Match:
    return Match(
        candidate=MatchCandidate(source_id=source_id, occurred_at=occurred_at),
        client_id=client_id,
        tier=MatchTier.NAME,
    )


def test_select_winners_keeps_newest_record_per_client() -> None:
    first, second = uuid4(), uuid4()
    old = _match_for(first, "a", datetime(2025, 1, 1, tzinfo=UTC))
    new = _match_for(first, "b", datetime(2025, 3, 1, tzinfo=UTC))
    undated = _match_for(first, "c", None)
    alone = _match_for(second, "d", None)

    winners, superseded = select_winners([old, new, undated, alone])

    assert winners == [new, alone]
    assert superseded == [old, undated]


def test_select_winners_breaks_ties_by_record_id() -> None:
    client_id = uuid4()
    when = datetime(2025, 1, 1, tzinfo=UTC)
    low = _match_for(client_id, "a", when)
    high = _match_for(client_id, "z", when)

    winners, _ = select_winners([high, low])

    assert winners == [high]
