"""Resolve external records to existing clients of one business."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from reviewsync.domain.model import is_canonical_identifier, name_key
from reviewsync.domain.reconciliation.contracts import (
    Match,
    MatchTier,
    Unmatched,
    UnmatchedReason,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.ports.persistence import ClientRepository
    from reviewsync.domain.reconciliation.contracts import MatchCandidate, MatchResult

log = getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=UTC)


class MatchingEngine:
    """Two-tier matcher: stored external id first, then exact folded display name.

    Name matching is deliberately strict (no partial or fuzzy comparison). When
    several clients share a name the oldest one wins and the match is flagged
    ``ambiguous`` so callers can report it.
    """

    def __init__(self, clients: ClientRepository, auth: AuthorizationContext) -> None:
        self.clients = clients
        self.auth = auth

    def match(self, business_id: UUID, candidate: MatchCandidate) -> MatchResult:
        external_id = candidate.external_id
        if external_id is not None and is_canonical_identifier(external_id):
            client = self.clients.find_by_external_id(self.auth, business_id, external_id)
            if client is not None and not client.is_deleted:
                return Match(candidate=candidate, client_id=client.id, tier=MatchTier.EXACT)
        elif candidate.require_identifier:
            return Unmatched(candidate=candidate, reason=UnmatchedReason.INVALID_IDENTIFIER)

        if not candidate.allow_name_fallback:
            return Unmatched(candidate=candidate, reason=UnmatchedReason.NO_IDENTIFIER_MATCH)

        key = name_key(candidate.display_name)
        if key is None:
            return Unmatched(candidate=candidate, reason=UnmatchedReason.MISSING_NAME)

        clients = [
            client
            for client in self.clients.find_by_name_key(self.auth, business_id, key)
            if not client.is_deleted
        ]
        if not clients:
            return Unmatched(candidate=candidate, reason=UnmatchedReason.NO_NAME_MATCH)
        if len(clients) > 1:
            log.debug(f"{len(clients)} clients share the name {key!r}; using the oldest")
        return Match(
            candidate=candidate,
            client_id=clients[0].id,
            tier=MatchTier.NAME,
            ambiguous=len(clients) > 1,
        )


def _recency(match: Match) -> tuple[datetime, str]:
    occurred = match.candidate.occurred_at or _OLDEST
    if occurred.tzinfo is None:
        occurred = occurred.replace(tzinfo=UTC)
    return occurred, match.candidate.source_id


def select_winners(matches: Iterable[Match]) -> tuple[list[Match], list[Match]]:
    """Keep one match per client: the newest record, ties broken by record id.

    Returns ``(winners, superseded)``, both in their original order.
    """

    ordered = list(matches)
    best: dict[UUID, Match] = {}
    for match in ordered:
        current = best.get(match.client_id)
        if current is None or _recency(match) > _recency(current):
            best[match.client_id] = match

    winners: list[Match] = []
    superseded: list[Match] = []
    for match in ordered:
        if best[match.client_id] is match:
            winners.append(match)
        else:
            superseded.append(match)
    return winners, superseded
