"""Access-token lifecycle for provider connections."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from reviewsync.domain.errors import NoConnection, RefreshFailed
from reviewsync.domain.model import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.ports.providers import TokenRefresher
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork

log = getLogger(__name__)

DEFAULT_SKEW = timedelta(seconds=60)


@dataclass(frozen=True, slots=True)
class AccessToken:
    token: str
    tenant_id: str
    connection_id: UUID
    refreshed: bool = False

    def __repr__(self) -> str:
        return f"AccessToken(tenant_id={self.tenant_id!r}, refreshed={self.refreshed})"


class TokenBroker:
    """Hands out a usable access token, refreshing it when it is about to expire.

    Refreshed tokens are written through the caller's unit of work, so they
    commit or roll back together with the rest of the run.
    """

    def __init__(
        self,
        refresher: TokenRefresher,
        *,
        clock: Callable[[], datetime] = utcnow,
        skew: timedelta = DEFAULT_SKEW,
    ) -> None:
        self.refresher = refresher
        self.clock = clock
        self.skew = skew

    async def ensure_valid_access_token(
        self,
        uow: ReconciliationUnitOfWork,
        auth: AuthorizationContext,
        business_id: UUID,
        *,
        tenant_id: str | None = None,
        force_refresh: bool = False,
    ) -> AccessToken:
        provider = self.refresher.kind
        connection = uow.repositories.connections.select_active(
            auth, business_id, provider, tenant_id=tenant_id
        )
        if connection is None or not connection.is_connected:
            raise NoConnection(f"No connected {provider} account for business {business_id}")

        if (
            not force_refresh
            and connection.access_token
            and not connection.is_expired(self.clock(), skew=self.skew)
        ):
            return AccessToken(
                token=connection.access_token,
                tenant_id=connection.tenant_id,
                connection_id=connection.id,
            )

        if not connection.refresh_token:
            raise RefreshFailed(f"{provider} connection has no refresh token; reconnect required")

        log.info(f"Refreshing {provider} token for tenant {connection.tenant_id}")
        grant = await self.refresher.refresh_token(connection.refresh_token)
        connection.apply_grant(grant, self.clock())
        uow.flush()

        return AccessToken(
            token=grant.access_token,
            tenant_id=connection.tenant_id,
            connection_id=connection.id,
            refreshed=True,
        )
