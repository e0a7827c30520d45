"""Provider-side state: OAuth connections, raw imported reviews and handshake nonces."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from reviewsync.domain.model.base import TimestampedEntity, utcnow

if TYPE_CHECKING:
    from uuid import UUID

    from reviewsync.domain.model.enums import ProviderKind

DEFAULT_TOKEN_LIFETIME = timedelta(seconds=3600)


@dataclass(frozen=True, slots=True)
class TokenGrant:
    """Token endpoint response, already parsed."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None
    scope: str | None = None
    id_token: str | None = None


@dataclass(frozen=True, slots=True)
class Tenant:
    """An organisation or account reachable with one grant."""

    tenant_id: str
    name: str | None = None
    kind: str | None = None


@dataclass(eq=False, kw_only=True)
class ProviderConnection(TimestampedEntity):
    business_id: UUID
    provider: ProviderKind
    tenant_id: str
    tenant_name: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    scope: str | None = None
    id_token: str | None = None
    expires_at: datetime | None = None
    last_refreshed_at: datetime | None = None
    is_connected: bool = True
    is_primary: bool = False

    def is_expired(self, now: datetime, *, skew: timedelta) -> bool:
        if self.expires_at is None or not self.access_token:
            return True
        return now + skew >= self.expires_at

    def apply_grant(self, grant: TokenGrant, now: datetime) -> None:
        """Store a fresh grant; a missing refresh token keeps the previous one."""
        self.access_token = grant.access_token
        if grant.refresh_token:
            self.refresh_token = grant.refresh_token
        if grant.token_type:
            self.token_type = grant.token_type
        if grant.scope:
            self.scope = grant.scope
        if grant.id_token:
            self.id_token = grant.id_token
        lifetime = (
            timedelta(seconds=grant.expires_in) if grant.expires_in else DEFAULT_TOKEN_LIFETIME
        )
        self.expires_at = now + lifetime
        self.last_refreshed_at = now
        self.is_connected = True
        self.updated_at = now

    def disconnect(self, now: datetime) -> None:
        self.is_connected = False
        self.is_primary = False
        self.updated_at = now


@dataclass(eq=False, kw_only=True)
class ExternalReviewRaw(TimestampedEntity):
    """A provider review as fetched, before it is linked to a client."""

    business_id: UUID
    external_review_id: str
    author_name: str | None = None
    text: str | None = None
    stars: int | None = None
    published_at: datetime | None = None
    linked: bool = False


@dataclass(eq=False, kw_only=True)
class OAuthNonce:
    nonce: str
    business_id: UUID
    user_id: str
    provider: ProviderKind
    issued_at: datetime = field(default_factory=utcnow)
    consumed_at: datetime | None = None

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def consume(self, now: datetime) -> None:
        self.consumed_at = now
