"""OAuth connect/callback handshake that creates provider connections.

The ``state`` parameter is a signed, short-lived token binding the callback to
the user, business and provider that started it, plus a single-use nonce
persisted in the store.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit
from uuid import UUID

import jwt

from reviewsync.domain.authorization import resolve_authorization
from reviewsync.domain.errors import (
    AccessDenied,
    InvalidOAuthState,
    NonceReplayed,
    ProviderError,
)
from reviewsync.domain.model import OAuthNonce, ProviderConnection, ProviderKind, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from reviewsync.domain.ports.providers import ProviderCapability
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork

log = getLogger(__name__)

DEFAULT_RETURN_TO = "/dashboard"
DEFAULT_STATE_MAX_AGE = timedelta(minutes=10)


def sanitize_return_to(
    raw: str | None, *, origin: str | None = None, default: str = DEFAULT_RETURN_TO
) -> str:
    """Keep relative paths and same-origin URLs; anything else falls back to ``default``."""

    value = (raw or "").strip()
    if not value or "\\" in value:
        return default
    parsed = urlsplit(value)
    if parsed.scheme or parsed.netloc:
        if origin is None:
            return default
        base = urlsplit(origin)
        if (parsed.scheme, parsed.netloc) != (base.scheme, base.netloc):
            return default
        path = parsed.path or "/"
        return f"{path}?{parsed.query}" if parsed.query else path
    if not value.startswith("/") or value.startswith("//"):
        return default
    return value


@dataclass(frozen=True, slots=True)
class OAuthState:
    user_id: str
    business_id: UUID
    provider: ProviderKind
    return_to: str
    nonce: str
    issued_at: datetime


class StateSigner:
    """Signs ``OAuthState`` as an HS256 JWT whose ``exp`` is ``max_age`` after issue.

    Expiry is checked against the injected clock rather than by PyJWT.
    """

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        *,
        max_age: timedelta = DEFAULT_STATE_MAX_AGE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret.strip():
            raise ValueError("A non-empty state secret is required")
        self._secret = secret
        self.max_age = max_age
        self.clock = clock

    def sign(self, state: OAuthState) -> str:
        payload = {
            "sub": state.user_id,
            "bid": str(state.business_id),
            "prv": state.provider.value,
            "rt": state.return_to,
            "nonce": state.nonce,
            "iat": state.issued_at,
            "exp": state.issued_at + self.max_age,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> OAuthState:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": ["exp", "iat", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidOAuthState("State signature mismatch") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidOAuthState(f"Malformed state: {exc}") from exc

        try:
            state = OAuthState(
                user_id=str(payload["sub"]),
                business_id=UUID(payload["bid"]),
                provider=ProviderKind(payload["prv"]),
                return_to=sanitize_return_to(payload.get("rt")),
                nonce=str(payload["nonce"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
            )
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidOAuthState("Incomplete state") from exc

        if self.clock() > expires_at:
            raise InvalidOAuthState("State expired")
        return state


@dataclass(frozen=True, slots=True)
class ConnectionStart:
    authorize_url: str
    state: str


@dataclass(frozen=True, slots=True)
class ConnectedTenant:
    connection_id: UUID
    tenant_id: str
    tenant_name: str | None
    is_primary: bool
    created: bool


@dataclass(frozen=True, slots=True)
class ConnectionOutcome:
    business_id: UUID
    provider: ProviderKind
    redirect_to: str
    tenants: list[ConnectedTenant]

    def to_dict(self) -> dict[str, object]:
        return {
            "business_id": str(self.business_id),
            "provider": self.provider.value,
            "redirect_to": self.redirect_to,
            "tenants": [
                {
                    "connection_id": str(tenant.connection_id),
                    "tenant_id": tenant.tenant_id,
                    "tenant_name": tenant.tenant_name,
                    "is_primary": tenant.is_primary,
                    "created": tenant.created,
                }
                for tenant in self.tenants
            ],
        }


def begin_connection(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    user_id: str,
    business_id: UUID,
    capability: ProviderCapability[Any, Any],
    signer: StateSigner,
    redirect_uri: str,
    return_to: str | None = None,
    origin: str | None = None,
) -> ConnectionStart:
    """Persist a fresh nonce and build the provider's authorise URL."""

    now = signer.clock()
    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        auth.require(business_id)
        nonce = OAuthNonce(
            nonce=secrets.token_urlsafe(32),
            business_id=business_id,
            user_id=user_id,
            provider=capability.kind,
            issued_at=now,
        )
        uow.repositories.nonces.add(auth, nonce)
        uow.commit()

    state = signer.sign(
        OAuthState(
            user_id=user_id,
            business_id=business_id,
            provider=capability.kind,
            return_to=sanitize_return_to(return_to, origin=origin),
            nonce=nonce.nonce,
            issued_at=now,
        )
    )
    log.info(f"Issued {capability.kind} connect state for business {business_id}")
    return ConnectionStart(
        authorize_url=capability.authorize_url(state=state, redirect_uri=redirect_uri),
        state=state,
    )


async def complete_connection(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    state: str,
    code: str,
    capability: ProviderCapability[Any, Any],
    signer: StateSigner,
    redirect_uri: str,
) -> ConnectionOutcome:
    """Verify the callback, exchange the code and store one connection per tenant.

    The nonce is consumed in the same transaction that stores the connections;
    a failed exchange rolls the consumption back with everything else.
    """

    claims = signer.verify(state)
    if claims.provider is not capability.kind:
        raise InvalidOAuthState(f"State was issued for {claims.provider}, not {capability.kind}")
    if not code.strip():
        raise InvalidOAuthState("Missing authorization code")

    now = signer.clock()
    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, claims.user_id)
        auth.require(claims.business_id)

        nonce = uow.repositories.nonces.get(auth, claims.nonce)
        if nonce is None:
            raise InvalidOAuthState("Unknown state nonce")
        if nonce.is_consumed:
            raise NonceReplayed("State nonce was already used")
        if (
            nonce.business_id != claims.business_id
            or nonce.user_id != claims.user_id
            or nonce.provider is not claims.provider
        ):
            raise InvalidOAuthState("State nonce does not belong to this request")
        nonce.consume(now)
        uow.flush()

        async with capability:
            grant = await capability.exchange_code(code, redirect_uri)
            tenants = await capability.list_tenants(grant.access_token)
        if not tenants:
            raise ProviderError(
                "No organisations were granted; reconnect and select one",
                reason="no-tenants",
            )

        connections = uow.repositories.connections
        existing = connections.list_for_business(auth, claims.business_id, capability.kind)
        has_primary = any(row.is_primary and row.is_connected for row in existing)

        stored: list[ConnectedTenant] = []
        for tenant in tenants:
            connection = connections.get_by_tenant(
                auth, claims.business_id, capability.kind, tenant.tenant_id
            )
            created = connection is None
            if connection is None:
                connection = ProviderConnection(
                    business_id=claims.business_id,
                    provider=capability.kind,
                    tenant_id=tenant.tenant_id,
                    created_at=now,
                )
                connections.add(auth, connection)
            if tenant.name:
                connection.tenant_name = tenant.name
            connection.apply_grant(grant, now)
            if not has_primary:
                connection.is_primary = True
                has_primary = True
            stored.append(
                ConnectedTenant(
                    connection_id=connection.id,
                    tenant_id=connection.tenant_id,
                    tenant_name=connection.tenant_name,
                    is_primary=connection.is_primary,
                    created=created,
                )
            )
        uow.commit()

    log.info(
        f"Connected {len(stored)} {capability.kind} tenant(s) to business {claims.business_id}"
    )
    return ConnectionOutcome(
        business_id=claims.business_id,
        provider=capability.kind,
        redirect_to=claims.return_to,
        tenants=stored,
    )


def disconnect(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    user_id: str,
    business_id: UUID,
    provider: ProviderKind,
    clock: Callable[[], datetime] = utcnow,
) -> int:
    """Mark every connection of ``provider`` disconnected; returns how many changed."""

    with unit_of_work_factory() as uow:
        auth = resolve_authorization(uow.repositories.businesses, user_id)
        auth.require(business_id)
        if uow.repositories.businesses.get(auth, business_id) is None:
            raise AccessDenied(f"Business {business_id} does not exist")
        changed = 0
        for connection in uow.repositories.connections.list_for_business(
            auth, business_id, provider
        ):
            if connection.is_connected:
                connection.disconnect(clock())
                changed += 1
        uow.commit()
    return changed
