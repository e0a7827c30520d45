from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit
from uuid import uuid4

import jwt
import pytest

from reviewsync.domain.connect import (
    OAuthState,
    StateSigner,
    begin_connection,
    complete_connection,
    disconnect,
    sanitize_return_to,
)
from reviewsync.domain.errors import (
    AccessDenied,
    InvalidOAuthState,
    NonceReplayed,
    ProviderError,
)
from reviewsync.domain.model import ProviderKind, Tenant
from tests.helpers.constants import NOW, OTHER_USER_ID, OWNER_ID
from tests.helpers.providers import FakeInvoiceProvider, FakeReviewProvider, store_connection

if TYPE_CHECKING:
    from collections.abc import Callable

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import Business
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork

STATE_SECRET = "connect-test-state-secret-0123456789"
OTHER_STATE_SECRET = "another-state-secret-0123456789abcdef"
REDIRECT_URI = "http://localhost:3000/api/xero/callback"


@pytest.fixture
def signer() -> StateSigner:
    return StateSigner(STATE_SECRET, clock=lambda: NOW)


@pytest.mark.parametrize(
    ("raw", "origin", "expected"),
    [
        ("/clients?tab=reviews", None, "/clients?tab=reviews"),
        (None, None, "/dashboard"),
        ("//evil.example.com/x", None, "/dashboard"),
        ("https://evil.example.com/x", "https://app.example.com", "/dashboard"),
        ("https://app.example.com/settings?x=1", "https://app.example.com", "/settings?x=1"),
        ("/\\evil.example.com", None, "/dashboard"),
        ("settings", None, "/dashboard"),
    ],
)
def test_sanitize_return_to(raw: str | None, origin: str | None, expected: str) -> None:
    assert sanitize_return_to(raw, origin=origin) == expected


def test_state_round_trips_through_signature(signer: StateSigner) -> None:
    state = OAuthState(
        user_id=OWNER_ID,
        business_id=uuid4(),
        provider=ProviderKind.GOOGLE,
        return_to="/reviews",
        nonce="n-1",
        issued_at=NOW,
    )

    assert signer.verify(signer.sign(state)) == state


def test_state_signed_with_another_secret_is_rejected(signer: StateSigner) -> None:
    forged = StateSigner(OTHER_STATE_SECRET, clock=lambda: NOW).sign(
        OAuthState(
            user_id=OWNER_ID,
            business_id=uuid4(),
            provider=ProviderKind.XERO,
            return_to="/",
            nonce="n-1",
            issued_at=NOW,
        )
    )

    with pytest.raises(InvalidOAuthState, match="signature"):
        signer.verify(forged)
    with pytest.raises(InvalidOAuthState, match="Malformed"):
        signer.verify("no-dot-here")


def test_state_is_a_jwt_with_expiry_claim(signer: StateSigner) -> None:
    token = signer.sign(
        OAuthState(
            user_id=OWNER_ID,
            business_id=uuid4(),
            provider=ProviderKind.GOOGLE,
            return_to="/",
            nonce="n-2",
            issued_at=NOW,
        )
    )

    claims = jwt.decode(token, options={"verify_signature": False})

    assert claims["sub"] == OWNER_ID
    assert claims["nonce"] == "n-2"
    assert claims["exp"] - claims["iat"] == 600


def test_state_without_required_claims_is_rejected(signer: StateSigner) -> None:
    token = jwt.encode({"sub": OWNER_ID, "iat": NOW}, STATE_SECRET, algorithm="HS256")

    with pytest.raises(InvalidOAuthState, match="Malformed"):
        signer.verify(token)


def test_expired_state_is_rejected() -> None:
    issuer = StateSigner(STATE_SECRET, clock=lambda: NOW)
    later = StateSigner(STATE_SECRET, clock=lambda: NOW + timedelta(minutes=11))
    token = issuer.sign(
        OAuthState(
            user_id=OWNER_ID,
            business_id=uuid4(),
            provider=ProviderKind.XERO,
            return_to="/",
            nonce="n-1",
            issued_at=NOW,
        )
    )

    with pytest.raises(InvalidOAuthState, match="expired"):
        later.verify(token)


def test_signer_requires_a_secret() -> None:
    with pytest.raises(ValueError, match="secret"):
        StateSigner("  ")


def _begin(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    signer: StateSigner,
    capability: FakeInvoiceProvider | FakeReviewProvider,
    *,
    user_id: str = OWNER_ID,
) -> str:
    started = begin_connection(
        uow_factory,
        user_id=user_id,
        business_id=business.id,
        capability=capability,
        signer=signer,
        redirect_uri=REDIRECT_URI,
        return_to="/integrations",
    )
    query = parse_qs(urlsplit(started.authorize_url).query)
    assert query["state"] == [started.state]
    return started.state


def _complete(
    uow_factory: Callable[[], ReconciliationUnitOfWork],
    signer: StateSigner,
    capability: FakeInvoiceProvider | FakeReviewProvider,
    state: str,
    code: str = "auth-code",
):
    return asyncio.run(
        complete_connection(
            uow_factory,
            state=state,
            code=code,
            capability=capability,
            signer=signer,
            redirect_uri=REDIRECT_URI,
        )
    )


def test_handshake_stores_one_connection_per_tenant(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
    signer: StateSigner,
) -> None:
    provider = FakeInvoiceProvider(
        tenants=[Tenant(tenant_id="org-1", name="Main Org"), Tenant(tenant_id="org-2")]
    )
    state = _begin(sqlite_unit_of_work, business, signer, provider)

    outcome = _complete(sqlite_unit_of_work, signer, provider, state)

    assert outcome.redirect_to == "/integrations"
    assert [tenant.tenant_id for tenant in outcome.tenants] == ["org-1", "org-2"]
    assert [tenant.is_primary for tenant in outcome.tenants] == [True, False]
    assert provider.exchanged == [("auth-code", REDIRECT_URI)]
    with sqlite_unit_of_work() as uow:
        active = uow.repositories.connections.select_active(
            owner_auth, business.id, ProviderKind.XERO
        )
        assert active is not None
        assert active.tenant_id == "org-1"
        assert active.tenant_name == "Main Org"
        assert active.access_token == "fresh-token"
        assert active.expires_at == NOW + timedelta(hours=1)


def test_state_nonce_cannot_be_replayed(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    signer: StateSigner,
) -> None:
    provider = FakeInvoiceProvider()
    state = _begin(sqlite_unit_of_work, business, signer, provider)
    _complete(sqlite_unit_of_work, signer, provider, state)

    with pytest.raises(NonceReplayed):
        _complete(sqlite_unit_of_work, signer, provider, state)


def test_state_is_bound_to_its_provider(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    signer: StateSigner,
) -> None:
    state = _begin(sqlite_unit_of_work, business, signer, FakeInvoiceProvider())

    with pytest.raises(InvalidOAuthState):
        _complete(sqlite_unit_of_work, signer, FakeReviewProvider(), state)


def test_failed_exchange_leaves_nonce_usable(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    signer: StateSigner,
) -> None:
    provider = FakeInvoiceProvider(tenants=[])
    state = _begin(sqlite_unit_of_work, business, signer, provider)

    with pytest.raises(ProviderError):
        _complete(sqlite_unit_of_work, signer, provider, state)

    provider.tenants = [Tenant(tenant_id="org-1")]
    outcome = _complete(sqlite_unit_of_work, signer, provider, state)
    assert len(outcome.tenants) == 1


def test_reconnect_keeps_existing_primary(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    signer: StateSigner,
) -> None:
    store_connection(
        sqlite_unit_of_work, business.id, ProviderKind.XERO, now=NOW, tenant_id="org-0"
    )
    provider = FakeInvoiceProvider(tenants=[Tenant(tenant_id="org-1")])
    state = _begin(sqlite_unit_of_work, business, signer, provider)

    outcome = _complete(sqlite_unit_of_work, signer, provider, state)

    [tenant] = outcome.tenants
    assert tenant.created is True
    assert tenant.is_primary is False


def test_only_the_owner_can_start_a_connection(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    signer: StateSigner,
) -> None:
    with pytest.raises(AccessDenied):
        _begin(sqlite_unit_of_work, business, signer, FakeInvoiceProvider(), user_id=OTHER_USER_ID)


def test_disconnect_marks_connections_and_clears_primary(
    sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork],
    business: Business,
    owner_auth: AuthorizationContext,
) -> None:
    store_connection(sqlite_unit_of_work, business.id, ProviderKind.GOOGLE, now=NOW)
    store_connection(
        sqlite_unit_of_work,
        business.id,
        ProviderKind.GOOGLE,
        now=NOW,
        tenant_id="accounts/2",
        is_primary=False,
    )

    changed = disconnect(
        sqlite_unit_of_work,
        user_id=OWNER_ID,
        business_id=business.id,
        provider=ProviderKind.GOOGLE,
        clock=lambda: NOW,
    )

    assert changed == 2
    with sqlite_unit_of_work() as uow:
        assert (
            uow.repositories.connections.select_active(owner_auth, business.id, ProviderKind.GOOGLE)
            is None
        )
