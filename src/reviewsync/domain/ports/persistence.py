"""Ports for persisting businesses, clients, reviews and provider state.

Every method takes the caller's ``AuthorizationContext`` first; implementations
must refuse business ids outside it before touching any row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uuid import UUID

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import (
        Business,
        Client,
        ExternalReviewRaw,
        OAuthNonce,
        ProviderConnection,
        ProviderKind,
        ReviewRecord,
    )


@runtime_checkable
class BusinessRepository(Protocol):
    def add(self, auth: AuthorizationContext, business: Business) -> None: ...

    def get(self, auth: AuthorizationContext, business_id: UUID) -> Business | None: ...

    def list_for(self, auth: AuthorizationContext) -> list[Business]: ...

    def ids_owned_by(self, user_id: str) -> list[UUID]:
        """Identity lookup used to build an authorization context."""
        ...


@runtime_checkable
class ClientRepository(Protocol):
    def add(self, auth: AuthorizationContext, client: Client) -> None: ...

    def get(self, auth: AuthorizationContext, business_id: UUID, client_id: UUID) -> Client | None:
        ...

    def find_by_external_id(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        external_id: str,
        *,
        include_deleted: bool = False,
    ) -> Client | None: ...

    def find_by_email(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        email: str,
        *,
        include_deleted: bool = False,
    ) -> Client | None:
        """``email`` must already be normalised; it is unique per business."""
        ...

    def find_by_name_key(
        self, auth: AuthorizationContext, business_id: UUID, key: str
    ) -> list[Client]:
        """Active clients whose display name folds to ``key``, oldest first."""
        ...

    def list_active(self, auth: AuthorizationContext, business_id: UUID) -> list[Client]: ...


@runtime_checkable
class ReviewRepository(Protocol):
    def add(self, auth: AuthorizationContext, review: ReviewRecord) -> None: ...

    def latest_for_client(
        self, auth: AuthorizationContext, business_id: UUID, client_id: UUID
    ) -> ReviewRecord | None: ...

    def list_for_business(
        self, auth: AuthorizationContext, business_id: UUID
    ) -> list[ReviewRecord]: ...


@runtime_checkable
class ExternalReviewRepository(Protocol):
    def add(self, auth: AuthorizationContext, review: ExternalReviewRaw) -> None: ...

    def get_by_external_id(
        self, auth: AuthorizationContext, business_id: UUID, external_review_id: str
    ) -> ExternalReviewRaw | None: ...

    def list_unlinked(
        self, auth: AuthorizationContext, business_id: UUID
    ) -> list[ExternalReviewRaw]: ...


@runtime_checkable
class ConnectionRepository(Protocol):
    def add(self, auth: AuthorizationContext, connection: ProviderConnection) -> None: ...

    def select_active(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        provider: ProviderKind,
        *,
        tenant_id: str | None = None,
    ) -> ProviderConnection | None:
        """Most relevant connected row: primary first, then most recently refreshed."""
        ...

    def get_by_tenant(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        provider: ProviderKind,
        tenant_id: str,
    ) -> ProviderConnection | None: ...

    def list_for_business(
        self, auth: AuthorizationContext, business_id: UUID, provider: ProviderKind
    ) -> list[ProviderConnection]: ...


@runtime_checkable
class NonceRepository(Protocol):
    def add(self, auth: AuthorizationContext, nonce: OAuthNonce) -> None: ...

    def get(self, auth: AuthorizationContext, nonce: str) -> OAuthNonce | None: ...
