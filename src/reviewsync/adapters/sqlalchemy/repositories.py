"""Repository implementations backed by SQLAlchemy sessions.

Every query is scoped to one business and checked against the caller's
``AuthorizationContext`` before it reaches the session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from reviewsync.adapters.sqlalchemy.mappings import (
    business_table,
    client_table,
    external_review_table,
    oauth_nonce_table,
    provider_connection_table,
    review_table,
)
from reviewsync.domain.model import (
    Business,
    Client,
    ExternalReviewRaw,
    OAuthNonce,
    ProviderConnection,
    ReviewRecord,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.orm import Session

    from reviewsync.domain.authorization import AuthorizationContext
    from reviewsync.domain.model import ProviderKind


class SqlAlchemyBusinessRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, auth: AuthorizationContext, business: Business) -> None:
        auth.require(business.id)
        self.session.add(business)

    def get(self, auth: AuthorizationContext, business_id: UUID) -> Business | None:
        auth.require(business_id)
        return self.session.get(Business, business_id)

    def list_for(self, auth: AuthorizationContext) -> list[Business]:
        if not auth.business_ids:
            return []
        stmt = (
            select(Business)
            .where(business_table.c.id.in_(auth.business_ids))
            .order_by(business_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def ids_owned_by(self, user_id: str) -> list[UUID]:
        stmt = select(business_table.c.id).where(business_table.c.owner_user_id == user_id)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyClientRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, auth: AuthorizationContext, client: Client) -> None:
        auth.require(client.business_id)
        self.session.add(client)

    def get(self, auth: AuthorizationContext, business_id: UUID, client_id: UUID) -> Client | None:
        auth.require(business_id)
        stmt = (
            select(Client)
            .where(client_table.c.business_id == business_id)
            .where(client_table.c.id == client_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_external_id(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        external_id: str,
        *,
        include_deleted: bool = False,
    ) -> Client | None:
        auth.require(business_id)
        stmt = (
            select(Client)
            .where(client_table.c.business_id == business_id)
            .where(client_table.c.external_id == external_id)
        )
        if not include_deleted:
            stmt = stmt.where(client_table.c.deleted_at.is_(None))
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_email(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        email: str,
        *,
        include_deleted: bool = False,
    ) -> Client | None:
        auth.require(business_id)
        stmt = (
            select(Client)
            .where(client_table.c.business_id == business_id)
            .where(client_table.c.email == email)
        )
        if not include_deleted:
            stmt = stmt.where(client_table.c.deleted_at.is_(None))
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_name_key(
        self, auth: AuthorizationContext, business_id: UUID, key: str
    ) -> list[Client]:
        auth.require(business_id)
        stmt = (
            select(Client)
            .where(client_table.c.business_id == business_id)
            .where(client_table.c.match_name == key)
            .where(client_table.c.deleted_at.is_(None))
            .order_by(client_table.c.created_at, client_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_active(self, auth: AuthorizationContext, business_id: UUID) -> list[Client]:
        auth.require(business_id)
        stmt = (
            select(Client)
            .where(client_table.c.business_id == business_id)
            .where(client_table.c.deleted_at.is_(None))
            .order_by(client_table.c.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyReviewRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, auth: AuthorizationContext, review: ReviewRecord) -> None:
        auth.require(review.business_id)
        self.session.add(review)

    def latest_for_client(
        self, auth: AuthorizationContext, business_id: UUID, client_id: UUID
    ) -> ReviewRecord | None:
        auth.require(business_id)
        touched = func.coalesce(review_table.c.updated_at, review_table.c.created_at)
        stmt = (
            select(ReviewRecord)
            .where(review_table.c.business_id == business_id)
            .where(review_table.c.client_id == client_id)
            .order_by(touched.desc(), review_table.c.created_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_business(
        self, auth: AuthorizationContext, business_id: UUID
    ) -> list[ReviewRecord]:
        auth.require(business_id)
        stmt = (
            select(ReviewRecord)
            .where(review_table.c.business_id == business_id)
            .order_by(review_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyExternalReviewRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, auth: AuthorizationContext, review: ExternalReviewRaw) -> None:
        auth.require(review.business_id)
        self.session.add(review)

    def get_by_external_id(
        self, auth: AuthorizationContext, business_id: UUID, external_review_id: str
    ) -> ExternalReviewRaw | None:
        auth.require(business_id)
        stmt = (
            select(ExternalReviewRaw)
            .where(external_review_table.c.business_id == business_id)
            .where(external_review_table.c.external_review_id == external_review_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_unlinked(
        self, auth: AuthorizationContext, business_id: UUID
    ) -> list[ExternalReviewRaw]:
        auth.require(business_id)
        stmt = (
            select(ExternalReviewRaw)
            .where(external_review_table.c.business_id == business_id)
            .where(external_review_table.c.linked.is_(False))
            .order_by(external_review_table.c.published_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyConnectionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, auth: AuthorizationContext, connection: ProviderConnection) -> None:
        auth.require(connection.business_id)
        self.session.add(connection)

    def select_active(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        provider: ProviderKind,
        *,
        tenant_id: str | None = None,
    ) -> ProviderConnection | None:
        auth.require(business_id)
        table = provider_connection_table
        stmt = (
            select(ProviderConnection)
            .where(table.c.business_id == business_id)
            .where(table.c.provider == provider)
            .where(table.c.is_connected.is_(True))
        )
        if tenant_id is not None:
            stmt = stmt.where(table.c.tenant_id == tenant_id)
        stmt = stmt.order_by(
            table.c.is_primary.desc(),
            table.c.last_refreshed_at.is_(None),
            table.c.last_refreshed_at.desc(),
            table.c.created_at.desc(),
        ).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_tenant(
        self,
        auth: AuthorizationContext,
        business_id: UUID,
        provider: ProviderKind,
        tenant_id: str,
    ) -> ProviderConnection | None:
        auth.require(business_id)
        table = provider_connection_table
        stmt = (
            select(ProviderConnection)
            .where(table.c.business_id == business_id)
            .where(table.c.provider == provider)
            .where(table.c.tenant_id == tenant_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_business(
        self, auth: AuthorizationContext, business_id: UUID, provider: ProviderKind
    ) -> list[ProviderConnection]:
        auth.require(business_id)
        table = provider_connection_table
        stmt = (
            select(ProviderConnection)
            .where(table.c.business_id == business_id)
            .where(table.c.provider == provider)
            .order_by(table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyNonceRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, auth: AuthorizationContext, nonce: OAuthNonce) -> None:
        auth.require(nonce.business_id)
        self.session.add(nonce)

    def get(self, auth: AuthorizationContext, nonce: str) -> OAuthNonce | None:
        stmt = select(OAuthNonce).where(oauth_nonce_table.c.nonce == nonce)
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is not None:
            auth.require(row.business_id)
        return row


if TYPE_CHECKING:
    from reviewsync.domain.ports.persistence import (
        BusinessRepository,
        ClientRepository,
        ConnectionRepository,
        ExternalReviewRepository,
        NonceRepository,
        ReviewRepository,
    )

    def _check(session: Session) -> None:
        _businesses: BusinessRepository = SqlAlchemyBusinessRepository(session)
        _clients: ClientRepository = SqlAlchemyClientRepository(session)
        _reviews: ReviewRepository = SqlAlchemyReviewRepository(session)
        _external: ExternalReviewRepository = SqlAlchemyExternalReviewRepository(session)
        _connections: ConnectionRepository = SqlAlchemyConnectionRepository(session)
        _nonces: NonceRepository = SqlAlchemyNonceRepository(session)
