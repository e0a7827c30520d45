"""SQLAlchemy mapping metadata for the reviewsync domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)

from reviewsync.domain.model import (
    Business,
    Client,
    ExternalReviewRaw,
    InvoiceStatus,
    OAuthNonce,
    PrimarySource,
    ProviderConnection,
    ProviderKind,
    ReviewRecord,
    Sentiment,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

business_table = Table(
    "business",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("owner_user_id", String, nullable=False, index=True),
    Column("display_name", String, nullable=False),
    Column("google_place_id", String, nullable=True),
    Column("google_review_link", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

client_table = Table(
    "client",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "business_id",
        UUIDColumnType,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("display_name", String, nullable=False),
    Column("match_name", String, nullable=True),
    Column("email", String, nullable=True),
    Column("phone", String, nullable=True),
    Column("sentiment", Enum(Sentiment, native_enum=False), nullable=False),
    Column("invoice_status", Enum(InvoiceStatus, native_enum=False), nullable=True),
    Column("external_id", String(36), nullable=True),
    Column("item_description", Text, nullable=True),
    Column("created_by", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("deleted_at", UTCDateTime(), nullable=True),
    UniqueConstraint("business_id", "external_id", name="uq_client_business_external_id"),
    Index("ix_client_business_match_name", "business_id", "match_name"),
    UniqueConstraint("business_id", "email", name="uq_client_business_email"),
)

review_table = Table(
    "review",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "business_id",
        UUIDColumnType,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "client_id",
        UUIDColumnType,
        ForeignKey("client.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("internal_text", Text, nullable=True),
    Column("external_text", Text, nullable=True),
    Column("external_review_id", String, nullable=True),
    Column("stars", Integer, nullable=True),
    Column("primary_source", Enum(PrimarySource, native_enum=False), nullable=False),
    Column("happy", Boolean, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_review_business_client", "business_id", "client_id"),
)

external_review_table = Table(
    "external_review",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "business_id",
        UUIDColumnType,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("external_review_id", String, nullable=False),
    Column("author_name", String, nullable=True),
    Column("text", Text, nullable=True),
    Column("stars", Integer, nullable=True),
    Column("published_at", UTCDateTime(), nullable=True),
    Column("linked", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    UniqueConstraint(
        "business_id", "external_review_id", name="uq_external_review_business_review_id"
    ),
)

provider_connection_table = Table(
    "provider_connection",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "business_id",
        UUIDColumnType,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("provider", Enum(ProviderKind, native_enum=False), nullable=False),
    Column("tenant_id", String, nullable=False),
    Column("tenant_name", String, nullable=True),
    Column("access_token", Text, nullable=True),
    Column("refresh_token", Text, nullable=True),
    Column("token_type", String, nullable=True),
    Column("scope", Text, nullable=True),
    Column("id_token", Text, nullable=True),
    Column("expires_at", UTCDateTime(), nullable=True),
    Column("last_refreshed_at", UTCDateTime(), nullable=True),
    Column("is_connected", Boolean, nullable=False, default=True),
    Column("is_primary", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    UniqueConstraint(
        "business_id",
        "provider",
        "tenant_id",
        name="uq_provider_connection_business_provider_tenant",
    ),
)

oauth_nonce_table = Table(
    "oauth_nonce",
    mapper_registry.metadata,
    Column("nonce", String, primary_key=True),
    Column(
        "business_id",
        UUIDColumnType,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", String, nullable=False),
    Column("provider", Enum(ProviderKind, native_enum=False), nullable=False),
    Column("issued_at", UTCDateTime(), nullable=False),
    Column("consumed_at", UTCDateTime(), nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Business, business_table)
    mapper_registry.map_imperatively(Client, client_table)
    mapper_registry.map_imperatively(ReviewRecord, review_table)
    mapper_registry.map_imperatively(ExternalReviewRaw, external_review_table)
    mapper_registry.map_imperatively(ProviderConnection, provider_connection_table)
    mapper_registry.map_imperatively(OAuthNonce, oauth_nonce_table)

    orm.configure_mappers()
    return mapper_registry
