"""Initial schema: businesses, clients, reviews and provider state.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from reviewsync.adapters.sqlalchemy.mappings import UTCDateTime
from reviewsync.domain.model import InvoiceStatus, PrimarySource, ProviderKind, Sentiment

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "business",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_user_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("google_place_id", sa.String(), nullable=True),
        sa.Column("google_review_link", sa.String(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_business"),
    )
    op.create_index("ix_business_owner_user_id", "business", ["owner_user_id"])

    op.create_table(
        "client",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("match_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("sentiment", sa.Enum(Sentiment, native_enum=False), nullable=False),
        sa.Column("invoice_status", sa.Enum(InvoiceStatus, native_enum=False), nullable=True),
        sa.Column("external_id", sa.String(length=36), nullable=True),
        sa.Column("item_description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.Column("deleted_at", UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["business.id"],
            name="fk_client_business_id_business",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_client"),
        sa.UniqueConstraint("business_id", "external_id", name="uq_client_business_external_id"),
        sa.UniqueConstraint("business_id", "email", name="uq_client_business_email"),
    )
    op.create_index("ix_client_business_match_name", "client", ["business_id", "match_name"])

    op.create_table(
        "review",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("internal_text", sa.Text(), nullable=True),
        sa.Column("external_text", sa.Text(), nullable=True),
        sa.Column("external_review_id", sa.String(), nullable=True),
        sa.Column("stars", sa.Integer(), nullable=True),
        sa.Column("primary_source", sa.Enum(PrimarySource, native_enum=False), nullable=False),
        sa.Column("happy", sa.Boolean(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["business.id"],
            name="fk_review_business_id_business",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["client_id"],
            ["client.id"],
            name="fk_review_client_id_client",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_review"),
    )
    op.create_index("ix_review_business_client", "review", ["business_id", "client_id"])

    op.create_table(
        "external_review",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("external_review_id", sa.String(), nullable=False),
        sa.Column("author_name", sa.String(), nullable=True),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("stars", sa.Integer(), nullable=True),
        sa.Column("published_at", UTCDateTime(), nullable=True),
        sa.Column("linked", sa.Boolean(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["business.id"],
            name="fk_external_review_business_id_business",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_external_review"),
        sa.UniqueConstraint(
            "business_id",
            "external_review_id",
            name="uq_external_review_business_review_id",
        ),
    )

    op.create_table(
        "provider_connection",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("provider", sa.Enum(ProviderKind, native_enum=False), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("tenant_name", sa.String(), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_type", sa.String(), nullable=True),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("id_token", sa.Text(), nullable=True),
        sa.Column("expires_at", UTCDateTime(), nullable=True),
        sa.Column("last_refreshed_at", UTCDateTime(), nullable=True),
        sa.Column("is_connected", sa.Boolean(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["business.id"],
            name="fk_provider_connection_business_id_business",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_provider_connection"),
        sa.UniqueConstraint(
            "business_id",
            "provider",
            "tenant_id",
            name="uq_provider_connection_business_provider_tenant",
        ),
    )

    op.create_table(
        "oauth_nonce",
        sa.Column("nonce", sa.String(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("provider", sa.Enum(ProviderKind, native_enum=False), nullable=False),
        sa.Column("issued_at", UTCDateTime(), nullable=False),
        sa.Column("consumed_at", UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["business.id"],
            name="fk_oauth_nonce_business_id_business",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("nonce", name="pk_oauth_nonce"),
    )


def downgrade() -> None:
    op.drop_table("oauth_nonce")
    op.drop_table("provider_connection")
    op.drop_table("external_review")
    op.drop_index("ix_review_business_client", table_name="review")
    op.drop_table("review")
    op.drop_index("ix_client_business_match_name", table_name="client")
    op.drop_table("client")
    op.drop_index("ix_business_owner_user_id", table_name="business")
    op.drop_table("business")
