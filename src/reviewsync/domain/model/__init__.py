"""Domain model for clients, reviews and provider integrations."""

from __future__ import annotations

from .base import Entity, TimestampedEntity, new_id, utcnow
from .business import Business
from .client import Client, ReviewRecord, sentiment_for_stars
from .enums import InvoiceStatus, PrimarySource, ProviderKind, Sentiment
from .identifiers import clean_text, is_canonical_identifier, name_key, normalize_email, slugify
from .integration import ExternalReviewRaw, OAuthNonce, ProviderConnection, Tenant, TokenGrant

__all__ = [
    "Business",
    "Client",
    "Entity",
    "ExternalReviewRaw",
    "InvoiceStatus",
    "OAuthNonce",
    "PrimarySource",
    "ProviderConnection",
    "ProviderKind",
    "ReviewRecord",
    "Sentiment",
    "Tenant",
    "TimestampedEntity",
    "TokenGrant",
    "clean_text",
    "is_canonical_identifier",
    "name_key",
    "new_id",
    "normalize_email",
    "sentiment_for_stars",
    "slugify",
    "utcnow",
]
