"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ProviderKind(StrEnum):
    GOOGLE = "google"
    XERO = "xero"


class Sentiment(StrEnum):
    GOOD = "good"
    BAD = "bad"
    UNREVIEWED = "unreviewed"


class PrimarySource(StrEnum):
    """Which text of a review record is the human-facing one."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class InvoiceStatus(StrEnum):
    PAID = "PAID"
    SENT = "SENT"
    DRAFT = "DRAFT"
    PAID_BUT_NOT_SENT = "PAID BUT NOT SENT"
