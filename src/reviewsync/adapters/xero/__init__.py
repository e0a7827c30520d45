"""Public interface for the Xero adapter."""

from __future__ import annotations

from .client import XeroClient, since_where
from .translator import parse_xero_date, pick_phone, to_external_contact, to_external_invoice

__all__ = [
    "XeroClient",
    "parse_xero_date",
    "pick_phone",
    "since_where",
    "to_external_contact",
    "to_external_invoice",
]
