"""Normalisation and validation of identifiers and match keys."""

from __future__ import annotations

import re
import unicodedata

_CANONICAL_ID = re.compile(r"^[0-9a-fA-F-]{36}$")
_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def is_canonical_identifier(value: object) -> bool:
    """Return whether ``value`` has the fixed-length hex-with-dashes shape.

    Anything else is unsafe to store as a foreign key into another system.
    """
    return isinstance(value, str) and bool(_CANONICAL_ID.fullmatch(value))


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_email(value: str | None) -> str | None:
    cleaned = clean_text(value)
    return cleaned.lower() if cleaned else None


def name_key(value: str | None) -> str | None:
    """Case-insensitive equality key for display names (no fuzzy folding)."""
    cleaned = clean_text(value)
    if cleaned is None:
        return None
    return _WHITESPACE.sub(" ", cleaned).casefold()


def slugify(value: str | None) -> str:
    if not value:
        return ""
    ascii_value = (
        unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii").lower()
    )
    return _NON_SLUG.sub("-", ascii_value).strip("-")
