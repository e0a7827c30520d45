"""Public interface for the Google Business Profile adapter."""

from __future__ import annotations

from .client import GoogleBusinessClient
from .translator import choose_location, reviews_parent, star_rating, to_external_review

__all__ = [
    "GoogleBusinessClient",
    "choose_location",
    "reviews_parent",
    "star_rating",
    "to_external_review",
]
