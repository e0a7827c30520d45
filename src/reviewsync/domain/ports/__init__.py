"""Ports for persistence, units of work and provider capabilities."""

from __future__ import annotations

from .persistence import (
    BusinessRepository,
    ClientRepository,
    ConnectionRepository,
    ExternalReviewRepository,
    NonceRepository,
    ReviewRepository,
)
from .providers import (
    ContactDirectory,
    Cursor,
    InvoiceProvider,
    LocationDirectory,
    Page,
    ProviderCapability,
    ReviewProvider,
    TokenRefresher,
)
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BusinessRepository",
    "ClientRepository",
    "ConnectionRepository",
    "ContactDirectory",
    "Cursor",
    "ExternalReviewRepository",
    "InvoiceProvider",
    "LocationDirectory",
    "NonceRepository",
    "Page",
    "ProviderCapability",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "RepositoryCollection",
    "ReviewProvider",
    "ReviewRepository",
    "TokenRefresher",
    "UnitOfWork",
]
