"""SQLAlchemy adapter package for reviewsync."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyBusinessRepository,
    SqlAlchemyClientRepository,
    SqlAlchemyConnectionRepository,
    SqlAlchemyExternalReviewRepository,
    SqlAlchemyNonceRepository,
    SqlAlchemyReviewRepository,
)
from .unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    StartupError,
    create_database_engine,
    create_session_factory,
)

__all__ = [
    "SqlAlchemyBusinessRepository",
    "SqlAlchemyClientRepository",
    "SqlAlchemyConnectionRepository",
    "SqlAlchemyExternalReviewRepository",
    "SqlAlchemyNonceRepository",
    "SqlAlchemyReconciliationUnitOfWork",
    "SqlAlchemyReviewRepository",
    "StartupError",
    "create_database_engine",
    "create_session_factory",
    "mapper_registry",
    "start_mappers",
]
