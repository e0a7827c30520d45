from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from reviewsync.adapters.sqlalchemy import (
    SqlAlchemyReconciliationUnitOfWork,
    create_database_engine,
    create_session_factory,
    start_mappers,
)
from reviewsync.adapters.sqlalchemy.migrations import upgrade_head
from reviewsync.domain.authorization import AuthorizationContext
from reviewsync.domain.clients import create_business
from tests.helpers.constants import NOW, OWNER_ID

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from datetime import datetime

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session, sessionmaker

    from reviewsync.domain.model import Business
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_database_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(sqlite_engine)


@pytest.fixture
def sqlite_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    session_factory: sessionmaker[Session],
) -> Callable[[], ReconciliationUnitOfWork]:
    def factory() -> ReconciliationUnitOfWork:
        return SqlAlchemyReconciliationUnitOfWork(session_factory)

    return factory


@pytest.fixture
def business(sqlite_unit_of_work: Callable[[], ReconciliationUnitOfWork]) -> Business:
    return create_business(sqlite_unit_of_work, user_id=OWNER_ID, display_name="Acme Plumbing")


@pytest.fixture
def owner_auth(business: Business) -> AuthorizationContext:
    return AuthorizationContext.for_user(OWNER_ID, [business.id])


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW
