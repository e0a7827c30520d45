"""SQLAlchemy-backed unit of work for reconciliation runs and OAuth handshakes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event, make_url
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reviewsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyBusinessRepository,
    SqlAlchemyClientRepository,
    SqlAlchemyConnectionRepository,
    SqlAlchemyExternalReviewRepository,
    SqlAlchemyNonceRepository,
    SqlAlchemyReviewRepository,
)
from reviewsync.domain.errors import RecordMergeError, TransactionError
from reviewsync.domain.ports.unit_of_work import (
    ReconciliationRepositories,
    RepositoryCollection,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used outside its ``with`` block."""


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:  # noqa: ANN401
        _ = connection_record
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN")


def create_database_engine(uri: str, *, echo: bool = False) -> Engine:
    """Create an engine; SQLite engines get foreign keys and working savepoints."""

    url = make_url(uri)
    options: dict[str, Any] = {}
    if url.get_backend_name() == "sqlite" and url.database in {None, "", ":memory:"}:
        # one shared connection, otherwise every checkout sees an empty database
        options = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_engine(url, echo=echo, future=True, **options)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    log.info(f"Created database engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransactionError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    def flush(self) -> None:
        try:
            self.session.flush()
        except (IntegrityError, DataError) as exc:
            raise RecordMergeError(None, f"Write rejected by the database: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise TransactionError(f"Flush failed: {exc}") from exc

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Writes inside the block are rolled back alone if it raises."""
        try:
            with self.session.begin_nested():
                yield
        except (IntegrityError, DataError) as exc:
            raise RecordMergeError(None, f"Write rejected by the database: {exc.orig}") from exc

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyReconciliationUnitOfWork(BaseSqlAlchemyUnitOfWork[ReconciliationRepositories]):
    """Unit of work for sync runs, OAuth handshakes and dashboard actions."""

    def _build_repositories(self, session: Session) -> ReconciliationRepositories:
        return ReconciliationRepositories(
            businesses=SqlAlchemyBusinessRepository(session),
            clients=SqlAlchemyClientRepository(session),
            reviews=SqlAlchemyReviewRepository(session),
            external_reviews=SqlAlchemyExternalReviewRepository(session),
            connections=SqlAlchemyConnectionRepository(session),
            nonces=SqlAlchemyNonceRepository(session),
        )


if TYPE_CHECKING:
    from reviewsync.domain.ports.unit_of_work import ReconciliationUnitOfWork

    def _check(session_factory: sessionmaker[Session]) -> None:
        _uow_check: ReconciliationUnitOfWork = SqlAlchemyReconciliationUnitOfWork(session_factory)
