"""Alembic environment for the reviewsync schema."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alembic import context

from reviewsync.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from reviewsync.adapters.sqlalchemy.unit_of_work import create_database_engine
from reviewsync.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config

log = logging.getLogger("alembic.env")

start_mappers()

target_metadata = mapper_registry.metadata


def _database_uri() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _run_with(connection: Connection) -> None:
    # SQLite needs batch mode for ALTER
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    context.configure(
        url=_database_uri(),
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # upgrade_head(engine=...) hands over an open connection
    shared: Connection | None = config.attributes.get("connection")
    if shared is not None:
        _run_with(shared)
        return

    engine = create_database_engine(_database_uri())
    try:
        with engine.connect() as connection:
            _run_with(connection)
    finally:
        engine.dispose()
    log.info("Database schema is at head")


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
