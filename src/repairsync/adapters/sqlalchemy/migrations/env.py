"""Alembic environment for the queue database."""

from __future__ import annotations

from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

from repairsync.adapters.sqlalchemy.mappings import metadata
from repairsync.config import get_database_config


def _database_url() -> str:
    return context.config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _configure(**options: Any) -> None:
    # batch mode so ALTERs work on SQLite
    context.configure(
        target_metadata=metadata,
        render_as_batch=True,
        compare_type=True,
        **options,
    )


def _migrate(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


def run() -> None:
    if context.is_offline_mode():
        _configure(url=_database_url(), literal_binds=True)
        with context.begin_transaction():
            context.run_migrations()
        return

    borrowed = context.config.attributes.get("connection")
    if isinstance(borrowed, Connection):
        _migrate(borrowed)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


run()
