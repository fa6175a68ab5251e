"""Alembic migrations for the queue database, run programmatically at startup."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine

SCRIPT_LOCATION: Final[Path] = Path(__file__).resolve().parent


def alembic_config(*, connection: Connection | None = None) -> Config:
    """Build an in-memory Alembic config; no ``alembic.ini`` is shipped."""

    config = Config()
    config.set_main_option("script_location", str(SCRIPT_LOCATION))
    if connection is not None:
        config.attributes["connection"] = connection
    return config


def upgrade_head(engine: Engine) -> None:
    """Apply every pending revision on a connection borrowed from ``engine``.

    In-memory SQLite databases only exist per connection, so migrations have
    to run on the caller's engine rather than a fresh one built from a URL.
    """

    with engine.begin() as connection:
        command.upgrade(alembic_config(connection=connection), "head")


def current_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
