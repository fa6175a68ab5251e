from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from repairsync.adapters.sqlalchemy import (
    SqlAlchemyMutationStore,
    SqlAlchemyUnitOfWork,
    shutdown,
    startup,
)

# Nothing under test may touch the user's real queue database.
os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(sqlite_engine: Engine) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    """Start the queue database on a private in-memory engine for one test."""

    startup(engine=sqlite_engine, force=True)
    yield SqlAlchemyUnitOfWork
    shutdown()


@pytest.fixture
def sqlite_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> SqlAlchemyMutationStore:
    return SqlAlchemyMutationStore(sqlite_unit_of_work)
