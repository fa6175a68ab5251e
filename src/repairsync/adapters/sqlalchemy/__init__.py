"""SQLAlchemy persistence for the mutation queue."""

from __future__ import annotations

from .mappings import metadata, pending_mutation_table
from .repositories import SqlAlchemyMutationRepository
from .store import SqlAlchemyMutationStore
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyMutationRepository",
    "SqlAlchemyMutationStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "is_started",
    "metadata",
    "pending_mutation_table",
    "shutdown",
    "startup",
]
