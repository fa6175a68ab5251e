"""``MutationStore`` backed by the queue database."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from repairsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from repairsync.domain.mutations import EntityKey, PendingMutation
    from repairsync.domain.ports import MutationUnitOfWork

type UnitOfWorkFactory = Callable[[], MutationUnitOfWork]

LAST_SYNCED_AT: Final = "last_synced_at"


class SqlAlchemyMutationStore:
    """Commits every queue change in its own unit of work.

    The in-memory queue is the source of truth while running; this store only
    has to make each individual write durable before the queue returns.
    """

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory = SqlAlchemyUnitOfWork) -> None:
        self._uow_factory = unit_of_work_factory

    def load(self) -> list[PendingMutation]:
        with self._uow_factory() as uow:
            return uow.mutations.all()

    def save(self, mutation: PendingMutation) -> None:
        with self._uow_factory() as uow:
            uow.mutations.upsert(mutation)
            uow.commit()

    def delete(self, key: EntityKey) -> None:
        with self._uow_factory() as uow:
            uow.mutations.remove(key)
            uow.commit()

    def load_last_synced_at(self) -> datetime | None:
        with self._uow_factory() as uow:
            return uow.sync_state.get(LAST_SYNCED_AT)

    def save_last_synced_at(self, synced_at: datetime) -> None:
        with self._uow_factory() as uow:
            uow.sync_state.put(LAST_SYNCED_AT, synced_at)
            uow.commit()


if TYPE_CHECKING:
    from repairsync.domain.ports import MutationStore

    _store_check: MutationStore = SqlAlchemyMutationStore()
