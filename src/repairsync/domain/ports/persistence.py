"""Ports for durable storage of the mutation queue."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from types import TracebackType

    from repairsync.domain.mutations import EntityKey, MutationState, PendingMutation


@runtime_checkable
class MutationStore(Protocol):
    """Keyed by entity key; must preserve ``sequence`` and attempt counts."""

    def load(self) -> list[PendingMutation]:
        """Return every stored mutation ordered by ``sequence``."""
        ...

    def save(self, mutation: PendingMutation) -> None:
        """Insert or replace the entry for ``mutation.key``."""
        ...

    def delete(self, key: EntityKey) -> None: ...

    def load_last_synced_at(self) -> datetime | None:
        """Return the end time of the last fully successful pass, if any."""
        ...

    def save_last_synced_at(self, synced_at: datetime) -> None: ...


class MutationRepository(Protocol):
    def all(self) -> list[PendingMutation]: ...

    def get(self, key: EntityKey) -> PendingMutation | None: ...

    def upsert(self, mutation: PendingMutation) -> None: ...

    def remove(self, key: EntityKey) -> None: ...

    def count(self, *, state: MutationState | None = None) -> int: ...


class SyncStateRepository(Protocol):
    def get(self, name: str) -> datetime | None: ...

    def put(self, name: str, value: datetime) -> None: ...


@runtime_checkable
class MutationUnitOfWork(Protocol):
    """Transaction boundary around both repositories; an error rolls back."""

    @property
    def mutations(self) -> MutationRepository: ...

    @property
    def sync_state(self) -> SyncStateRepository: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
