"""Durable, ordered queue of pending mutations keyed by entity."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from repairsync.config.sync import SyncPolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from repairsync.domain.mutations import EntityKey, PendingMutation
    from repairsync.domain.ports import MutationStore

log = getLogger(__name__)

type Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class MutationQueue:
    """At most one entry per entity key, in insertion order.

    Every change is written through to the ``MutationStore`` before the
    in-memory view is updated, so a crash never leaves the store behind.
    Dead-lettered entries stay in the queue but are excluded from ``count``
    and from the drain snapshot.
    """

    def __init__(
        self,
        store: MutationStore,
        *,
        policy: SyncPolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self.policy = policy or SyncPolicy()
        self._clock = clock
        self._entries: dict[EntityKey, PendingMutation] = {}
        for mutation in sorted(store.load(), key=lambda item: item.sequence):
            self._entries[mutation.key] = mutation
        self._next_sequence = max((m.sequence for m in self._entries.values()), default=0) + 1
        self._last_synced_at = store.load_last_synced_at()
        if self._entries:
            log.info(
                "Restored %d queued mutation(s) (%d dead-lettered)",
                len(self._entries),
                self.failed_count,
            )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[PendingMutation]:
        return iter(tuple(self._entries.values()))

    @property
    def count(self) -> int:
        """Number of entries still in active retry rotation."""

        return sum(1 for mutation in self._entries.values() if not mutation.is_dead_lettered)

    @property
    def failed_count(self) -> int:
        return sum(1 for mutation in self._entries.values() if mutation.is_dead_lettered)

    @property
    def last_synced_at(self) -> datetime | None:
        """End of the last pass that left nothing failed, as persisted by the store."""

        return self._last_synced_at

    def mark_synced(self, at: datetime) -> None:
        self._store.save_last_synced_at(at)
        self._last_synced_at = at

    def get(self, key: EntityKey) -> PendingMutation | None:
        return self._entries.get(key)

    def enqueue(self, mutation: PendingMutation) -> int:
        """Insert or replace the entry for ``mutation.key`` and return ``count``.

        A replacement keeps the new kind, payload and timestamp, resets the retry
        history and moves the entry to the back of the queue. Re-enqueuing an
        identical, untouched entry is a no-op.
        """

        existing = self._entries.get(mutation.key)
        if (
            existing is not None
            and not existing.is_dead_lettered
            and existing.attempts == 0
            and existing.kind == mutation.kind
            and existing.payload == mutation.payload
        ):
            return self.count

        fresh = replace(mutation, sequence=self._next_sequence).revived()
        self._store.save(fresh)
        self._next_sequence += 1
        self._entries.pop(mutation.key, None)
        self._entries[mutation.key] = fresh
        return self.count

    def dequeue_all(self) -> list[PendingMutation]:
        """Snapshot of active entries, oldest first. Nothing is removed."""

        return [mutation for mutation in self._entries.values() if not mutation.is_dead_lettered]

    def due(self, now: datetime | None = None) -> list[PendingMutation]:
        """Active entries whose backoff deadline has passed, oldest first."""

        moment = now or self._clock()
        return [mutation for mutation in self._entries.values() if mutation.is_due(moment)]

    def dead_letters(self) -> list[PendingMutation]:
        return [mutation for mutation in self._entries.values() if mutation.is_dead_lettered]

    def remove(self, key: EntityKey, *, sequence: int | None = None) -> bool:
        """Drop the entry for ``key``; no-op if absent.

        With ``sequence`` the removal only applies to that exact entry, so an
        acknowledgement for a superseded write never drops the newer one.
        """

        current = self._current(key, sequence)
        if current is None:
            return False
        self._store.delete(key)
        del self._entries[key]
        return True

    def record_failure(
        self,
        key: EntityKey,
        *,
        error: str,
        retry_after: float | None = None,
        sequence: int | None = None,
    ) -> PendingMutation | None:
        """Count one failed attempt, dead-lettering at ``max_attempts``."""

        current = self._current(key, sequence)
        if current is None or current.is_dead_lettered:
            return current

        attempts = current.attempts + 1
        dead_letter = attempts >= self.policy.max_attempts
        delay = self.policy.backoff_seconds(attempts)
        if retry_after is not None:
            delay = max(delay, retry_after)
        updated = current.with_failure(
            error=error,
            next_attempt_at=self._clock() + timedelta(seconds=delay),
            dead_letter=dead_letter,
        )
        self._put(updated)
        if dead_letter:
            log.error(
                "Dead-lettered %s after %d attempt(s): %s", key, updated.attempts, error
            )
        return updated

    def dead_letter(
        self,
        key: EntityKey,
        *,
        error: str,
        sequence: int | None = None,
    ) -> PendingMutation | None:
        """Move an entry out of retry rotation immediately."""

        current = self._current(key, sequence)
        if current is None or current.is_dead_lettered:
            return current
        updated = current.dead_lettered(error=error)
        self._put(updated)
        log.error("Dead-lettered %s: %s", key, error)
        return updated

    def revive(self, key: EntityKey) -> PendingMutation | None:
        """Return a dead-lettered entry to rotation with a clean retry history."""

        current = self._entries.get(key)
        if current is None or not current.is_dead_lettered:
            return current
        updated = current.revived()
        self._put(updated)
        return updated

    def _current(self, key: EntityKey, sequence: int | None) -> PendingMutation | None:
        current = self._entries.get(key)
        if current is None:
            return None
        if sequence is not None and current.sequence != sequence:
            log.debug("Ignoring outcome for superseded write to %s", key)
            return None
        return current

    def _put(self, mutation: PendingMutation) -> None:
        self._store.save(mutation)
        self._entries[mutation.key] = mutation
