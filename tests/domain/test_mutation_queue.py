from __future__ import annotations

from datetime import timedelta

from repairsync.config.sync import SyncPolicy
from repairsync.domain.mutations import EntityKey, MutationState
from repairsync.domain.queue import MutationQueue
from tests.helpers.sync import EPOCH, FakeClock, InMemoryMutationStore, make_mutation


def _queue(
    store: InMemoryMutationStore | None = None,
    *,
    policy: SyncPolicy | None = None,
    clock: FakeClock | None = None,
) -> MutationQueue:
    return MutationQueue(
        store or InMemoryMutationStore(),
        policy=policy or SyncPolicy(),
        clock=clock or FakeClock(),
    )


def test_enqueue_returns_active_count_and_persists() -> None:
    store = InMemoryMutationStore()
    queue = _queue(store)

    assert queue.enqueue(make_mutation("order:1")) == 1
    assert queue.enqueue(make_mutation("order:2")) == 2

    assert [str(key) for key in store.rows] == ["order:1", "order:2"]
    assert [m.sequence for m in queue.dequeue_all()] == [1, 2]


def test_enqueue_replaces_entry_and_moves_it_to_the_back() -> None:
    queue = _queue()
    queue.enqueue(make_mutation("order:1", payload={"status": "booked_in"}))
    queue.enqueue(make_mutation("order:2"))
    queue.record_failure(EntityKey.parse("order:1"), error="boom")

    count = queue.enqueue(
        make_mutation("order:1", "notes_update", payload={"notes": "screen replaced"})
    )

    snapshot = queue.dequeue_all()
    assert count == 2
    assert [str(m.key) for m in snapshot] == ["order:2", "order:1"]
    replaced = snapshot[-1]
    assert replaced.kind == "notes_update"
    assert replaced.payload == {"notes": "screen replaced"}
    assert replaced.attempts == 0
    assert replaced.last_error is None
    assert replaced.next_attempt_at is None


def test_enqueue_same_mutation_twice_is_idempotent() -> None:
    store = InMemoryMutationStore()
    queue = _queue(store)
    queue.enqueue(make_mutation("device:7", payload={"status": "diagnosed"}))
    first = queue.dequeue_all()

    count = queue.enqueue(make_mutation("device:7", payload={"status": "diagnosed"}))

    assert count == 1
    assert queue.dequeue_all() == first
    assert store.saves == 1


def test_restore_keeps_order_and_continues_sequence() -> None:
    store = InMemoryMutationStore()
    original = _queue(store)
    original.enqueue(make_mutation("order:1"))
    original.enqueue(make_mutation("order:2"))
    original.record_failure(EntityKey.parse("order:2"), error="server down")

    restored = _queue(store)
    restored.enqueue(make_mutation("order:3"))

    assert [str(m.key) for m in restored.dequeue_all()] == ["order:1", "order:2", "order:3"]
    assert restored.get(EntityKey.parse("order:2")).attempts == 1  # type: ignore[union-attr]
    assert restored.get(EntityKey.parse("order:3")).sequence == 3  # type: ignore[union-attr]


def test_remove_missing_key_is_a_noop() -> None:
    store = InMemoryMutationStore()
    queue = _queue(store)

    assert queue.remove(EntityKey.parse("order:404")) is False
    assert store.deletes == 0


def test_remove_ignores_superseded_sequence() -> None:
    queue = _queue()
    queue.enqueue(make_mutation("order:1", payload={"status": "a"}))
    stale = queue.dequeue_all()[0]
    queue.enqueue(make_mutation("order:1", payload={"status": "b"}))

    assert queue.remove(stale.key, sequence=stale.sequence) is False
    assert queue.count == 1
    assert queue.record_failure(stale.key, error="late", sequence=stale.sequence) is None
    assert queue.get(stale.key).attempts == 0  # type: ignore[union-attr]


def test_record_failure_schedules_exponential_backoff() -> None:
    clock = FakeClock()
    policy = SyncPolicy(backoff_base_seconds=2, backoff_cap_seconds=5, max_attempts=10)
    queue = _queue(policy=policy, clock=clock)
    key = EntityKey.parse("order:1")
    queue.enqueue(make_mutation("order:1"))

    delays = []
    for _ in range(3):
        updated = queue.record_failure(key, error="server error")
        assert updated is not None
        assert updated.next_attempt_at is not None
        delays.append(updated.next_attempt_at - EPOCH)

    assert delays == [timedelta(seconds=2), timedelta(seconds=4), timedelta(seconds=5)]
    assert queue.due(EPOCH + timedelta(seconds=4)) == []
    assert [str(m.key) for m in queue.due(EPOCH + timedelta(seconds=5))] == ["order:1"]


def test_retry_after_extends_backoff_when_longer() -> None:
    queue = _queue()
    key = EntityKey.parse("order:1")
    queue.enqueue(make_mutation("order:1"))

    updated = queue.record_failure(key, error="slow down", retry_after=30)

    assert updated is not None
    assert updated.next_attempt_at == EPOCH + timedelta(seconds=30)


def test_dead_letters_exactly_at_max_attempts() -> None:
    queue = _queue(policy=SyncPolicy(max_attempts=3))
    key = EntityKey.parse("ticket_message:abc")
    queue.enqueue(make_mutation("ticket_message:abc", payload={"ticket_id": 9}))

    for _ in range(2):
        updated = queue.record_failure(key, error="503")
        assert updated is not None
        assert updated.state is MutationState.PENDING

    final = queue.record_failure(key, error="503")

    assert final is not None
    assert final.state is MutationState.DEAD_LETTER
    assert final.attempts == 3
    assert queue.count == 0
    assert queue.failed_count == 1
    assert queue.dequeue_all() == []
    assert queue.due(EPOCH + timedelta(days=1)) == []


def test_dead_letter_and_revive() -> None:
    queue = _queue()
    key = EntityKey.parse("device:3")
    queue.enqueue(make_mutation("device:3"))
    queue.record_failure(key, error="503")

    dead = queue.dead_letter(key, error="bad response")

    assert dead is not None
    assert dead.last_error == "bad response"
    assert [m.key for m in queue.dead_letters()] == [key]

    revived = queue.revive(key)

    assert revived is not None
    assert revived.state is MutationState.PENDING
    assert revived.attempts == 0
    assert revived.last_error is None
    assert queue.count == 1
    assert queue.failed_count == 0


def test_discarding_a_dead_letter_removes_it() -> None:
    store = InMemoryMutationStore()
    queue = _queue(store)
    key = EntityKey.parse("device:3")
    queue.enqueue(make_mutation("device:3"))
    queue.dead_letter(key, error="bad response")

    assert queue.remove(key) is True
    assert queue.failed_count == 0
    assert key not in store.rows
