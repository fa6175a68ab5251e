from __future__ import annotations

from datetime import timedelta

import pytest

from repairsync.domain.mutations import EntityKey, MutationState
from repairsync.domain.status import COMPLETED, IDLE, Errored, Syncing, is_in_progress
from tests.helpers.sync import EPOCH, make_mutation


def test_entity_key_round_trips_through_string() -> None:
    key = EntityKey.parse("order:5c1f-uuid")

    assert key == EntityKey("order", "5c1f-uuid")
    assert str(key) == "order:5c1f-uuid"


def test_entity_key_splits_on_first_separator_only() -> None:
    key = EntityKey.parse("ticket_message:local:17")

    assert key.entity_type == "ticket_message"
    assert key.entity_id == "local:17"


@pytest.mark.parametrize("value", ["order", ":42", "order:", ""])
def test_entity_key_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError, match="Entity key|entity key"):
        EntityKey.parse(value)


def test_coerce_accepts_keys_and_strings() -> None:
    key = EntityKey("device", "9")

    assert EntityKey.coerce(key) is key
    assert EntityKey.coerce("device:9") == key


def test_pending_mutation_due_respects_backoff_deadline() -> None:
    mutation = make_mutation().with_failure(
        error="503",
        next_attempt_at=EPOCH + timedelta(seconds=4),
        dead_letter=False,
    )

    assert mutation.attempts == 1
    assert not mutation.is_due(EPOCH)
    assert mutation.is_due(EPOCH + timedelta(seconds=4))


def test_dead_lettered_mutation_is_never_due() -> None:
    mutation = make_mutation().dead_lettered(error="decoding failed")

    assert mutation.state is MutationState.DEAD_LETTER
    assert not mutation.is_due(EPOCH + timedelta(days=365))


def test_syncing_progress_is_bounded() -> None:
    assert is_in_progress(Syncing(0.5))
    assert not is_in_progress(IDLE)
    with pytest.raises(ValueError, match="progress"):
        Syncing(1.5)


def test_status_values_compare_by_content() -> None:
    assert Errored("1 change failed") == Errored("1 change failed")
    assert Syncing(0.0) != Syncing(1.0)
    assert COMPLETED.kind == "completed"
