"""Pending mutation value types."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

type JSONObject = Mapping[str, object]

_KEY_SEPARATOR = ":"


class MutationState(StrEnum):
    PENDING = "pending"
    DEAD_LETTER = "dead_letter"


@dataclass(frozen=True, slots=True, order=True)
class EntityKey:
    """Stable reference to a server entity, rendered as ``"<type>:<id>"``."""

    entity_type: str
    entity_id: str

    def __post_init__(self) -> None:
        if not self.entity_type or not self.entity_id:
            raise ValueError("Entity key requires both a type and an id")
        if _KEY_SEPARATOR in self.entity_type:
            raise ValueError(f"Entity type must not contain {_KEY_SEPARATOR!r}")

    @classmethod
    def parse(cls, value: str) -> Self:
        entity_type, separator, entity_id = value.strip().partition(_KEY_SEPARATOR)
        if not separator:
            raise ValueError(f"Invalid entity key {value!r}; expected '<type>:<id>'")
        return cls(entity_type=entity_type, entity_id=entity_id)

    @classmethod
    def coerce(cls, value: EntityKey | str) -> EntityKey:
        return value if isinstance(value, EntityKey) else cls.parse(value)

    def __str__(self) -> str:
        return f"{self.entity_type}{_KEY_SEPARATOR}{self.entity_id}"


@dataclass(frozen=True, slots=True)
class PendingMutation:
    """A local write that the server has not acknowledged yet.

    ``sequence`` is assigned by the queue and fixes insertion order across
    restarts; ``next_attempt_at`` is the backoff deadline after a failure.
    """

    key: EntityKey
    kind: str
    enqueued_at: datetime
    payload: JSONObject | None = None
    attempts: int = 0
    state: MutationState = MutationState.PENDING
    last_error: str | None = None
    next_attempt_at: datetime | None = None
    sequence: int = field(default=0, compare=False)

    @property
    def is_dead_lettered(self) -> bool:
        return self.state is MutationState.DEAD_LETTER

    def is_due(self, now: datetime) -> bool:
        if self.is_dead_lettered:
            return False
        return self.next_attempt_at is None or self.next_attempt_at <= now

    def with_failure(
        self,
        *,
        error: str,
        next_attempt_at: datetime | None,
        dead_letter: bool,
    ) -> PendingMutation:
        return replace(
            self,
            attempts=self.attempts + 1,
            last_error=error,
            next_attempt_at=None if dead_letter else next_attempt_at,
            state=MutationState.DEAD_LETTER if dead_letter else self.state,
        )

    def dead_lettered(self, *, error: str) -> PendingMutation:
        return replace(
            self,
            state=MutationState.DEAD_LETTER,
            last_error=error,
            next_attempt_at=None,
        )

    def revived(self) -> PendingMutation:
        return replace(
            self,
            state=MutationState.PENDING,
            attempts=0,
            last_error=None,
            next_attempt_at=None,
        )
