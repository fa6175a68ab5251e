"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from repairsync.adapters.sqlalchemy.mappings import pending_mutation_table, sync_state_table
from repairsync.domain.mutations import EntityKey, MutationState, PendingMutation

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

_table = pending_mutation_table


class SqlAlchemyMutationRepository:
    """Reads and writes ``pending_mutation`` rows within one session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def all(self) -> list[PendingMutation]:
        stmt = select(_table).order_by(_table.c.sequence, _table.c.enqueued_at)
        return [self._to_domain(row) for row in self.session.execute(stmt).all()]

    def get(self, key: EntityKey) -> PendingMutation | None:
        stmt = select(_table).where(*self._key_clause(key))
        row = self.session.execute(stmt).first()
        return None if row is None else self._to_domain(row)

    def upsert(self, mutation: PendingMutation) -> None:
        values = self._to_row(mutation)
        if self.get(mutation.key) is None:
            self.session.execute(_table.insert().values(**values))
            return
        self.session.execute(update(_table).where(*self._key_clause(mutation.key)).values(**values))

    def remove(self, key: EntityKey) -> None:
        self.session.execute(delete(_table).where(*self._key_clause(key)))

    def count(self, *, state: MutationState | None = None) -> int:
        stmt = select(func.count()).select_from(_table)
        if state is not None:
            stmt = stmt.where(_table.c.state == state)
        return int(self.session.execute(stmt).scalar_one())

    @staticmethod
    def _key_clause(key: EntityKey) -> tuple[Any, ...]:
        return (_table.c.entity_type == key.entity_type, _table.c.entity_id == key.entity_id)

    @staticmethod
    def _to_row(mutation: PendingMutation) -> dict[str, object]:
        return {
            "entity_type": mutation.key.entity_type,
            "entity_id": mutation.key.entity_id,
            "kind": mutation.kind,
            "payload": dict(mutation.payload) if mutation.payload is not None else None,
            "enqueued_at": mutation.enqueued_at,
            "attempts": mutation.attempts,
            "state": mutation.state,
            "last_error": mutation.last_error,
            "next_attempt_at": mutation.next_attempt_at,
            "sequence": mutation.sequence,
        }

    @staticmethod
    def _to_domain(row: Row[Any]) -> PendingMutation:
        mapping = row._mapping  # noqa: SLF001
        return PendingMutation(
            key=EntityKey(entity_type=mapping["entity_type"], entity_id=mapping["entity_id"]),
            kind=mapping["kind"],
            enqueued_at=mapping["enqueued_at"],
            payload=mapping["payload"],
            attempts=mapping["attempts"],
            state=MutationState(mapping["state"]),
            last_error=mapping["last_error"],
            next_attempt_at=mapping["next_attempt_at"],
            sequence=mapping["sequence"],
        )


class SqlAlchemySyncStateRepository:
    """Named timestamps in ``sync_state``, one row per name."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, name: str) -> datetime | None:
        stmt = select(sync_state_table.c.recorded_at).where(sync_state_table.c.name == name)
        return self.session.execute(stmt).scalar_one_or_none()

    def put(self, name: str, value: datetime) -> None:
        if self.get(name) is None:
            self.session.execute(sync_state_table.insert().values(name=name, recorded_at=value))
            return
        self.session.execute(
            update(sync_state_table)
            .where(sync_state_table.c.name == name)
            .values(recorded_at=value)
        )
