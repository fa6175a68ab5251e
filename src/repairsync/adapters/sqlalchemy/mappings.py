"""SQLAlchemy table metadata for the persistent mutation queue."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from repairsync.domain.mutations import MutationState


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

pending_mutation_table = Table(
    "pending_mutation",
    metadata,
    Column("entity_type", String(64), primary_key=True),
    Column("entity_id", String(255), primary_key=True),
    Column("kind", String(128), nullable=False),
    Column("payload", JSON, nullable=True),
    Column("enqueued_at", UTCDateTime(), nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column(
        "state",
        Enum(MutationState, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MutationState.PENDING,
    ),
    Column("last_error", Text, nullable=True),
    Column("next_attempt_at", UTCDateTime(), nullable=True),
    Column("sequence", Integer, nullable=False, index=True),
)


sync_state_table = Table(
    "sync_state",
    metadata,
    Column("name", String(64), primary_key=True),
    Column("recorded_at", UTCDateTime(), nullable=False),
)
