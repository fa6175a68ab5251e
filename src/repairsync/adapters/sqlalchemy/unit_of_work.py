"""Engine lifecycle and the unit of work for the queue database."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal, Self

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from repairsync.adapters.sqlalchemy.migrations import current_revision, upgrade_head
from repairsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyMutationRepository,
    SqlAlchemySyncStateRepository,
)
from repairsync.config.storage import get_database_config

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the queue database is used before ``startup`` or started twice."""


@dataclass(slots=True)
class _Registry:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def install(self, engine: Engine) -> None:
        self.engine = engine
        self.sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def clear(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.sessions = None

    def session_factory(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError("Queue database not started; call startup() first")
        return self.sessions


_REGISTRY = _Registry()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Open the queue database, migrate it to head and prepare sessions.

    A second call raises unless ``force`` is set, in which case the previous
    engine is disposed first.
    """

    if _REGISTRY.engine is not None:
        if not force:
            raise StartupError("Queue database already started; pass force=True to reconfigure")
        _REGISTRY.clear()

    if engine is None:
        config = get_database_config()
        engine = create_engine(database_uri or config.uri, echo=config.echo)
    upgrade_head(engine)
    _REGISTRY.install(engine)
    log.info(
        "Queue database ready at %s (revision %s)",
        engine.url.render_as_string(hide_password=True),
        current_revision(engine),
    )


def configured_engine() -> Engine | None:
    return _REGISTRY.engine


def is_started() -> bool:
    return _REGISTRY.engine is not None


def shutdown() -> None:
    """Dispose the engine; safe to call when nothing was started."""

    _REGISTRY.clear()


class SqlAlchemyUnitOfWork:
    """One session per ``with`` block; callers commit explicitly."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or _REGISTRY.session_factory()
        self._session: Session | None = None
        self._mutations: SqlAlchemyMutationRepository | None = None
        self._sync_state: SqlAlchemySyncStateRepository | None = None

    def __enter__(self) -> Self:
        if self._session is not None:
            raise StartupError("Unit of work is already active")
        self._session = self._session_factory()
        self._mutations = SqlAlchemyMutationRepository(self._session)
        self._sync_state = SqlAlchemySyncStateRepository(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self._active_session()
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._mutations = None
            self._sync_state = None
        return False

    @property
    def mutations(self) -> SqlAlchemyMutationRepository:
        if self._mutations is None:
            raise StartupError("Unit of work is not active")
        return self._mutations

    @property
    def sync_state(self) -> SqlAlchemySyncStateRepository:
        if self._sync_state is None:
            raise StartupError("Unit of work is not active")
        return self._sync_state

    def commit(self) -> None:
        self._active_session().commit()

    def rollback(self) -> None:
        self._active_session().rollback()

    def _active_session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not active")
        return self._session


if TYPE_CHECKING:
    from repairsync.domain.ports import MutationUnitOfWork

    _uow_check: MutationUnitOfWork = SqlAlchemyUnitOfWork()
