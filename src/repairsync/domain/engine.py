"""Background sync engine draining the mutation queue against the API."""

from __future__ import annotations

import asyncio
import contextlib
from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from repairsync.config.sync import SyncPolicy
from repairsync.domain.errors import (
    DecodingError,
    EncodingError,
    RateLimitedError,
    RequestError,
    UnauthorizedError,
    UnroutableMutationError,
)
from repairsync.domain.mutations import EntityKey, PendingMutation
from repairsync.domain.queue import utc_now
from repairsync.domain.status import (
    COMPLETED,
    IDLE,
    OFFLINE,
    Completed,
    Errored,
    Offline,
    Syncing,
    SyncStatus,
    is_in_progress,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from types import TracebackType

    from repairsync.domain.mutations import JSONObject
    from repairsync.domain.ports import (
        CredentialProvider,
        MutationRouter,
        NetworkMonitor,
        RequestSender,
        Unsubscribe,
    )
    from repairsync.domain.queue import Clock, MutationQueue
    from repairsync.domain.requests import RequestSpec

log = getLogger(__name__)


class Outcome(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class SyncSnapshot:
    """What observers see after every status or count change."""

    status: SyncStatus
    pending_count: int
    failed_count: int
    last_synced_at: datetime | None


type StatusListener = Callable[[SyncSnapshot], None]


@dataclass(slots=True)
class PassResult:
    reason: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    dead_lettered: int = 0
    skipped: int = 0
    preempted: bool = False
    last_error: str | None = None

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.dead_lettered + self.skipped

    @property
    def ok(self) -> bool:
        return not self.preempted and self.processed == self.succeeded

    def record(self, outcome: Outcome, error: str | None = None) -> None:
        match outcome:
            case Outcome.SUCCEEDED:
                self.succeeded += 1
            case Outcome.FAILED:
                self.failed += 1
            case Outcome.DEAD_LETTERED:
                self.dead_lettered += 1
            case Outcome.SKIPPED:
                self.skipped += 1
        if error is not None:
            self.last_error = error


@dataclass(slots=True)
class _PassState:
    refresh_attempted: bool = False
    preempted: bool = False


class SyncEngine:
    """Drains the mutation queue whenever connectivity and triggers allow.

    At most one pass runs at a time; triggers that arrive mid-pass are folded
    into a single follow-up pass. Within a pass, at most
    ``policy.max_concurrency`` requests are in flight and never two for the
    same entity key.
    """

    def __init__(
        self,
        *,
        queue: MutationQueue,
        sender: RequestSender,
        router: MutationRouter,
        network: NetworkMonitor,
        credentials: CredentialProvider | None = None,
        policy: SyncPolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.queue = queue
        self.policy = policy or queue.policy
        self._sender = sender
        self._router = router
        self._network = network
        self._credentials = credentials
        self._clock = clock

        self._status: SyncStatus = IDLE if network.is_reachable() else OFFLINE
        self._listeners: list[StatusListener] = []

        self._loop: asyncio.AbstractEventLoop | None = None
        self._pass_task: asyncio.Task[PassResult] | None = None
        self._pass_state = _PassState()
        self._rerun_requested = False
        self._auth_gate = asyncio.Event()
        self._auth_gate.set()
        self._background: set[asyncio.Task[None]] = set()
        self._periodic_task: asyncio.Task[None] | None = None
        self._unsubscribe_network: Unsubscribe | None = None
        self._suspended = False
        self._closed = False

    # observation ---------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def pending_count(self) -> int:
        return self.queue.count

    @property
    def failed_count(self) -> int:
        return self.queue.failed_count

    @property
    def last_synced_at(self) -> datetime | None:
        return self.queue.last_synced_at

    @property
    def is_syncing(self) -> bool:
        return self._pass_task is not None and not self._pass_task.done()

    def snapshot(self) -> SyncSnapshot:
        return SyncSnapshot(
            status=self._status,
            pending_count=self.pending_count,
            failed_count=self.failed_count,
            last_synced_at=self.last_synced_at,
        )

    def subscribe(self, listener: StatusListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    # lifecycle -----------------------------------------------------------

    async def __aenter__(self) -> SyncEngine:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def start(self) -> None:
        """Subscribe to reachability, arm the periodic timer and run a first pass."""

        if self._closed:
            raise RuntimeError("SyncEngine has been closed")
        self._loop = asyncio.get_running_loop()
        self._suspended = False
        if self._unsubscribe_network is None:
            self._unsubscribe_network = self._network.subscribe(self._on_reachability)
        if self._periodic_task is None:
            self._periodic_task = asyncio.create_task(
                self._run_periodic(), name="repairsync-sync-timer"
            )
        self.request_sync("startup")

    async def on_foreground(self) -> None:
        """Host app returned to the foreground: resume the timer and sync."""

        await self.start()

    async def suspend(self) -> None:
        """Stop the timer and cancel the running pass; the queue is untouched.

        No pass starts again until ``start`` or ``on_foreground``, whatever the
        trigger. Reachability changes still update the status.
        """

        self._suspended = True
        tasks: list[asyncio.Task[Any]] = []
        if self._periodic_task is not None:
            tasks.append(self._periodic_task)
            self._periodic_task = None
        if self._pass_task is not None and not self._pass_task.done():
            tasks.append(self._pass_task)
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._background.clear()
        self._pass_task = None
        self._rerun_requested = False
        self._auth_gate.set()
        if not self._network.is_reachable():
            self._set_status(OFFLINE)
        elif is_in_progress(self._status):
            self._set_status(IDLE)
        log.debug("Sync engine suspended")

    async def aclose(self) -> None:
        if self._closed:
            return
        await self.suspend()
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None
        self._closed = True

    # commands ------------------------------------------------------------

    async def enqueue(
        self,
        key: EntityKey | str,
        kind: str,
        payload: JSONObject | None = None,
    ) -> int:
        """Persist a local write and trigger a pass. Returns the pending count."""

        entity_key = EntityKey.coerce(key)
        mutation = PendingMutation(
            key=entity_key,
            kind=kind,
            enqueued_at=self._clock(),
            payload=payload,
        )
        count = self.queue.enqueue(mutation)
        log.debug("Enqueued %s (%s); %d pending", entity_key, kind, count)
        self._notify()
        self.request_sync("enqueue")
        return count

    async def sync_now(self, reason: str = "manual") -> PassResult | None:
        """Trigger a pass and wait for it. Returns ``None`` if none could start."""

        task = self.request_sync(reason)
        if task is None:
            return None
        return await asyncio.shield(task)

    def request_sync(self, reason: str) -> asyncio.Task[PassResult] | None:
        """Start a pass unless one is running, the device is offline or nothing is due."""

        if self._closed:
            return None
        if self._suspended:
            log.debug("Sync suspended; ignoring %s trigger", reason)
            return None
        if self._pass_task is not None and not self._pass_task.done():
            self._rerun_requested = True
            log.debug("Sync already running; coalescing %s trigger", reason)
            return self._pass_task
        if not self._network.is_reachable():
            self._set_status(OFFLINE)
            return None
        if isinstance(self._status, Offline):
            self._set_status(IDLE)
        if not self.queue.due(self._clock()):
            self._clear_stale_error()
            return None

        self._loop = self._loop or asyncio.get_running_loop()
        self._rerun_requested = False
        task = asyncio.create_task(self._run_pass(reason), name=f"repairsync-sync-{reason}")
        task.add_done_callback(self._after_pass)
        self._pass_task = task
        return task

    def dead_letters(self) -> list[PendingMutation]:
        return self.queue.dead_letters()

    async def retry_dead_letter(self, key: EntityKey | str) -> bool:
        revived = self.queue.revive(EntityKey.coerce(key))
        if revived is None:
            return False
        log.info("Retrying dead-lettered %s", revived.key)
        self._notify()
        self.request_sync("retry")
        return True

    async def discard(self, key: EntityKey | str) -> bool:
        removed = self.queue.remove(EntityKey.coerce(key))
        if removed:
            log.info("Discarded %s", key)
            if not self.is_syncing:
                self._clear_stale_error()
            self._notify()
        return removed

    # pass ----------------------------------------------------------------

    async def _run_pass(self, reason: str) -> PassResult:
        snapshot = self.queue.due(self._clock())
        result = PassResult(reason=reason, total=len(snapshot))
        self._pass_state = _PassState()
        log.info("Sync pass started (%s): %d mutation(s)", reason, result.total)
        self._set_status(Syncing(0.0))

        semaphore = asyncio.Semaphore(self.policy.max_concurrency)
        key_locks: defaultdict[EntityKey, asyncio.Lock] = defaultdict(asyncio.Lock)

        async def worker(mutation: PendingMutation) -> None:
            async with key_locks[mutation.key], semaphore:
                try:
                    outcome, error = await self._process(mutation)
                except Exception as exc:
                    log.exception("Unexpected failure syncing %s", mutation.key)
                    outcome, error = self._fail(mutation, exc)
            result.record(outcome, error)
            if not self._pass_state.preempted:
                self._set_status(Syncing(min(1.0, result.processed / result.total)))

        try:
            async with asyncio.TaskGroup() as group:
                for mutation in snapshot:
                    group.create_task(worker(mutation))
        except ExceptionGroup as group_error:
            failure = group_error.exceptions[0]
            log.exception("Sync pass aborted", exc_info=failure)
            result.last_error = str(failure) or type(failure).__name__
            self._set_status(Errored(result.last_error))
            return result

        result.preempted = self._pass_state.preempted
        self._finish_pass(result)
        return result

    async def _process(self, mutation: PendingMutation) -> tuple[Outcome, str | None]:
        if self._pass_state.preempted or not self._network.is_reachable():
            self._pass_state.preempted = True
            return Outcome.SKIPPED, None

        try:
            spec = self._router(mutation)
        except UnroutableMutationError as exc:
            return self._dead_letter(mutation, exc)

        await self._auth_gate.wait()
        try:
            await self._sender.request_void(spec)
        except UnauthorizedError as exc:
            return await self._recover_unauthorized(mutation, spec, exc)
        except RequestError as exc:
            return self._classify_failure(mutation, exc)

        self.queue.remove(mutation.key, sequence=mutation.sequence)
        log.debug("Synced %s", mutation.key)
        return Outcome.SUCCEEDED, None

    async def _recover_unauthorized(
        self,
        mutation: PendingMutation,
        spec: RequestSpec,
        error: UnauthorizedError,
    ) -> tuple[Outcome, str | None]:
        if self._credentials is None or self._pass_state.refresh_attempted:
            return self._fail(mutation, error)

        self._pass_state.refresh_attempted = True
        self._auth_gate.clear()
        try:
            refreshed = await self._credentials.refresh()
        finally:
            self._auth_gate.set()

        if not refreshed:
            log.warning("Credential refresh failed; %s needs attention", mutation.key)
            return self._dead_letter(mutation, error)

        try:
            await self._sender.request_void(spec)
        except UnauthorizedError as exc:
            return self._dead_letter(mutation, exc)
        except RequestError as exc:
            return self._classify_failure(mutation, exc)

        self.queue.remove(mutation.key, sequence=mutation.sequence)
        log.debug("Synced %s after credential refresh", mutation.key)
        return Outcome.SUCCEEDED, None

    def _classify_failure(
        self, mutation: PendingMutation, error: RequestError
    ) -> tuple[Outcome, str | None]:
        if isinstance(error, DecodingError | EncodingError):
            return self._dead_letter(mutation, error)
        return self._fail(mutation, error)

    def _fail(self, mutation: PendingMutation, error: Exception) -> tuple[Outcome, str | None]:
        retry_after = error.retry_after if isinstance(error, RateLimitedError) else None
        updated = self.queue.record_failure(
            mutation.key,
            error=str(error),
            retry_after=retry_after,
            sequence=mutation.sequence,
        )
        log.warning("Sync of %s failed: %s", mutation.key, error)
        if updated is not None and updated.is_dead_lettered:
            return Outcome.DEAD_LETTERED, str(error)
        return Outcome.FAILED, str(error)

    def _dead_letter(
        self, mutation: PendingMutation, error: Exception
    ) -> tuple[Outcome, str | None]:
        self.queue.dead_letter(mutation.key, error=str(error), sequence=mutation.sequence)
        return Outcome.DEAD_LETTERED, str(error)

    def _finish_pass(self, result: PassResult) -> None:
        log.info(
            "Sync pass finished (%s): %d succeeded, %d failed, %d dead-lettered, %d skipped",
            result.reason,
            result.succeeded,
            result.failed,
            result.dead_lettered,
            result.skipped,
        )
        if not self._network.is_reachable():
            self._set_status(OFFLINE)
            return
        if result.ok:
            self.queue.mark_synced(self._clock())
            self._set_status(COMPLETED)
            self._schedule_completed_reset()
            return
        if result.preempted and not (result.failed or result.dead_lettered):
            # connectivity came back before the pass wound down; the rerun follows
            self._set_status(IDLE)
            return
        self._set_status(Errored(_failure_message(result)))

    def _clear_stale_error(self) -> None:
        queue = self.queue
        if isinstance(self._status, Errored) and not queue.count and not queue.failed_count:
            self._set_status(IDLE)

    def _after_pass(self, task: asyncio.Task[PassResult]) -> None:
        if task is self._pass_task:
            self._pass_task = None
        if task.cancelled() or self._closed:
            return
        if self._rerun_requested:
            self._rerun_requested = False
            self.request_sync("coalesced")

    def _schedule_completed_reset(self) -> None:
        delay = self.policy.completed_reset_seconds
        if delay <= 0:
            self._set_status(IDLE)
            return

        async def reset() -> None:
            await asyncio.sleep(delay)
            if isinstance(self._status, Completed):
                self._set_status(IDLE)

        task = asyncio.create_task(reset(), name="repairsync-status-reset")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.policy.periodic_interval_seconds)
            self.request_sync("timer")

    # reachability --------------------------------------------------------

    def _on_reachability(self, reachable: bool) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is not None and running is not self._loop:
            self._loop.call_soon_threadsafe(self._handle_reachability, reachable)
            return
        self._handle_reachability(reachable)

    def _handle_reachability(self, reachable: bool) -> None:
        if self._closed:
            return
        if not reachable:
            if self.is_syncing:
                log.info("Network lost; finishing in-flight requests only")
                self._pass_state.preempted = True
            self._set_status(OFFLINE)
            return
        if isinstance(self._status, Offline):
            self._set_status(IDLE)
        self.request_sync("reconnect")

    # status --------------------------------------------------------------

    def _set_status(self, status: SyncStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in tuple(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                log.exception("Sync status listener %r failed", listener)


def _failure_message(result: PassResult) -> str:
    count = result.failed + result.dead_lettered
    noun = "change" if count == 1 else "changes"
    message = f"{count} {noun} failed to sync"
    if result.dead_lettered:
        message += f" ({result.dead_lettered} need attention)"
    if result.last_error:
        message += f": {result.last_error}"
    return message
