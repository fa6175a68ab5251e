"""Network reachability monitors."""

from __future__ import annotations

import asyncio
import contextlib
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from types import TracebackType

    from repairsync.domain.ports.network import ReachabilityCallback, Unsubscribe

log = getLogger(__name__)

_DEFAULT_PROBE_INTERVAL_SECONDS = 15.0
_DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0


class _ReachabilityBroadcaster:
    def __init__(self, *, reachable: bool) -> None:
        self._reachable = reachable
        self._callbacks: list[ReachabilityCallback] = []

    def is_reachable(self) -> bool:
        return self._reachable

    def subscribe(self, callback: ReachabilityCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._callbacks.remove(callback)

        return unsubscribe

    def _publish(self, reachable: bool) -> None:
        if reachable == self._reachable:
            return
        self._reachable = reachable
        log.info("Network %s", "reachable" if reachable else "unreachable")
        for callback in tuple(self._callbacks):
            try:
                callback(reachable)
            except Exception:
                log.exception("Reachability subscriber %r failed", callback)


class ManualNetworkMonitor(_ReachabilityBroadcaster):
    """Reachability driven by the host (OS hooks, tests, embedding apps)."""

    def __init__(self, *, reachable: bool = True) -> None:
        super().__init__(reachable=reachable)

    def set_reachable(self, reachable: bool) -> None:
        self._publish(reachable)


class ProbeNetworkMonitor(_ReachabilityBroadcaster):
    """Polls ``probe_url`` and treats any HTTP response as reachable."""

    def __init__(
        self,
        probe_url: str,
        *,
        interval_seconds: float = _DEFAULT_PROBE_INTERVAL_SECONDS,
        timeout_seconds: float = _DEFAULT_PROBE_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        reachable: bool = True,
    ) -> None:
        super().__init__(reachable=reachable)
        self.probe_url = probe_url
        self.interval_seconds = interval_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> ProbeNetworkMonitor:
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
        await self.probe()
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="repairsync-network-probe")

    async def aclose(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._client.aclose()

    async def probe(self) -> bool:
        try:
            await self._client.head(self.probe_url)
        except httpx.TransportError as exc:
            log.debug("Reachability probe failed: %s", exc)
            self._publish(False)
        else:
            self._publish(True)
        return self.is_reachable()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.probe()
