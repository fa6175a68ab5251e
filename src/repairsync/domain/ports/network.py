"""Port for process-wide reachability."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

type ReachabilityCallback = Callable[[bool], None]
type Unsubscribe = Callable[[], None]


@runtime_checkable
class NetworkMonitor(Protocol):
    def is_reachable(self) -> bool: ...

    def subscribe(self, callback: ReachabilityCallback) -> Unsubscribe:
        """Invoke ``callback`` with the new value on every reachability change."""
        ...
