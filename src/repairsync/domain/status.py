"""Observable sync status values.

Exactly one of these is current at a time; ``SyncEngine`` is the only writer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True, slots=True)
class Idle:
    kind: ClassVar[str] = "idle"
    label: ClassVar[str] = "Up to date"


@dataclass(frozen=True, slots=True)
class Syncing:
    kind: ClassVar[str] = "syncing"
    label: ClassVar[str] = "Syncing..."

    progress: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.progress <= 1.0:
            raise ValueError(f"Sync progress must be within [0, 1], got {self.progress}")


@dataclass(frozen=True, slots=True)
class Completed:
    kind: ClassVar[str] = "completed"
    label: ClassVar[str] = "Sync complete"


@dataclass(frozen=True, slots=True)
class Errored:
    kind: ClassVar[str] = "error"
    label: ClassVar[str] = "Sync failed"

    message: str


@dataclass(frozen=True, slots=True)
class Offline:
    kind: ClassVar[str] = "offline"
    label: ClassVar[str] = "Offline"


type SyncStatus = Idle | Syncing | Completed | Errored | Offline

IDLE = Idle()
COMPLETED = Completed()
OFFLINE = Offline()


def is_in_progress(status: SyncStatus) -> bool:
    return isinstance(status, Syncing)
