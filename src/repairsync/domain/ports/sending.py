"""Port through which the sync engine sends queued mutations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from repairsync.domain.requests import RequestSpec


@runtime_checkable
class RequestSender(Protocol):
    """Performs a command request and raises ``RequestError`` on failure."""

    async def request_void(self, spec: RequestSpec) -> None: ...
