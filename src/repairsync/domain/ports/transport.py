"""Port for a single HTTP exchange, with no retry or auth of its own."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from repairsync.domain.requests import TransportResponse


class TransportFailure(Exception):
    """Raised by transports when no usable HTTP response was received.

    ``malformed`` marks a response that arrived but whose body could not be
    decoded, e.g. a broken ``Content-Encoding``.
    """

    def __init__(self, message: str, *, timed_out: bool = False, malformed: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out
        self.malformed = malformed


@runtime_checkable
class TransportClient(Protocol):
    async def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> TransportResponse: ...
