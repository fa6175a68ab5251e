"""Port translating a queued mutation into an API request."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from repairsync.domain.mutations import PendingMutation
    from repairsync.domain.requests import RequestSpec


@runtime_checkable
class MutationRouter(Protocol):
    def __call__(self, mutation: PendingMutation) -> RequestSpec: ...
