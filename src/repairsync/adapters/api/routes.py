"""Mapping of queued mutations onto Repair Minder API endpoints."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING
from urllib.parse import quote

from repairsync.domain.errors import UnroutableMutationError
from repairsync.domain.requests import HttpMethod, RequestSpec

if TYPE_CHECKING:
    from repairsync.domain.mutations import PendingMutation

type RouteBuilder = Callable[[PendingMutation], RequestSpec]


def _payload(mutation: PendingMutation) -> dict[str, object]:
    return dict(mutation.payload) if mutation.payload else {}


def _segment(value: str) -> str:
    # ids are opaque and must stay a single path segment
    if value in {"", ".", ".."}:
        raise UnroutableMutationError(f"{value!r} is not a usable id in a request path")
    return quote(value, safe="")


def order_update(mutation: PendingMutation) -> RequestSpec:
    return RequestSpec(
        path=f"/api/orders/{_segment(mutation.key.entity_id)}",
        method=HttpMethod.PATCH,
        body=_payload(mutation),
    )


def device_update(mutation: PendingMutation) -> RequestSpec:
    return RequestSpec(
        path=f"/api/devices/{_segment(mutation.key.entity_id)}",
        method=HttpMethod.PATCH,
        body=_payload(mutation),
    )


def ticket_message_create(mutation: PendingMutation) -> RequestSpec:
    """Messages are keyed by their local id; the payload names the ticket."""

    body = _payload(mutation)
    ticket_id = body.pop("ticket_id", None)
    if not ticket_id:
        raise UnroutableMutationError(f"{mutation.key} has no ticket_id in its payload")
    return RequestSpec(
        path=f"/api/tickets/{_segment(str(ticket_id))}/messages",
        method=HttpMethod.POST,
        body=body,
    )


DEFAULT_ROUTES: Mapping[str, RouteBuilder] = MappingProxyType(
    {
        "order": order_update,
        "device": device_update,
        "ticket_message": ticket_message_create,
    }
)


@dataclass(slots=True)
class RouteTable:
    routes: dict[str, RouteBuilder] = field(default_factory=dict)

    def register(self, entity_type: str, builder: RouteBuilder) -> None:
        self.routes[entity_type] = builder

    def __call__(self, mutation: PendingMutation) -> RequestSpec:
        builder = self.routes.get(mutation.key.entity_type)
        if builder is None:
            raise UnroutableMutationError(
                f"No API route registered for entity type {mutation.key.entity_type!r}"
            )
        return builder(mutation)


def build_default_router() -> RouteTable:
    return RouteTable(routes=dict(DEFAULT_ROUTES))


if TYPE_CHECKING:
    from repairsync.domain.ports import MutationRouter

    _router_check: MutationRouter = RouteTable()
