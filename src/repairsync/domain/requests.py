"""Logical request descriptions handed to ``RequestExecutor``."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """Method, path, query and optional JSON body of one API call.

    ``authenticated=False`` suppresses the ``Authorization`` header even when a
    credential is present (token refresh, magic-link requests).
    """

    path: str
    method: HttpMethod = HttpMethod.GET
    query: Mapping[str, str] | None = None
    body: object | None = None
    authenticated: bool = True


@dataclass(frozen=True, slots=True)
class TransportResponse:
    status_code: int
    body: bytes = b""
    headers: Mapping[str, str] | None = None

    def header(self, name: str) -> str | None:
        if not self.headers:
            return None
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None
