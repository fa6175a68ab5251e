"""httpx-backed transport: one request, one response, no retries and no auth."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict

import httpx
from aiolimiter import AsyncLimiter

from repairsync.domain.ports.transport import TransportFailure
from repairsync.domain.requests import TransportResponse

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from httpx._types import TimeoutTypes

    from repairsync.config.api import ApiConfig, RateLimit

log = getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0


class AsyncClientOptions(TypedDict, total=False):
    timeout: TimeoutTypes
    transport: httpx.AsyncBaseTransport


class HttpxTransport:
    def __init__(
        self,
        *,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        ratelimit: RateLimit | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(ratelimit.max_calls, ratelimit.per_seconds) if ratelimit else None
        )

        client_kwargs: AsyncClientOptions = {"timeout": timeout_seconds}
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    @classmethod
    def from_config(
        cls,
        config: ApiConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HttpxTransport:
        return cls(
            timeout_seconds=config.timeout_seconds,
            ratelimit=config.ratelimit,
            transport=transport,
        )

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        async def do_request() -> httpx.Response:
            return await self._client.request(method, url, headers=headers, content=body)

        try:
            response = await self._send(do_request)
        except httpx.TimeoutException as exc:
            log.debug("[%s] %s timed out", method, url)
            raise TransportFailure(f"Request timed out: {exc}", timed_out=True) from exc
        except httpx.DecodingError as exc:
            log.debug("[%s] %s returned an undecodable body: %s", method, url, exc)
            raise TransportFailure(f"Malformed response body: {exc}", malformed=True) from exc
        except httpx.TransportError as exc:
            log.debug("[%s] %s failed: %s", method, url, exc)
            raise TransportFailure(f"Network error: {exc}") from exc
        except httpx.RequestError as exc:
            log.debug("[%s] %s failed: %s", method, url, exc)
            raise TransportFailure(f"Request failed: {exc}") from exc

        log.debug("[%s] %s -> %s", method, url, response.status_code)
        return TransportResponse(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def _send(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        if self._limiter is None:
            return await func()
        async with self._limiter:
            return await func()


if TYPE_CHECKING:
    from repairsync.domain.ports import TransportClient

    _transport_check: TransportClient = HttpxTransport()
