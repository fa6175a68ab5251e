from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from repairsync.adapters.api import RequestExecutor, TokenPair
from repairsync.adapters.http_transport import HttpxTransport
from repairsync.config.api import ApiConfig, RateLimit
from repairsync.domain.errors import TransportError
from repairsync.domain.ports import TransportFailure
from repairsync.domain.requests import HttpMethod, RequestSpec


def test_execute_returns_status_body_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"ok": True}, headers={"X-Request-Id": "abc"})

    async def scenario() -> None:
        async with HttpxTransport(transport=httpx.MockTransport(handler)) as transport:
            response = await transport.execute(
                "POST",
                "https://api.example.test/api/tickets/3/messages",
                {"Content-Type": "application/json"},
                b'{"body":"Ready for collection"}',
            )
            assert response.status_code == 201
            assert json.loads(response.body) == {"ok": True}
            assert response.header("x-request-id") == "abc"

    asyncio.run(scenario())

    (request,) = seen
    assert request.method == "POST"
    assert request.content == b'{"body":"Ready for collection"}'


def test_connection_errors_become_transport_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario() -> None:
        async with HttpxTransport(transport=httpx.MockTransport(handler)) as transport:
            await transport.execute("GET", "https://api.example.test/api/orders", {})

    with pytest.raises(TransportFailure) as excinfo:
        asyncio.run(scenario())

    assert not excinfo.value.timed_out


def test_timeouts_are_flagged() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    async def scenario() -> None:
        async with HttpxTransport(transport=httpx.MockTransport(handler)) as transport:
            await transport.execute("GET", "https://api.example.test/api/orders", {})

    with pytest.raises(TransportFailure) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.timed_out


def test_undecodable_bodies_are_flagged_as_malformed() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")

    async def scenario() -> None:
        async with HttpxTransport(transport=httpx.MockTransport(handler)) as transport:
            await transport.execute("PATCH", "https://api.example.test/api/orders/1", {})

    with pytest.raises(TransportFailure) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.malformed
    assert not excinfo.value.timed_out


def test_other_request_errors_become_transport_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

    async def scenario() -> None:
        async with HttpxTransport(transport=httpx.MockTransport(handler)) as transport:
            await transport.execute("GET", "https://api.example.test/api/orders", {})

    with pytest.raises(TransportFailure, match="redirects") as excinfo:
        asyncio.run(scenario())

    assert not excinfo.value.malformed


def test_non_success_statuses_are_returned_not_raised() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    async def scenario() -> int:
        async with HttpxTransport(
            transport=httpx.MockTransport(handler),
            ratelimit=RateLimit(max_calls=5, per_seconds=1),
        ) as transport:
            response = await transport.execute("GET", "https://api.example.test/x", {})
            return response.status_code

    assert asyncio.run(scenario()) == 500


def test_executor_over_httpx_transport_end_to_end() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/auth/refresh"
        assert "authorization" not in request.headers
        assert request.headers["user-agent"] == "RepairMinder-Python/1.0"
        return httpx.Response(
            200,
            json={"success": True, "data": {"token": "new-access", "refresh_token": "new-refresh"}},
        )

    config = ApiConfig(base_url="https://api.example.test")

    async def scenario() -> TokenPair:
        async with HttpxTransport.from_config(
            config, transport=httpx.MockTransport(handler)
        ) as transport:
            executor = RequestExecutor.from_config(config, transport=transport)
            spec = RequestSpec(
                path="/api/auth/refresh",
                method=HttpMethod.POST,
                body={"refresh_token": "old"},
                authenticated=False,
            )
            return await executor.request_data(spec, TokenPair)

    pair = asyncio.run(scenario())

    assert pair.access_token == "new-access"
    assert pair.refresh_token == "new-refresh"


def test_executor_maps_httpx_failures_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    config = ApiConfig(base_url="https://api.example.test")

    async def scenario() -> None:
        async with HttpxTransport.from_config(
            config, transport=httpx.MockTransport(handler)
        ) as transport:
            executor = RequestExecutor.from_config(config, transport=transport)
            await executor.request_void(RequestSpec(path="/api/orders"))

    with pytest.raises(TransportError, match="no route to host"):
        asyncio.run(scenario())
