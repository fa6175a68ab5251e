"""Authenticated, classified request execution against the Repair Minder API."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from functools import cache
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from repairsync.domain.errors import (
    ApiResponseError,
    ClientError,
    DecodingError,
    EncodingError,
    OfflineError,
    RateLimitedError,
    ServerError,
    TransportError,
    UnauthorizedError,
)
from repairsync.domain.ports.transport import TransportFailure

from .schema import ApiResponse, ErrorBody

if TYPE_CHECKING:
    from collections.abc import Mapping

    from repairsync.config.api import ApiConfig
    from repairsync.domain.ports import CredentialProvider, NetworkMonitor, TransportClient
    from repairsync.domain.requests import RequestSpec, TransportResponse

_DEFAULT_TIMEOUT_SECONDS = 30.0


@cache
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


class RequestExecutor:
    """Turns a ``RequestSpec`` into a decoded value or a ``RequestError``.

    The executor reads the credential fresh for every request, fails fast with
    ``OfflineError`` when the network monitor reports no reachability, and never
    retries, caches or logs. Retrying is the sync engine's job.
    """

    def __init__(
        self,
        *,
        base_url: str,
        transport: TransportClient,
        credentials: CredentialProvider | None = None,
        network: NetworkMonitor | None = None,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        default_headers: Mapping[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._credentials = credentials
        self._network = network
        self._timeout_seconds = timeout_seconds
        self._default_headers = dict(default_headers) if default_headers else {}

    @classmethod
    def from_config(
        cls,
        config: ApiConfig,
        *,
        transport: TransportClient,
        credentials: CredentialProvider | None = None,
        network: NetworkMonitor | None = None,
    ) -> RequestExecutor:
        return cls(
            base_url=config.base_url,
            transport=transport,
            credentials=credentials,
            network=network,
            timeout_seconds=config.timeout_seconds,
            default_headers=config.default_headers(),
        )

    async def request[T](self, spec: RequestSpec, response_type: type[T]) -> T:
        """Perform ``spec`` and decode the body directly into ``response_type``."""

        response = await self._exchange(spec)
        return _decode(response.body, response_type)

    async def request_data[T](self, spec: RequestSpec, data_type: type[T]) -> T:
        """Perform ``spec`` and unwrap the ``{success, data}`` envelope."""

        response = await self._exchange(spec)
        envelope = _decode(response.body, ApiResponse[data_type])
        if not envelope.success or envelope.data is None:
            raise ApiResponseError(envelope.error or envelope.message)
        return envelope.data

    async def request_void(self, spec: RequestSpec) -> None:
        """Perform ``spec`` and discard any successful body."""

        await self._exchange(spec)

    async def _exchange(self, spec: RequestSpec) -> TransportResponse:
        if self._network is not None and not self._network.is_reachable():
            raise OfflineError()

        url = self._build_url(spec.path, spec.query)
        body = _encode(spec.body)
        headers = dict(self._default_headers)
        if spec.authenticated and self._credentials is not None:
            token = self._credentials.current_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            async with asyncio.timeout(self._timeout_seconds):
                response = await self._transport.execute(str(spec.method), url, headers, body)
        except TimeoutError as exc:
            raise TransportError(f"Request timed out after {self._timeout_seconds:g}s") from exc
        except TransportFailure as exc:
            if exc.malformed:
                raise DecodingError(f"Failed to decode response: {exc}") from exc
            raise TransportError(str(exc)) from exc

        _raise_for_status(response)
        return response

    def _build_url(self, path: str, query: Mapping[str, str] | None) -> str:
        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.base_url}/{path.lstrip('/')}"
        if query:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(dict(query))}"
        return url


def _raise_for_status(response: TransportResponse) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    if status in (401, 403):
        raise UnauthorizedError(status)
    if status == 429:
        raise RateLimitedError(_parse_retry_after(response.header("Retry-After")))
    if 500 <= status < 600:
        raise ServerError(status, _error_detail(response.body))
    raise ClientError(status, _error_detail(response.body))


def _parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Seconds to wait, from either delta-seconds or an HTTP-date.

    A date already in the past means "retry now"; unparseable values are ignored.
    """

    if value is None:
        return None
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        try:
            when = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        return max(0.0, (when - (now or datetime.now(tz=UTC))).total_seconds())
    return seconds if seconds >= 0 else None


def _error_detail(body: bytes) -> str | None:
    if not body:
        return None
    try:
        return ErrorBody.model_validate_json(body).detail
    except ValidationError:
        return None


def _encode(body: object | None) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    try:
        return to_json(body)
    except PydanticSerializationError as exc:
        raise EncodingError(f"Failed to encode request: {exc}") from exc


def _decode[T](body: bytes, response_type: type[T]) -> T:
    try:
        return _adapter(response_type).validate_json(body or b"null")
    except ValidationError as exc:
        raise DecodingError(f"Failed to decode response: {exc}") from exc
