"""In-process credential store with single-flight token refresh."""

from __future__ import annotations

import asyncio
import contextlib
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from repairsync.adapters.api.schema import TokenPair
from repairsync.domain.errors import ApiResponseError, RequestError, UnauthorizedError
from repairsync.domain.requests import HttpMethod, RequestSpec

if TYPE_CHECKING:
    from repairsync.adapters.api.executor import RequestExecutor

log = getLogger(__name__)

type TokenRefresher = Callable[[str], Awaitable[TokenPair]]
type RefreshListener = Callable[[str], None]

REFRESH_PATH = "/api/auth/refresh"


class CredentialStore:
    """Holds the current access/refresh token pair.

    Reads and swaps go through a lock, so a reader sees either the old pair or
    the new pair and never a mix. ``refresh`` is single-flight: concurrent callers
    share one refresh round trip.
    """

    def __init__(
        self,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
        refresher: TokenRefresher | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._refresher = refresher
        self._refresh_lock = asyncio.Lock()
        self._listeners: list[RefreshListener] = []

    def current_token(self) -> str | None:
        with self._lock:
            return self._access_token

    @property
    def refresh_token(self) -> str | None:
        with self._lock:
            return self._refresh_token

    @property
    def is_authenticated(self) -> bool:
        return self.current_token() is not None

    def set_tokens(self, access_token: str, refresh_token: str | None = None) -> None:
        with self._lock:
            self._access_token = access_token
            if refresh_token is not None:
                self._refresh_token = refresh_token

    def clear(self) -> None:
        with self._lock:
            self._access_token = None
            self._refresh_token = None

    def set_refresher(self, refresher: TokenRefresher | None) -> None:
        self._refresher = refresher

    def on_refreshed(self, listener: RefreshListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> bool:
        stale_token = self.current_token()
        async with self._refresh_lock:
            current = self.current_token()
            if current is not None and current != stale_token:
                return True

            refresh_token = self.refresh_token
            if refresh_token is None or self._refresher is None:
                log.info("Cannot refresh credentials: no refresh token or refresher")
                return False

            try:
                pair = await self._refresher(refresh_token)
            except (UnauthorizedError, ApiResponseError) as exc:
                log.warning("Refresh token rejected, clearing credentials: %s", exc)
                self.clear()
                return False
            except RequestError as exc:
                log.warning("Credential refresh failed: %s", exc)
                return False

            self.set_tokens(pair.access_token, pair.refresh_token)
            log.info("Credentials refreshed")
            for listener in tuple(self._listeners):
                listener(pair.access_token)
            return True


@dataclass(slots=True)
class ApiTokenRefresher:
    """Exchanges a refresh token for a new pair via ``POST /api/auth/refresh``."""

    executor: RequestExecutor
    path: str = REFRESH_PATH

    async def __call__(self, refresh_token: str) -> TokenPair:
        spec = RequestSpec(
            path=self.path,
            method=HttpMethod.POST,
            body={"refresh_token": refresh_token},
            authenticated=False,
        )
        return await self.executor.request_data(spec, TokenPair)


if TYPE_CHECKING:
    from repairsync.domain.ports import CredentialProvider

    _credentials_check: CredentialProvider = CredentialStore()
