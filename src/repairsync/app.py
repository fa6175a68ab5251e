"""Application composition root."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from repairsync.adapters.api import RequestExecutor, build_default_router
from repairsync.adapters.credentials import ApiTokenRefresher, CredentialStore
from repairsync.adapters.http_transport import HttpxTransport
from repairsync.adapters.network import ManualNetworkMonitor, ProbeNetworkMonitor
from repairsync.adapters.sqlalchemy import SqlAlchemyMutationStore, is_started, startup
from repairsync.config import get_api_config, get_credential_config, get_sync_policy
from repairsync.domain.engine import SyncEngine
from repairsync.domain.queue import MutationQueue, utc_now

if TYPE_CHECKING:
    from types import TracebackType

    import httpx

    from repairsync.config import ApiConfig, CredentialConfig, SyncPolicy
    from repairsync.domain.ports import MutationRouter, MutationStore, NetworkMonitor
    from repairsync.domain.queue import Clock

log = getLogger(__name__)


@dataclass(slots=True)
class Application:
    """Every long-lived collaborator, built once and closed together."""

    config: ApiConfig
    transport: HttpxTransport
    credentials: CredentialStore
    network: NetworkMonitor
    executor: RequestExecutor
    queue: MutationQueue
    engine: SyncEngine

    async def __aenter__(self) -> Application:
        if isinstance(self.network, ProbeNetworkMonitor):
            await self.network.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.engine.aclose()
        if isinstance(self.network, ProbeNetworkMonitor):
            await self.network.aclose()
        await self.transport.aclose()


def build_application(
    *,
    config: ApiConfig | None = None,
    policy: SyncPolicy | None = None,
    credential_config: CredentialConfig | None = None,
    store: MutationStore | None = None,
    network: NetworkMonitor | None = None,
    router: MutationRouter | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
    probe_network: bool = False,
    clock: Clock = utc_now,
) -> Application:
    """Wire the request executor, durable queue and sync engine.

    Anything not passed explicitly is read from the environment. Without a
    ``store`` the SQLAlchemy adapter is started (running migrations) unless it
    already is.
    """

    effective_config = config or get_api_config()
    effective_policy = policy or get_sync_policy()
    effective_credentials = credential_config or get_credential_config()

    if store is None:
        if not is_started():
            startup()
        store = SqlAlchemyMutationStore()

    if network is None:
        network = (
            ProbeNetworkMonitor(effective_config.base_url)
            if probe_network
            else ManualNetworkMonitor()
        )

    transport = HttpxTransport.from_config(effective_config, transport=http_transport)
    credentials = CredentialStore(
        access_token=effective_credentials.access_token,
        refresh_token=effective_credentials.refresh_token,
    )
    executor = RequestExecutor(
        base_url=effective_config.base_url,
        transport=transport,
        credentials=credentials,
        network=network,
        timeout_seconds=effective_policy.request_timeout_seconds,
        default_headers=effective_config.default_headers(),
    )
    credentials.set_refresher(ApiTokenRefresher(executor))

    queue = MutationQueue(store, policy=effective_policy, clock=clock)
    engine = SyncEngine(
        queue=queue,
        sender=executor,
        router=router or build_default_router(),
        network=network,
        credentials=credentials,
        policy=effective_policy,
        clock=clock,
    )
    log.debug(
        "Built application for %s (%d queued, %d dead-lettered)",
        effective_config.base_url,
        queue.count,
        queue.failed_count,
    )
    return Application(
        config=effective_config,
        transport=transport,
        credentials=credentials,
        network=network,
        executor=executor,
        queue=queue,
        engine=engine,
    )
