"""Ports consumed by the sync and request engine."""

from __future__ import annotations

from .credentials import CredentialProvider
from .network import NetworkMonitor, ReachabilityCallback, Unsubscribe
from .persistence import (
    MutationRepository,
    MutationStore,
    MutationUnitOfWork,
    SyncStateRepository,
)
from .routing import MutationRouter
from .sending import RequestSender
from .transport import TransportClient, TransportFailure

__all__ = [
    "CredentialProvider",
    "MutationRepository",
    "MutationRouter",
    "MutationStore",
    "MutationUnitOfWork",
    "NetworkMonitor",
    "ReachabilityCallback",
    "RequestSender",
    "SyncStateRepository",
    "TransportClient",
    "TransportFailure",
    "Unsubscribe",
]
