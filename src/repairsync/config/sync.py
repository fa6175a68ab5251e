"""Retry, backoff and scheduling policy for the sync engine."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int
from .errors import ConfigurationError

DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE_SECONDS = 2.0
DEFAULT_BACKOFF_CAP_SECONDS = 60.0
DEFAULT_PERIODIC_INTERVAL_SECONDS = 30.0
DEFAULT_COMPLETED_RESET_SECONDS = 2.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class SyncPolicy:
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS
    backoff_cap_seconds: float = DEFAULT_BACKOFF_CAP_SECONDS
    periodic_interval_seconds: float = DEFAULT_PERIODIC_INTERVAL_SECONDS
    completed_reset_seconds: float = DEFAULT_COMPLETED_RESET_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_cap_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_cap_seconds must not be below backoff_base_seconds")

    def backoff_seconds(self, attempts: int) -> float:
        """Delay before a key that has failed ``attempts`` times is tried again."""

        if attempts <= 0:
            return 0.0
        delay = self.backoff_base_seconds * (2 ** (attempts - 1))
        return min(self.backoff_cap_seconds, delay)


def get_sync_policy() -> SyncPolicy:
    prefix = "REPAIRSYNC_SYNC_"
    try:
        return _build_policy(prefix)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _build_policy(prefix: str) -> SyncPolicy:
    return SyncPolicy(
        max_concurrency=env_int(f"{prefix}MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, minimum=1),
        max_attempts=env_int(f"{prefix}MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, minimum=1),
        backoff_base_seconds=env_float(
            f"{prefix}BACKOFF_BASE_SECONDS", DEFAULT_BACKOFF_BASE_SECONDS
        ),
        backoff_cap_seconds=env_float(f"{prefix}BACKOFF_CAP_SECONDS", DEFAULT_BACKOFF_CAP_SECONDS),
        periodic_interval_seconds=env_float(
            f"{prefix}PERIODIC_INTERVAL_SECONDS", DEFAULT_PERIODIC_INTERVAL_SECONDS, minimum=0.1
        ),
        completed_reset_seconds=env_float(
            f"{prefix}COMPLETED_RESET_SECONDS", DEFAULT_COMPLETED_RESET_SECONDS
        ),
        request_timeout_seconds=env_float(
            f"{prefix}REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS, minimum=0.1
        ),
    )
