"""Configuration types for the Repair Minder API client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .env import env_float, optional_env_var, require_env_var

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "RepairMinder-Python/1.0"


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ApiConfig:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    ratelimit: RateLimit | None = None
    extra_headers: Mapping[str, str] | None = None

    def default_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.extra_headers:
            headers.update(self.extra_headers)
        return headers


def get_api_config(*, ratelimit: RateLimit | None = None) -> ApiConfig:
    base_url = require_env_var("REPAIRSYNC_API_BASE_URL").strip().rstrip("/")
    return ApiConfig(
        base_url=base_url,
        timeout_seconds=env_float(
            "REPAIRSYNC_API_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, minimum=0.1
        ),
        user_agent=optional_env_var("REPAIRSYNC_USER_AGENT") or DEFAULT_USER_AGENT,
        ratelimit=ratelimit,
    )


@dataclass(slots=True, frozen=True)
class CredentialConfig:
    access_token: str | None = None
    refresh_token: str | None = None


def get_credential_config() -> CredentialConfig:
    return CredentialConfig(
        access_token=optional_env_var("REPAIRSYNC_ACCESS_TOKEN"),
        refresh_token=optional_env_var("REPAIRSYNC_REFRESH_TOKEN"),
    )
