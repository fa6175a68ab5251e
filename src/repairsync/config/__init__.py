"""Application configuration helpers."""

from __future__ import annotations

from .api import ApiConfig, CredentialConfig, RateLimit, get_api_config, get_credential_config
from .env import (
    env_flag,
    env_float,
    env_int,
    optional_env_var,
    require_env_var,
    require_env_vars,
)
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncPolicy, get_sync_policy

__all__ = [
    "ApiConfig",
    "ConfigurationError",
    "CredentialConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "StorageConfig",
    "SyncPolicy",
    "configure_logging",
    "env_flag",
    "env_float",
    "env_int",
    "get_api_config",
    "get_credential_config",
    "get_database_config",
    "get_storage_config",
    "get_sync_policy",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
