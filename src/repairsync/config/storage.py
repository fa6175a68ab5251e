"""Location of the durable queue database."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_flag, optional_env_var

APP_DIR_NAME: Final[str] = "repairsync"
DEFAULT_DB_FILENAME: Final[str] = "queue.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding local state; ``data_dir`` is stored already resolved."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.database_filename

    def prepare(self) -> Path:
        """Create the data directory if needed and return the database path."""

        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.database_path

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.prepare()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def _platform_data_root() -> Path:
    if sys.platform == "win32":
        local = optional_env_var("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = optional_env_var("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    override = optional_env_var("REPAIRSYNC_DATA_DIR")
    data_dir = Path(override) if override else _platform_data_root() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir.expanduser().resolve())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise the queue lives in the data directory."""

    echo = env_flag("REPAIRSYNC_DATABASE_ECHO")
    uri = optional_env_var("DATABASE_URI")
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri, echo=echo)
