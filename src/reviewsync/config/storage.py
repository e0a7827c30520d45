"""Where reviewsync keeps its local files and which database it talks to."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env

DATA_DIR_ENV: Final[str] = "REVIEWSYNC_DATA_DIR"
SQL_ECHO_ENV: Final[str] = "REVIEWSYNC_SQL_ECHO"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"

DEFAULT_DB_FILENAME: Final[str] = "reviewsync.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local data directory, created on first use of any path below it."""

    data_dir: Path

    def path_for(self, filename: str) -> Path:
        directory = self.data_dir.expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def http_cache_path(self) -> Path:
        return self.path_for(HTTP_CACHE_FILENAME)

    def sqlite_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.path_for(DEFAULT_DB_FILENAME)}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    explicit = optional_env(DATA_DIR_ENV)
    data_dir = Path(explicit) if explicit else _platform_data_home() / "reviewsync"
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    echo = (optional_env(SQL_ECHO_ENV) or "").lower() in {"1", "true", "yes"}
    uri = optional_env(DATABASE_URI_ENV)
    if uri is None:
        uri = (storage or get_storage_config()).sqlite_uri()
    return DatabaseConfig(uri=uri, echo=echo)
