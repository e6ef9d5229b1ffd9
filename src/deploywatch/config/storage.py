"""Where the notification record database lives.

``DEPLOYWATCH_DATABASE_URI`` points the records at any SQLAlchemy database.
Without it they go to a SQLite file in ``DEPLOYWATCH_DATA_DIR``, or in the
platform's per-user data directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "deploywatch"
DEFAULT_DB_FILENAME: Final[str] = "notifications.db"
DATA_DIR_ENV: Final[str] = "DEPLOYWATCH_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DEPLOYWATCH_DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding the default SQLite record file."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def record_database_path(self, *, create_dir: bool = True) -> Path:
        data_dir = self.resolve_data_dir()
        if create_dir:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = optional_env_var(DATA_DIR_ENV)
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _platform_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    env_uri = optional_env_var(DATABASE_URI_ENV)
    if env_uri:
        return DatabaseConfig(uri=env_uri)
    path = (storage or get_storage_config()).record_database_path()
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}")
