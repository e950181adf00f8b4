"""Application configuration loaded from environment variables."""

from __future__ import annotations

import logging
import socket
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DATA_DIR_NAME = "data"
DATABASE_FILE_NAME = "updates.db"


class Settings(BaseSettings):
    """Server updater settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Identity of the host whose install progress is tracked
    server_name: str = ""

    # Paths
    base_path: Path = Path("./update-files")

    # Database; defaults to <base_path>/data/updates.db
    database_url: str | None = None

    @property
    def data_dir(self) -> Path:
        """Directory reserved for the store inside the base path."""
        return self.base_path / DATA_DIR_NAME

    @property
    def database_path(self) -> Path:
        """Filesystem path of the default SQLite store."""
        return self.data_dir / DATABASE_FILE_NAME

    def resolved_database_url(self) -> str:
        """Return the configured database URL or the default store location."""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.database_path}"

    def resolved_server_name(self) -> str:
        """Return the configured server name, falling back to the hostname."""
        if self.server_name.strip():
            return self.server_name.strip()
        hostname = socket.gethostname()
        logger.warning("Server name is not set, using hostname %r as server name", hostname)
        return hostname
