"""
ConfigSync configuration management.

Provides centralized configuration with validation using Pydantic.
"""

from __future__ import annotations

import json
import socket
import sys
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

CONFIG_HOME = Path.home() / ".configsync"

DEFAULT_OWNER_PROCESS_NAMES = [
    "SteelSeriesGG",
    "SteelSeriesGG.exe",
    "SteelSeriesEngine",
    "SteelSeriesEngine.exe",
    "SteelSeriesEngine3",
    "SteelSeriesEngine3.exe",
]


def default_store_directory() -> Path:
    """Location of the owning application's database on this platform."""
    if sys.platform == "win32":
        return Path(r"C:\ProgramData\SteelSeries\SteelSeries Engine 3\db")
    if sys.platform == "darwin":
        return Path("/Library/Application Support/SteelSeries Engine 3/db")
    return Path("/etc/steelseries-engine-3/db")


def default_device_name() -> str:
    return socket.gethostname() or "unknown"


def _expand(v: str | Path) -> Path:
    return Path(v).expanduser().resolve()


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_enabled: bool = True
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: CONFIG_HOME / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return _expand(v)


class FolderProviderConfig(BaseModel):
    """Exchange through a shared folder (Dropbox, OneDrive, a NAS mount...)."""

    type: Literal["folder"] = "folder"
    sync_directory: Path = Field(default_factory=lambda: Path.home() / "ConfigSync")

    @field_validator("sync_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return _expand(v)


class HostedProviderConfig(BaseModel):
    """Exchange through the hosted sync API."""

    type: Literal["hosted"] = "hosted"
    api_url: str
    api_key: str
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


ProviderConfig = Annotated[
    Union[FolderProviderConfig, HostedProviderConfig],
    Field(discriminator="type"),
]


class SyncConfig(BaseModel):
    """Configuration consumed by the sync engine, watcher and poller."""

    store_directory: Path = Field(default_factory=default_store_directory)
    backup_directory: Path = Field(default_factory=lambda: CONFIG_HOME / "backups")
    max_backups: int = Field(default=20, ge=1)
    debounce_seconds: float = Field(default=3.0, gt=0)
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    max_backoff_seconds: float = Field(default=300.0, gt=0)
    device_name: str = Field(default_factory=default_device_name, min_length=1)
    owner_process_names: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OWNER_PROCESS_NAMES)
    )
    provider: ProviderConfig = Field(default_factory=FolderProviderConfig)

    @field_validator("store_directory", "backup_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return _expand(v)


class ConfigSyncConfig(BaseModel):
    """Main ConfigSync configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> ConfigSyncConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = CONFIG_HOME / "config.json"

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = CONFIG_HOME / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all directories owned by ConfigSync.

        The store directory belongs to the owning application and is never
        created here.
        """
        if self.logging.file_enabled:
            self.logging.log_directory.mkdir(parents=True, exist_ok=True)
        self.sync.backup_directory.mkdir(parents=True, exist_ok=True)
        if isinstance(self.sync.provider, FolderProviderConfig):
            self.sync.provider.sync_directory.mkdir(parents=True, exist_ok=True)


def get_default_config() -> ConfigSyncConfig:
    """Get the default configuration."""
    return ConfigSyncConfig()


def load_config(config_path: Path | None = None) -> ConfigSyncConfig:
    """Load or create configuration."""
    config = ConfigSyncConfig.load(config_path)
    config.ensure_directories()
    return config
