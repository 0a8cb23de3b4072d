"""
ConfigSync error types.

Every failure is scoped to a single sync attempt and returned to the caller.
Safety and skip conditions are not errors; they are reported through
``SyncResult`` instead.
"""

from __future__ import annotations

from pathlib import Path


class ConfigSyncError(Exception):
    """Base exception for all ConfigSync errors."""


class StoreIOError(ConfigSyncError):
    """A local filesystem operation failed (disk full, permission denied, ...)."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class InvalidPayloadError(ConfigSyncError):
    """A snapshot failed the structural check and must not be written."""


class BackupNotFoundError(ConfigSyncError):
    """No backup exists under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Backup '{name}' not found")
        self.name = name


class ProviderError(ConfigSyncError):
    """A provider call failed for a reason other than transport or absence."""


class RemoteNotFoundError(ProviderError):
    """No remote state exists yet. Expected and non-fatal."""

    def __init__(self, message: str = "No remote config found") -> None:
        super().__init__(message)


class NetworkError(ProviderError):
    """Transport-level failure talking to a provider."""


class ProviderResponseError(ProviderError):
    """A provider answered with a non-success status."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
