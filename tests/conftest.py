"""
Pytest configuration and fixtures for ConfigSync tests.
"""

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from configsync.core.errors import RemoteNotFoundError  # noqa: E402
from configsync.core.models import STORE_FILE, ConfigSnapshot, SyncMeta  # noqa: E402
from configsync.providers.base import SyncProvider  # noqa: E402

TEST_OWNER_PROCESS = "ConfigSyncTestOwner"


class MemoryProvider(SyncProvider):
    """Provider keeping the remote snapshot in memory."""

    def __init__(self, snapshot: ConfigSnapshot | None = None) -> None:
        self.snapshot = snapshot
        self.pushed: list[ConfigSnapshot] = []
        self.error: Exception | None = None

    @property
    def name(self) -> str:
        return "memory"

    def push(self, snapshot: ConfigSnapshot) -> None:
        if self.error is not None:
            raise self.error
        self.snapshot = snapshot
        self.pushed.append(snapshot)

    def pull(self) -> ConfigSnapshot:
        if self.error is not None:
            raise self.error
        if self.snapshot is None:
            raise RemoteNotFoundError()
        return self.snapshot

    def remote_meta(self) -> SyncMeta:
        return self.pull().meta


def set_mtime(path: Path, when: datetime) -> None:
    """Set a file's modification time to an exact whole-second timestamp."""
    ns = int(when.timestamp()) * 1_000_000_000
    os.utime(path, ns=(ns, ns))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture(autouse=True)
def no_owner_processes() -> Generator[None, None, None]:
    """Pretend no processes are running unless a test says otherwise."""
    with patch("configsync.core.safety.psutil.process_iter", return_value=[]):
        yield


@pytest.fixture
def store_blob() -> bytes:
    """A primary blob that passes the structural header check."""
    return b"SQLite format 3\x00" + bytes(100)


@pytest.fixture
def sample_config(temp_dir: Path) -> "ConfigSyncConfig":
    """Create a sample configuration rooted in a temporary directory."""
    from configsync.core.config import ConfigSyncConfig

    store_dir = temp_dir / "store"
    store_dir.mkdir()
    config = ConfigSyncConfig.model_validate(
        {
            "logging": {
                "console_enabled": False,
                "file_enabled": False,
                "log_directory": str(temp_dir / "logs"),
            },
            "sync": {
                "store_directory": str(store_dir),
                "backup_directory": str(temp_dir / "backups"),
                "max_backups": 5,
                "debounce_seconds": 0.2,
                "poll_interval_seconds": 0.5,
                "device_name": "desktop",
                "owner_process_names": [TEST_OWNER_PROCESS],
                "provider": {"type": "folder", "sync_directory": str(temp_dir / "remote")},
            },
        }
    )
    config.ensure_directories()
    return config


@pytest.fixture
def write_store(store_blob: bytes) -> Callable[..., Path]:
    """Return a helper that writes a store into a directory."""

    def _write(
        directory: Path,
        db: bytes | None = None,
        modified: datetime | None = None,
        wal: bytes | None = None,
    ) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        primary = directory / STORE_FILE
        primary.write_bytes(store_blob if db is None else db)
        if wal is not None:
            (directory / f"{STORE_FILE}-wal").write_bytes(wal)
        if modified is not None:
            set_mtime(primary, modified)
        return primary

    return _write


@pytest.fixture
def touch() -> Callable[[Path, datetime], None]:
    """Return the exact-mtime helper."""
    return set_mtime


@pytest.fixture
def memory_provider() -> MemoryProvider:
    return MemoryProvider()


@pytest.fixture
def remote_snapshot(store_blob: bytes) -> Callable[..., ConfigSnapshot]:
    """Return a factory for remote snapshots."""

    def _make(
        modified: datetime,
        device_name: str = "laptop",
        db: bytes | None = None,
    ) -> ConfigSnapshot:
        return ConfigSnapshot(
            db=store_blob if db is None else db,
            meta=SyncMeta(last_modified=modified.astimezone(timezone.utc), device_name=device_name),
        )

    return _make


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
