"""
Tests for configsync.providers.folder module.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from configsync.core.errors import ProviderError, RemoteNotFoundError
from configsync.core.models import SHM_FILE, STORE_FILE, WAL_FILE, ConfigSnapshot, SyncMeta
from configsync.providers.folder import META_FILE, FolderProvider

MODIFIED = datetime(2024, 2, 2, 10, 30, 0, 500, tzinfo=timezone.utc)


@pytest.fixture
def provider(temp_dir: Path) -> FolderProvider:
    return FolderProvider(temp_dir / "shared")


@pytest.fixture
def snapshot(store_blob: bytes) -> ConfigSnapshot:
    return ConfigSnapshot(
        db=store_blob,
        db_wal=b"wal",
        meta=SyncMeta(last_modified=MODIFIED, device_name="desktop"),
    )


class TestFolderProvider:
    """Tests for FolderProvider."""

    def test_name(self, provider: FolderProvider) -> None:
        assert provider.name == "folder"

    def test_empty_folder(self, provider: FolderProvider) -> None:
        with pytest.raises(RemoteNotFoundError):
            provider.remote_meta()
        with pytest.raises(RemoteNotFoundError):
            provider.pull()

    def test_push_then_pull(self, provider: FolderProvider, snapshot: ConfigSnapshot) -> None:
        provider.push(snapshot)
        pulled = provider.pull()

        assert pulled.db == snapshot.db
        assert pulled.db_wal == b"wal"
        assert pulled.db_shm is None
        assert pulled.meta == snapshot.meta

    def test_meta_file_contents(self, provider: FolderProvider, snapshot: ConfigSnapshot) -> None:
        provider.push(snapshot)
        data = json.loads((provider.sync_dir / META_FILE).read_text())
        assert data["device_name"] == "desktop"
        assert provider.remote_meta().last_modified == MODIFIED

    def test_push_removes_stale_aux(
        self, provider: FolderProvider, snapshot: ConfigSnapshot, store_blob: bytes
    ) -> None:
        provider.push(snapshot)
        (provider.sync_dir / SHM_FILE).write_bytes(b"stale")

        provider.push(
            ConfigSnapshot(
                db=store_blob,
                meta=SyncMeta(last_modified=MODIFIED, device_name="desktop"),
            )
        )

        assert not (provider.sync_dir / SHM_FILE).exists()
        assert not (provider.sync_dir / WAL_FILE).exists()

    def test_malformed_meta(self, provider: FolderProvider, snapshot: ConfigSnapshot) -> None:
        provider.push(snapshot)
        (provider.sync_dir / META_FILE).write_text("{not json")
        with pytest.raises(ProviderError) as exc_info:
            provider.remote_meta()
        assert not isinstance(exc_info.value, RemoteNotFoundError)

    def test_blob_without_meta(self, provider: FolderProvider, store_blob: bytes) -> None:
        provider.sync_dir.mkdir(parents=True)
        (provider.sync_dir / STORE_FILE).write_bytes(store_blob)
        with pytest.raises(RemoteNotFoundError):
            provider.pull()

    def test_naive_timestamp_read_as_utc(self, provider: FolderProvider, snapshot: ConfigSnapshot) -> None:
        provider.push(snapshot)
        (provider.sync_dir / META_FILE).write_text(
            json.dumps({"last_modified": "2024-02-02T10:30:00", "device_name": "laptop"})
        )
        meta = provider.remote_meta()
        assert meta.last_modified == datetime(2024, 2, 2, 10, 30, tzinfo=timezone.utc)

    def test_unwritable_folder(self, temp_dir: Path, snapshot: ConfigSnapshot) -> None:
        blocker = temp_dir / "blocker"
        blocker.write_text("a file, not a directory")
        provider = FolderProvider(blocker / "shared")
        with pytest.raises(ProviderError):
            provider.push(snapshot)
