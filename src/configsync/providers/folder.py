"""
Shared-folder provider.

Exchanges the store through a directory that some other tool keeps in sync
between machines (Dropbox, OneDrive, iCloud Drive, a NAS share...). The
directory holds the tracked files plus a ``sync_meta.json`` record.
"""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ValidationError

from configsync.core.errors import ProviderError, RemoteNotFoundError
from configsync.core.logging import get_logger
from configsync.core.models import STORE_FILE, ConfigSnapshot, SyncMeta, as_utc
from configsync.providers.base import SyncProvider
from configsync.sync.store import read_blobs, write_atomic, write_blobs

logger = get_logger(__name__)

META_FILE = "sync_meta.json"


class StoredMeta(BaseModel):
    """On-disk metadata record."""

    last_modified: datetime
    device_name: str


class FolderProvider(SyncProvider):
    """Provider backed by a plain directory."""

    def __init__(self, sync_dir: Path) -> None:
        self.sync_dir = Path(sync_dir)
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "folder"

    @property
    def meta_path(self) -> Path:
        return self.sync_dir / META_FILE

    def push(self, snapshot: ConfigSnapshot) -> None:
        """Write all present blobs, then the metadata record."""
        record = StoredMeta(
            last_modified=snapshot.meta.last_modified,
            device_name=snapshot.meta.device_name,
        )
        with self._lock:
            try:
                write_blobs(self.sync_dir, snapshot.db, snapshot.db_shm, snapshot.db_wal)
                write_atomic(self.meta_path, record.model_dump_json(indent=2).encode("utf-8"))
            except OSError as e:
                raise ProviderError(f"Cannot write to sync folder {self.sync_dir}: {e}") from e

        logger.info(
            "Pushed snapshot to folder",
            sync_dir=str(self.sync_dir),
            size_bytes=snapshot.size_bytes,
        )

    def pull(self) -> ConfigSnapshot:
        with self._lock:
            if not (self.sync_dir / STORE_FILE).is_file():
                raise RemoteNotFoundError(f"No {STORE_FILE} in {self.sync_dir}")
            try:
                db, db_shm, db_wal = read_blobs(self.sync_dir)
            except FileNotFoundError as e:
                raise RemoteNotFoundError(f"No {STORE_FILE} in {self.sync_dir}") from e
            except OSError as e:
                raise ProviderError(f"Cannot read sync folder {self.sync_dir}: {e}") from e
            meta = self._read_meta()

        return ConfigSnapshot(db=db, db_shm=db_shm, db_wal=db_wal, meta=meta)

    def remote_meta(self) -> SyncMeta:
        with self._lock:
            return self._read_meta()

    def _read_meta(self) -> SyncMeta:
        try:
            raw = self.meta_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise RemoteNotFoundError(f"No {META_FILE} in {self.sync_dir}") from e
        except OSError as e:
            raise ProviderError(f"Cannot read {self.meta_path}: {e}") from e

        try:
            stored = StoredMeta.model_validate_json(raw)
        except ValidationError as e:
            raise ProviderError(f"Malformed {META_FILE}: {e}") from e

        return SyncMeta(last_modified=as_utc(stored.last_modified), device_name=stored.device_name)
