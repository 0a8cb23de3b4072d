"""
Local store access.

Reads and writes the tracked files (primary blob plus the two auxiliary
blobs) in a directory. The helpers here raise plain ``OSError``; callers map
that onto their own error type.
"""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from configsync.core.errors import InvalidPayloadError, StoreIOError
from configsync.core.logging import get_logger
from configsync.core.models import (
    SHM_FILE,
    STORE_FILE,
    WAL_FILE,
    ConfigSnapshot,
    SyncMeta,
)
from configsync.core.safety import validate_store_header

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ns_to_datetime(ns: int) -> datetime:
    """Convert a nanosecond timestamp to an aware UTC datetime (µs precision)."""
    return _EPOCH + timedelta(microseconds=ns // 1000)


def datetime_to_ns(value: datetime) -> int:
    """Inverse of :func:`ns_to_datetime`, exact to the microsecond."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return ((value - _EPOCH) // timedelta(microseconds=1)) * 1000


def file_modified_at(path: Path) -> datetime:
    return ns_to_datetime(path.stat().st_mtime_ns)


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers see either the old or new file.

    The temporary file is dot-prefixed so it never matches the tracked set.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_optional(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def read_blobs(directory: Path) -> tuple[bytes, bytes | None, bytes | None]:
    """Read the tracked files. A missing primary blob raises FileNotFoundError."""
    db = (directory / STORE_FILE).read_bytes()
    return db, _read_optional(directory / SHM_FILE), _read_optional(directory / WAL_FILE)


def write_blobs(
    directory: Path,
    db: bytes,
    db_shm: bytes | None = None,
    db_wal: bytes | None = None,
) -> None:
    """Make the tracked files in ``directory`` equal to the given blobs.

    Auxiliary files absent from the input are removed.
    """
    directory.mkdir(parents=True, exist_ok=True)
    write_atomic(directory / STORE_FILE, db)
    for name, blob in ((SHM_FILE, db_shm), (WAL_FILE, db_wal)):
        target = directory / name
        if blob is None:
            target.unlink(missing_ok=True)
        else:
            write_atomic(target, blob)


class LocalStore:
    """The device's working copy of the configuration database."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    @property
    def primary_path(self) -> Path:
        return self.directory / STORE_FILE

    def exists(self) -> bool:
        return self.primary_path.is_file()

    def modified_at(self) -> datetime | None:
        """Modification time of the primary blob, or None if absent."""
        try:
            return file_modified_at(self.primary_path)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreIOError(f"Cannot stat local store: {e}", self.primary_path) from e

    def set_modified_at(self, when: datetime) -> None:
        """Stamp the primary blob with ``when`` without touching its content."""
        stamp = datetime_to_ns(when)
        try:
            os.utime(self.primary_path, ns=(stamp, stamp))
        except OSError as e:
            raise StoreIOError(f"Cannot stamp local store: {e}", self.primary_path) from e

    def read_snapshot(self, device_name: str) -> ConfigSnapshot:
        """Read the store into a snapshot stamped with its modification time."""
        try:
            modified = file_modified_at(self.primary_path)
            db, db_shm, db_wal = read_blobs(self.directory)
        except OSError as e:
            raise StoreIOError(f"Cannot read local store: {e}", self.directory) from e

        return ConfigSnapshot(
            db=db,
            db_shm=db_shm,
            db_wal=db_wal,
            meta=SyncMeta(last_modified=modified, device_name=device_name),
        )

    def write_snapshot(self, snapshot: ConfigSnapshot) -> None:
        """Overwrite the store with ``snapshot``.

        The primary blob's modification time is set to the snapshot's
        timestamp so the store and the remote compare as equal afterwards.
        """
        if not validate_store_header(snapshot.db):
            raise InvalidPayloadError("Refusing to write a structurally invalid store")

        try:
            write_blobs(self.directory, snapshot.db, snapshot.db_shm, snapshot.db_wal)
            stamp = datetime_to_ns(snapshot.meta.last_modified)
            os.utime(self.primary_path, ns=(stamp, stamp))
        except OSError as e:
            raise StoreIOError(f"Cannot write local store: {e}", self.directory) from e

        logger.info(
            "Local store written",
            directory=str(self.directory),
            size_bytes=snapshot.size_bytes,
            origin=snapshot.meta.device_name,
        )
