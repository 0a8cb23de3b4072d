"""
ConfigSync backup manager.

Creates labeled, timestamped copies of the tracked files before anything
overwrites them, and keeps only the most recent ``max_backups`` copies.
"""

from __future__ import annotations

import json
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

from configsync.core.errors import BackupNotFoundError, StoreIOError
from configsync.core.logging import get_logger
from configsync.core.models import TRACKED_FILES, BackupEntry, is_tracked_name
from configsync.sync.store import file_modified_at

logger = get_logger(__name__)

BACKUP_RECORD = ".backup.json"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"
_NAME_PATTERN = re.compile(r"^(?P<label>.+)-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(?:-\d+)?$")


class BackupManager:
    """Sole owner of the backup directory."""

    def __init__(self, backup_dir: Path, max_backups: int) -> None:
        if max_backups < 1:
            raise ValueError("max_backups must be at least 1")
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups

    def create_backup(self, source_dir: Path, label: str) -> Path:
        """Copy the tracked files of ``source_dir`` into a new backup.

        Prunes old backups before returning.
        """
        created_at = datetime.now(timezone.utc)
        try:
            backup_path = self._allocate_path(label, created_at)
            backup_path.mkdir(parents=True)

            copied = []
            for entry in sorted(Path(source_dir).iterdir()):
                if entry.is_file() and is_tracked_name(entry.name):
                    shutil.copy2(entry, backup_path / entry.name)
                    copied.append(entry.name)

            record = {"label": label, "created_at": created_at.isoformat(), "files": copied}
            (backup_path / BACKUP_RECORD).write_text(json.dumps(record, indent=2))
        except OSError as e:
            raise StoreIOError(f"Backup '{label}' failed: {e}", source_dir) from e

        logger.info("Backup created", backup=backup_path.name, files=copied)
        self.prune()
        return backup_path

    def list_backups(self) -> list[BackupEntry]:
        """List all backups, newest first."""
        if not self.backup_dir.exists():
            return []

        entries: list[BackupEntry] = []
        try:
            for path in self.backup_dir.iterdir():
                if path.is_dir():
                    entries.append(self._read_entry(path))
        except OSError as e:
            raise StoreIOError(f"Cannot list backups: {e}", self.backup_dir) from e

        entries.sort(key=lambda e: (e.created_at, e.name), reverse=True)
        return entries

    def get_backup(self, name: str) -> BackupEntry:
        """Look up a backup by directory name."""
        path = self.backup_dir / name
        if not name or path.parent != self.backup_dir or not path.is_dir():
            raise BackupNotFoundError(name)
        return self._read_entry(path)

    def restore_backup(self, location: Path, target_dir: Path) -> None:
        """Copy the tracked files of a backup over ``target_dir``.

        Does not back up what it overwrites; callers do that first.
        Auxiliary files the backup lacks are removed from the target.
        """
        location = Path(location)
        target_dir = Path(target_dir)
        try:
            present = {p.name for p in location.iterdir() if p.is_file() and is_tracked_name(p.name)}
            target_dir.mkdir(parents=True, exist_ok=True)
            for name in sorted(present):
                shutil.copy2(location / name, target_dir / name)
            for name in TRACKED_FILES:
                if name not in present:
                    (target_dir / name).unlink(missing_ok=True)
        except OSError as e:
            raise StoreIOError(f"Restore from {location.name} failed: {e}", target_dir) from e

        logger.info("Backup restored", backup=location.name, target=str(target_dir))

    def prune(self) -> list[str]:
        """Delete every backup beyond the retention count. Returns removed names."""
        removed = []
        for old in self.list_backups()[self.max_backups :]:
            try:
                shutil.rmtree(old.path)
            except OSError as e:
                raise StoreIOError(f"Cannot prune backup {old.name}: {e}", old.path) from e
            removed.append(old.name)

        if removed:
            logger.info("Pruned old backups", removed=removed, retention=self.max_backups)
        return removed

    def _allocate_path(self, label: str, created_at: datetime) -> Path:
        base = f"{label}-{created_at.strftime(TIMESTAMP_FORMAT)}"
        candidate = self.backup_dir / base
        counter = 2
        while candidate.exists():
            candidate = self.backup_dir / f"{base}-{counter}"
            counter += 1
        return candidate

    def _read_entry(self, path: Path) -> BackupEntry:
        record_path = path / BACKUP_RECORD
        match = _NAME_PATTERN.match(path.name)
        label = match.group("label") if match else path.name
        created_at: datetime | None = None
        if record_path.exists():
            try:
                record = json.loads(record_path.read_text())
                label = record.get("label", label)
                created_at = datetime.fromisoformat(record["created_at"])
            except (ValueError, KeyError) as e:
                logger.warning("Unreadable backup record", backup=path.name, error=str(e))
        if created_at is None:
            created_at = file_modified_at(path)
        return BackupEntry(name=path.name, label=label, created_at=created_at, path=path)
