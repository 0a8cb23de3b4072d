"""
ConfigSync data models.

Defines the snapshot, metadata, backup and result types exchanged between
the store, the providers and the sync engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from pathlib import Path
from typing import Any

# Tracked file set: the primary blob plus two auxiliary blobs named by suffix.
# Anything whose name starts with TRACKED_PREFIX is watched and backed up.
STORE_FILE = "database.db"
SHM_FILE = STORE_FILE + "-shm"
WAL_FILE = STORE_FILE + "-wal"
TRACKED_FILES = (STORE_FILE, SHM_FILE, WAL_FILE)
TRACKED_PREFIX = STORE_FILE


def is_tracked_name(name: str) -> bool:
    return name.startswith(TRACKED_PREFIX)


def as_utc(value: datetime) -> datetime:
    """Normalize a timestamp to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SafetyCheck(Enum):
    """Outcome of a safety guard check. Computed fresh on every call."""

    SAFE = auto()
    OWNER_PROCESS_RUNNING = auto()  # Unsafe to write
    LOCKED = auto()  # File held by another process
    MISSING = auto()  # No local store yet


class SkipReason(Enum):
    """Why a sync attempt did nothing."""

    OWNER_PROCESS_RUNNING = "owner-process-running"
    LOCKED = "locked"
    NO_LOCAL_STORE = "no-local-store"
    NO_REMOTE_STORE = "no-remote-store"
    ALREADY_IN_SYNC = "already-in-sync"
    INVALID_REMOTE_PAYLOAD = "invalid-remote-payload"
    LOCAL_NEWER = "local-newer"

    @classmethod
    def from_safety_check(cls, check: SafetyCheck) -> SkipReason:
        """Map a failed safety check onto the matching skip reason."""
        mapping = {
            SafetyCheck.OWNER_PROCESS_RUNNING: cls.OWNER_PROCESS_RUNNING,
            SafetyCheck.LOCKED: cls.LOCKED,
            SafetyCheck.MISSING: cls.NO_LOCAL_STORE,
        }
        if check not in mapping:
            raise ValueError(f"Safety check {check.name} is not a skip condition")
        return mapping[check]


class SyncOutcome(Enum):
    """Kind of a sync result."""

    PUSHED = auto()
    PULLED = auto()
    SKIPPED = auto()
    RESTORED = auto()


@dataclass(frozen=True)
class SyncMeta:
    """Metadata describing who last wrote a snapshot, and when."""

    last_modified: datetime
    device_name: str

    def to_dict(self) -> dict[str, str]:
        return {
            "last_modified": self.last_modified.isoformat(),
            "device_name": self.device_name,
        }


@dataclass(frozen=True)
class ConfigSnapshot:
    """In-memory copy of the tracked files plus their metadata."""

    db: bytes
    meta: SyncMeta
    db_shm: bytes | None = None
    db_wal: bytes | None = None

    @property
    def is_valid(self) -> bool:
        """Whether the primary blob passes the structural header check."""
        from configsync.core.safety import validate_store_header

        return validate_store_header(self.db)

    @property
    def size_bytes(self) -> int:
        return len(self.db) + len(self.db_shm or b"") + len(self.db_wal or b"")


@dataclass(frozen=True)
class BackupEntry:
    """A labeled, timestamped copy of the tracked files."""

    name: str
    label: str
    created_at: datetime
    path: Path

    @property
    def size_bytes(self) -> int:
        return sum(p.stat().st_size for p in self.path.iterdir() if p.is_file())

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "created_at": self.created_at.isoformat(),
            "path": str(self.path),
        }


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one orchestration attempt. Never persisted."""

    outcome: SyncOutcome
    origin: str | None = None
    reason: SkipReason | None = None
    backup: Path | None = None
    restored_from: str | None = None

    @classmethod
    def pushed(cls, backup: Path | None = None) -> SyncResult:
        return cls(outcome=SyncOutcome.PUSHED, backup=backup)

    @classmethod
    def pulled(cls, origin: str, backup: Path | None = None) -> SyncResult:
        return cls(outcome=SyncOutcome.PULLED, origin=origin, backup=backup)

    @classmethod
    def skipped(cls, reason: SkipReason) -> SyncResult:
        return cls(outcome=SyncOutcome.SKIPPED, reason=reason)

    @classmethod
    def restored(cls, name: str, backup: Path | None = None) -> SyncResult:
        return cls(outcome=SyncOutcome.RESTORED, restored_from=name, backup=backup)

    @property
    def is_skipped(self) -> bool:
        return self.outcome == SyncOutcome.SKIPPED

    @property
    def message(self) -> str:
        """Human-readable summary for status displays."""
        if self.outcome == SyncOutcome.PUSHED:
            return "Pushed local config to remote"
        if self.outcome == SyncOutcome.PULLED:
            return f"Pulled config from {self.origin}"
        if self.outcome == SyncOutcome.RESTORED:
            return f"Restored backup '{self.restored_from}'"
        if self.reason is None:
            return "Skipped"
        return f"Skipped ({self.reason.value})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.name.lower(),
            "origin": self.origin,
            "reason": self.reason.value if self.reason else None,
            "backup": str(self.backup) if self.backup else None,
            "restored_from": self.restored_from,
            "message": self.message,
        }
