"""
ConfigSync Safety Guard.

Decides whether the local store may be read or written right now, and
implements the structural check every inbound payload must pass before it
touches the store.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import psutil

from configsync.core.logging import get_logger
from configsync.core.models import STORE_FILE, SafetyCheck

if TYPE_CHECKING:
    from configsync.core.config import SyncConfig

logger = get_logger(__name__)

STORE_MAGIC = b"SQLite format 3\x00"


def validate_store_header(data: bytes) -> bool:
    """Check that a primary blob starts with the storage format's magic header.

    The blob must also carry content beyond the header; an empty or
    header-only blob is rejected.
    """
    return len(data) > len(STORE_MAGIC) and data[: len(STORE_MAGIC)] == STORE_MAGIC


def can_read_file(path: Path) -> bool:
    """Whether a file can be opened for reading (not exclusively locked)."""
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False


class SafetyGuard:
    """Precondition checker for store reads and writes.

    Holds a snapshot of running process names, refreshed on every
    ``safe_to_write`` call.
    """

    def __init__(self, owner_process_names: Iterable[str]) -> None:
        self.owner_process_names = tuple(owner_process_names)
        self._process_names: list[str] = []
        self._lock = threading.Lock()

    def refresh_processes(self) -> None:
        """Take a fresh snapshot of running process names."""
        names: list[str] = []
        for proc in psutil.process_iter(["name"]):
            name = proc.info.get("name")
            if name:
                names.append(name)
        with self._lock:
            self._process_names = names

    def owner_process_running(self, refresh: bool = True) -> bool:
        """Check whether any owning application process is alive."""
        if refresh:
            self.refresh_processes()
        with self._lock:
            names = list(self._process_names)
        for name in names:
            for owner in self.owner_process_names:
                if owner in name:
                    logger.debug("Owner process detected", process=name, match=owner)
                    return True
        return False

    def safe_to_read(self, store_dir: Path) -> SafetyCheck:
        """Reads are allowed while the owning application runs."""
        return self._check_file(Path(store_dir) / STORE_FILE)

    def safe_to_write(self, store_dir: Path) -> SafetyCheck:
        """Writes require the owning application to be stopped.

        A missing store is safe to write: a new store is being created.
        """
        if self.owner_process_running():
            logger.info("Store write blocked: owner process running", store=str(store_dir))
            return SafetyCheck.OWNER_PROCESS_RUNNING

        check = self._check_file(Path(store_dir) / STORE_FILE)
        if check == SafetyCheck.MISSING:
            return SafetyCheck.SAFE
        return check

    def _check_file(self, path: Path) -> SafetyCheck:
        if not path.exists():
            return SafetyCheck.MISSING
        if not can_read_file(path):
            logger.info("Store file is locked", path=str(path))
            return SafetyCheck.LOCKED
        return SafetyCheck.SAFE


@dataclass
class PreflightCheck:
    """Result of a single preflight check."""

    name: str
    passed: bool
    message: str
    severity: str = "info"  # info, warning, error
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PreflightReport:
    """Aggregate of preflight checks shown by ``configsync status``."""

    checks: list[PreflightCheck] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def all_passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def has_errors(self) -> bool:
        return any(c.severity == "error" and not c.passed for c in self.checks)

    @property
    def has_warnings(self) -> bool:
        return any(c.severity == "warning" and not c.passed for c in self.checks)

    def get_summary(self) -> str:
        """Get human-readable summary."""
        passed = sum(1 for c in self.checks if c.passed)
        lines = [f"Preflight Check Report ({self.timestamp.isoformat()})"]
        lines.append("=" * 60)
        lines.append(f"Results: {passed}/{len(self.checks)} checks passed")
        lines.append("")
        for check in self.checks:
            status = "✓" if check.passed else "✗"
            lines.append(f"[{status}] {check.name}: {check.message}")
            for key, value in check.details.items():
                lines.append(f"    {key}: {value}")
        return "\n".join(lines)


def check_store_directory(config: SyncConfig, guard: SafetyGuard) -> PreflightCheck:
    directory = config.store_directory
    if not directory.is_dir():
        return PreflightCheck(
            name="Store Directory",
            passed=False,
            message=f"{directory} does not exist",
            severity="error",
        )
    return PreflightCheck(name="Store Directory", passed=True, message=str(directory))


def check_store_readable(config: SyncConfig, guard: SafetyGuard) -> PreflightCheck:
    check = guard.safe_to_read(config.store_directory)
    if check == SafetyCheck.MISSING:
        return PreflightCheck(
            name="Local Store",
            passed=False,
            message="No local store yet; the next sync will pull",
            severity="warning",
        )
    if check == SafetyCheck.LOCKED:
        return PreflightCheck(
            name="Local Store",
            passed=False,
            message="Store file is locked by another process",
            severity="error",
        )
    return PreflightCheck(name="Local Store", passed=True, message="Readable")


def check_owner_process(config: SyncConfig, guard: SafetyGuard) -> PreflightCheck:
    if guard.owner_process_running():
        return PreflightCheck(
            name="Owner Process",
            passed=False,
            message="Owning application is running; pulls will be skipped",
            severity="warning",
            details={"watched_names": ", ".join(guard.owner_process_names)},
        )
    return PreflightCheck(name="Owner Process", passed=True, message="Not running")


def check_backup_directory(config: SyncConfig, guard: SafetyGuard) -> PreflightCheck:
    directory = config.backup_directory
    writable_dir = directory if directory.exists() else directory.parent
    if not os.access(writable_dir, os.W_OK):
        return PreflightCheck(
            name="Backup Directory",
            passed=False,
            message=f"{directory} is not writable",
            severity="error",
        )
    return PreflightCheck(
        name="Backup Directory",
        passed=True,
        message=str(directory),
        details={"retention": config.max_backups},
    )


PREFLIGHT_CHECKS = (
    check_store_directory,
    check_store_readable,
    check_owner_process,
    check_backup_directory,
)


def run_preflight(config: SyncConfig, guard: SafetyGuard | None = None) -> PreflightReport:
    """Run all preflight checks and return the report."""
    guard = guard or SafetyGuard(config.owner_process_names)
    report = PreflightReport()
    for check_func in PREFLIGHT_CHECKS:
        try:
            report.checks.append(check_func(config, guard))
        except Exception as e:
            report.checks.append(
                PreflightCheck(
                    name=check_func.__name__,
                    passed=False,
                    message=f"Check failed with error: {e}",
                    severity="error",
                )
            )
    return report
