"""
ConfigSync sync engine.

Coordinates the safety guard, backup manager, local store and provider, and
implements the last-write-wins reconciliation policy:

    local only            -> push
    remote only           -> pull
    neither               -> skip (no-local-store)
    both, local newer     -> back up, push
    both, remote newer    -> pull (backs up first)
    both, same timestamp  -> skip (already-in-sync)

Every operation that touches the local store runs under one lock, so a
watcher-triggered push and a poller-triggered pull never interleave.
"""

from __future__ import annotations

import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from configsync.core.errors import ProviderError, RemoteNotFoundError
from configsync.core.logging import OperationLogger, get_logger
from configsync.core.models import ConfigSnapshot, SafetyCheck, SkipReason, SyncMeta, SyncResult
from configsync.core.safety import SafetyGuard
from configsync.sync.backup import BackupManager
from configsync.sync.store import LocalStore

if TYPE_CHECKING:
    from configsync.core.config import SyncConfig
    from configsync.providers.base import SyncProvider
    from configsync.sync.watcher import StoreWatcher

logger = get_logger(__name__)

PRE_PUSH_LABEL = "pre-push"
PRE_PULL_LABEL = "pre-pull"
PRE_RESTORE_LABEL = "pre-restore"


class SyncEngine:
    """Stateful coordinator between the local store and one provider.

    The configuration is copied on construction; reconfiguring means
    building a new engine.
    """

    def __init__(
        self,
        config: SyncConfig,
        provider: SyncProvider,
        safety: SafetyGuard | None = None,
        backups: BackupManager | None = None,
    ) -> None:
        self.config = config.model_copy(deep=True)
        self.provider = provider
        self.store = LocalStore(self.config.store_directory)
        self.safety = safety or SafetyGuard(self.config.owner_process_names)
        self.backups = backups or BackupManager(
            self.config.backup_directory, self.config.max_backups
        )
        self._lock = threading.Lock()
        self._watcher: StoreWatcher | None = None

    @property
    def store_directory(self) -> Path:
        return self.store.directory

    def attach_watcher(self, watcher: StoreWatcher | None) -> None:
        """Register the watcher to pause while the engine writes the store."""
        self._watcher = watcher

    def push_to_remote(self) -> SyncResult:
        """Upload the local store. Reading is allowed while the owner runs."""
        with self._lock:
            return self._push()

    def pull_from_remote(self) -> SyncResult:
        """Replace the local store with the remote snapshot, backing up first."""
        with self._lock:
            return self._pull()

    def sync(self, allow_push: bool = True) -> SyncResult:
        """Reconcile local and remote state by last-write-wins.

        With ``allow_push=False`` (the periodic poller) the branches that
        would push are reported as ``Skipped{local-newer}`` instead.
        """
        with self._lock:
            with OperationLogger("sync", logger, allow_push=allow_push) as op:
                result = self._reconcile(allow_push)
                op.update(result=result.message)
            return result

    def remote_meta(self) -> SyncMeta | None:
        """Remote metadata, or None when no remote state exists yet."""
        try:
            return self.provider.remote_meta()
        except RemoteNotFoundError:
            return None

    def restore_backup(self, name: str) -> SyncResult:
        """Restore a named backup over the local store.

        The current store is backed up first under the pre-restore label.
        """
        with self._lock:
            entry = self.backups.get_backup(name)
            check = self.safety.safe_to_write(self.store_directory)
            if check != SafetyCheck.SAFE:
                return self._skip(SkipReason.from_safety_check(check), operation="restore")

            with OperationLogger("restore", logger, backup=name) as op:
                with tempfile.TemporaryDirectory(prefix="configsync-restore-") as staging:
                    # Stage first: the pre-restore backup may prune the entry.
                    self.backups.restore_backup(entry.path, Path(staging))
                    backup = None
                    if self.store.exists():
                        backup = self.backups.create_backup(self.store_directory, PRE_RESTORE_LABEL)
                    with self._watcher_suppressed():
                        self.backups.restore_backup(Path(staging), self.store_directory)
                op.update(pre_restore_backup=backup.name if backup else None)

            return SyncResult.restored(name, backup)

    def _reconcile(self, allow_push: bool) -> SyncResult:
        local_modified = self.store.modified_at()
        remote = self.remote_meta()

        logger.debug(
            "Comparing local and remote state",
            local_modified=local_modified.isoformat() if local_modified else None,
            remote_modified=remote.last_modified.isoformat() if remote else None,
            remote_device=remote.device_name if remote else None,
        )

        if local_modified is None and remote is None:
            return self._skip(SkipReason.NO_LOCAL_STORE, operation="sync")
        if remote is None:
            if not allow_push:
                return self._skip(SkipReason.LOCAL_NEWER, operation="sync")
            return self._push()
        if local_modified is None:
            return self._pull()

        if local_modified > remote.last_modified:
            if not allow_push:
                return self._skip(SkipReason.LOCAL_NEWER, operation="sync")
            return self._push(backup_label=PRE_PUSH_LABEL)
        if remote.last_modified > local_modified:
            return self._pull()
        # Equal timestamps are treated as in sync even if content differs.
        return self._skip(SkipReason.ALREADY_IN_SYNC, operation="sync")

    def _push(self, backup_label: str | None = None) -> SyncResult:
        check = self.safety.safe_to_read(self.store_directory)
        if check in (SafetyCheck.MISSING, SafetyCheck.LOCKED):
            return self._skip(SkipReason.from_safety_check(check), operation="push")

        with OperationLogger("push", logger, provider=self.provider.name) as op:
            backup = None
            if backup_label:
                backup = self.backups.create_backup(self.store_directory, backup_label)
            snapshot = self.store.read_snapshot(self.config.device_name)
            self.provider.push(snapshot)
            self._adopt_remote_timestamp(snapshot)
            op.update(size_bytes=snapshot.size_bytes)

        return SyncResult.pushed(backup)

    def _adopt_remote_timestamp(self, pushed: ConfigSnapshot) -> None:
        """Align the local mtime with the timestamp the provider recorded.

        Providers that stamp their own clock on upload would otherwise look
        newer than the store they just received, and the next poll would
        pull this device's own snapshot back.
        """
        try:
            remote = self.remote_meta()
        except ProviderError as e:
            logger.warning("Cannot read remote timestamp after push", error=str(e))
            return
        if remote is None or remote.last_modified == pushed.meta.last_modified:
            return
        if remote.device_name != pushed.meta.device_name:
            return
        if self.store.modified_at() != pushed.meta.last_modified:
            # Edited again since it was read; the watcher will push that edit.
            return

        with self._watcher_suppressed():
            self.store.set_modified_at(remote.last_modified)
        logger.debug(
            "Adopted remote timestamp",
            local_modified=pushed.meta.last_modified.isoformat(),
            remote_modified=remote.last_modified.isoformat(),
        )

    def _pull(self) -> SyncResult:
        check = self.safety.safe_to_write(self.store_directory)
        if check != SafetyCheck.SAFE:
            return self._skip(SkipReason.from_safety_check(check), operation="pull")

        with OperationLogger("pull", logger, provider=self.provider.name) as op:
            try:
                snapshot = self.provider.pull()
            except RemoteNotFoundError:
                op.update(result="no remote store")
                return SyncResult.skipped(SkipReason.NO_REMOTE_STORE)

            if not snapshot.is_valid:
                logger.warning(
                    "Rejected remote payload: invalid store header",
                    origin=snapshot.meta.device_name,
                    size_bytes=len(snapshot.db),
                )
                op.update(result="invalid remote payload")
                return SyncResult.skipped(SkipReason.INVALID_REMOTE_PAYLOAD)

            backup = None
            if self.store.exists():
                backup = self.backups.create_backup(self.store_directory, PRE_PULL_LABEL)
            with self._watcher_suppressed():
                self.store.write_snapshot(snapshot)
            op.update(origin=snapshot.meta.device_name, size_bytes=snapshot.size_bytes)

        return SyncResult.pulled(snapshot.meta.device_name, backup)

    def _skip(self, reason: SkipReason, operation: str) -> SyncResult:
        logger.info("Sync skipped", operation=operation, reason=reason.value)
        return SyncResult.skipped(reason)

    @contextmanager
    def _watcher_suppressed(self) -> Iterator[None]:
        watcher = self._watcher
        if watcher is None:
            yield
            return
        with watcher.suppressed():
            yield
