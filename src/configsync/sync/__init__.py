"""
ConfigSync sync module.

Local store access, backups, change watching and last-write-wins
reconciliation against a provider.
"""

from configsync.sync.backup import BackupManager
from configsync.sync.engine import SyncEngine
from configsync.sync.poller import RemotePoller
from configsync.sync.service import SyncService
from configsync.sync.store import LocalStore
from configsync.sync.watcher import StoreWatcher

__all__ = [
    "BackupManager",
    "SyncEngine",
    "RemotePoller",
    "SyncService",
    "LocalStore",
    "StoreWatcher",
]
