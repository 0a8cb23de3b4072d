"""
ConfigSync - Keep one application's configuration database in sync across machines.

Watches the owning application's SQLite store, pushes local edits to an
exchange point (a shared folder or the hosted API) and pulls newer remote
state back, taking a backup before anything is overwritten.
"""

__version__ = "1.0.0"
__author__ = "ConfigSync Team"

from configsync.core.config import ConfigSyncConfig
from configsync.sync.engine import SyncEngine
from configsync.sync.service import SyncService

__all__ = ["ConfigSyncConfig", "SyncEngine", "SyncService", "__version__"]
