"""
ConfigSync Core - Shared building blocks.

Contains the data model, configuration, logging, error types and the
safety guard used by the sync layer.
"""

from configsync.core.config import ConfigSyncConfig, SyncConfig
from configsync.core.errors import ConfigSyncError, ProviderError, StoreIOError
from configsync.core.logging import get_logger, setup_logging
from configsync.core.models import ConfigSnapshot, SkipReason, SyncMeta, SyncResult
from configsync.core.safety import SafetyGuard, run_preflight

__all__ = [
    "ConfigSyncConfig",
    "SyncConfig",
    "ConfigSyncError",
    "ProviderError",
    "StoreIOError",
    "get_logger",
    "setup_logging",
    "ConfigSnapshot",
    "SkipReason",
    "SyncMeta",
    "SyncResult",
    "SafetyGuard",
    "run_preflight",
]
