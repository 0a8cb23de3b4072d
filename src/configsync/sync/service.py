"""
ConfigSync background service.

Wires the provider, engine, watcher and poller together for a long-running
process: local edits are pushed after the debounce period, remote edits are
pulled by the poller.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from configsync.core.config import ConfigSyncConfig, load_config
from configsync.core.errors import ConfigSyncError, StoreIOError
from configsync.core.logging import get_logger, setup_logging
from configsync.core.models import SyncResult
from configsync.providers import SyncProvider, create_provider
from configsync.sync.engine import SyncEngine
from configsync.sync.poller import RemotePoller
from configsync.sync.watcher import StoreChanged, StoreWatcher

logger = get_logger(__name__)


class SyncService:
    """Owns one engine plus its watcher and poller for a session."""

    def __init__(
        self,
        config: ConfigSyncConfig | None = None,
        provider: SyncProvider | None = None,
        on_result: Callable[[str, SyncResult], None] | None = None,
    ) -> None:
        self.config = config or load_config()
        setup_logging(self.config.logging)

        sync_config = self.config.sync
        self.provider = provider or create_provider(sync_config)
        self.engine = SyncEngine(sync_config, self.provider)
        self.on_result = on_result
        self.watcher = StoreWatcher(
            sync_config.store_directory,
            sync_config.debounce_seconds,
            self._on_store_changed,
        )
        self.poller = RemotePoller(
            self.engine,
            interval=sync_config.poll_interval_seconds,
            max_backoff=sync_config.max_backoff_seconds,
            on_result=lambda result: self._report("poll", result),
        )
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start watching and polling. Returns immediately."""
        if self._started:
            return

        self.engine.attach_watcher(self.watcher)
        try:
            self.watcher.start()
        except StoreIOError as e:
            # Store directory not created by the owner yet; inbound sync still works.
            logger.warning("Store watcher not started", error=str(e))
            self.engine.attach_watcher(None)
        self.poller.start()
        self._started = True

        logger.info(
            "Sync service started",
            provider=self.provider.name,
            device=self.config.sync.device_name,
            store=str(self.config.sync.store_directory),
        )

    def stop(self) -> None:
        """Stop the watcher and poller. In-flight provider calls finish first."""
        if not self._started:
            return
        self.watcher.stop()
        self.poller.stop()
        self.engine.attach_watcher(None)
        self.provider.close()
        self._started = False
        logger.info("Sync service stopped")

    def sync_now(self) -> SyncResult:
        return self._report("sync", self.engine.sync())

    def push_now(self) -> SyncResult:
        return self._report("push", self.engine.push_to_remote())

    def pull_now(self) -> SyncResult:
        return self._report("pull", self.engine.pull_from_remote())

    def _on_store_changed(self, changed: StoreChanged) -> None:
        try:
            result = self.engine.push_to_remote()
        except ConfigSyncError as e:
            logger.error(
                "Auto-push failed",
                error_type=type(e).__name__,
                error=str(e),
                directory=str(changed.directory),
            )
            return
        self._report("auto-push", result)

    def _report(self, trigger: str, result: SyncResult) -> SyncResult:
        logger.info("Sync result", trigger=trigger, result=result.message)
        if self.on_result is not None:
            try:
                self.on_result(trigger, result)
            except Exception as e:
                logger.warning("Result callback error", error=str(e))
        return result

    def __enter__(self) -> SyncService:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
