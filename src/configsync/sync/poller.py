"""
Inbound change poller.

Runs ``engine.sync(allow_push=False)`` on a fixed interval so remote edits
reach this machine. It only ever pulls or skips; pushes come from the
watcher or from the user. Transient failures are retried with exponential
backoff, which the engine itself never does.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from configsync.core.errors import ConfigSyncError
from configsync.core.logging import get_logger
from configsync.core.models import SyncResult

if TYPE_CHECKING:
    from configsync.sync.engine import SyncEngine

logger = get_logger(__name__)


class RemotePoller:
    """Background thread polling the provider for newer remote state."""

    def __init__(
        self,
        engine: SyncEngine,
        interval: float = 30.0,
        max_backoff: float = 300.0,
        on_result: Callable[[SyncResult], None] | None = None,
        on_error: Callable[[ConfigSyncError], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.engine = engine
        self.interval = interval
        self.max_backoff = max(max_backoff, interval)
        self.on_result = on_result
        self.on_error = on_error
        self.consecutive_failures = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_delay(self) -> float:
        """Seconds until the next poll given the current failure streak."""
        if self.consecutive_failures == 0:
            return self.interval
        return min(self.interval * (2**self.consecutive_failures), self.max_backoff)

    def poll_once(self) -> SyncResult | None:
        """Run one pull-only reconciliation. Returns None on failure."""
        try:
            result = self.engine.sync(allow_push=False)
        except ConfigSyncError as e:
            self.consecutive_failures += 1
            logger.warning(
                "Inbound poll failed",
                error_type=type(e).__name__,
                error=str(e),
                consecutive_failures=self.consecutive_failures,
                retry_in_seconds=self.next_delay(),
            )
            self._notify(self.on_error, e)
            return None
        except Exception:
            self.consecutive_failures += 1
            logger.exception(
                "Inbound poll crashed",
                consecutive_failures=self.consecutive_failures,
                retry_in_seconds=self.next_delay(),
            )
            return None

        self.consecutive_failures = 0
        logger.debug("Inbound poll finished", result=result.message)
        self._notify(self.on_result, result)
        return result

    def _notify(self, callback: Callable[..., None] | None, value: object) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            logger.warning("Poller callback error", error=str(e))

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="configsync-poller", daemon=True)
        self._thread.start()
        logger.info("Remote poller started", interval_seconds=self.interval)

    def stop(self, timeout: float | None = None) -> None:
        """Stop polling. An in-flight provider call is allowed to finish."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Remote poller stopped")

    def _run(self) -> None:
        while not self._stop.wait(self.next_delay()):
            self.poll_once()
