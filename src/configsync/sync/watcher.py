"""
ConfigSync change watcher.

Observes the store directory with watchdog and turns bursts of filesystem
notifications into a single "changed" callback once the directory has been
quiet for the debounce period.

The watchdog handler (producer) and the debounce thread (consumer) only
share a bounded queue. Pull suppression is owned by the consumer side: the
engine pauses it around its own writes so they never echo back as pushes.
"""

from __future__ import annotations

import os
import queue
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from configsync.core.errors import StoreIOError
from configsync.core.logging import get_logger
from configsync.core.models import is_tracked_name

logger = get_logger(__name__)

DEFAULT_SUPPRESS_GRACE = 2.0
_STOP = object()
_STOP_POLL = 0.5


def is_tracked_event(event: FileSystemEvent) -> bool:
    """Whether a watchdog event represents a completed write to a tracked file.

    Deletions never count: they are not a finished write.
    """
    if event.is_directory:
        return False
    if event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
        path = event.src_path
    elif event.event_type == EVENT_TYPE_MOVED:
        path = event.dest_path
    else:
        return False
    return is_tracked_name(Path(os.fsdecode(path)).name)


class DebounceState(Enum):
    IDLE = auto()
    PENDING_CHANGE = auto()


class Debouncer:
    """Coalesces notifications into one callback after a quiet period."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        max_pending: int = 1024,
        name: str = "configsync-debounce",
    ) -> None:
        if delay <= 0:
            raise ValueError("delay must be positive")
        self.delay = delay
        self.callback = callback
        self.name = name
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max_pending)
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._state = DebounceState.IDLE
        self._paused = False
        self._suppressed_until = 0.0
        self._generation = 0

    @property
    def state(self) -> DebounceState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def notify(self) -> None:
        """Record one matching notification. Never blocks."""
        try:
            self._queue.put_nowait(time.monotonic())
        except queue.Full:
            # The consumer is behind; dropping keeps the producer non-blocking.
            logger.debug("Debounce queue full, dropping notification")

    def start(self) -> None:
        if self.is_running:
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the consumer. No callback fires once this returns."""
        self._stopped.set()
        thread = self._thread
        if thread is None:
            return
        try:
            self._queue.put_nowait(_STOP)
        except queue.Full:
            # The consumer sees _stopped on its next bounded wait.
            pass
        if thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def pause(self) -> None:
        """Discard all notifications until :meth:`resume`."""
        with self._lock:
            self._paused = True
            self._generation += 1

    def resume(self, grace: float = 0.0) -> None:
        """Accept notifications again once ``grace`` seconds have passed."""
        with self._lock:
            self._paused = False
            self._suppressed_until = max(self._suppressed_until, time.monotonic() + grace)
            self._generation += 1

    def suppress(self, seconds: float) -> None:
        """Ignore notifications for the next ``seconds`` seconds."""
        with self._lock:
            self._suppressed_until = max(self._suppressed_until, time.monotonic() + seconds)
            self._generation += 1

    def _is_suppressed(self, stamp: float) -> bool:
        with self._lock:
            return self._paused or stamp <= self._suppressed_until

    def _set_state(self, state: DebounceState) -> None:
        with self._lock:
            self._state = state

    def _run(self) -> None:
        deadline: float | None = None
        generation = 0

        while not self._stopped.is_set():
            timeout = _STOP_POLL if deadline is None else max(0.0, deadline - time.monotonic())
            timeout = min(timeout, _STOP_POLL)
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                item = None

            if item is _STOP:
                break

            if item is not None:
                stamp = float(item)  # type: ignore[arg-type]
                if self._is_suppressed(stamp):
                    continue
                if deadline is None:
                    with self._lock:
                        generation = self._generation
                    self._set_state(DebounceState.PENDING_CHANGE)
                deadline = stamp + self.delay
                continue

            if deadline is None or time.monotonic() < deadline:
                continue

            deadline = None
            self._set_state(DebounceState.IDLE)
            with self._lock:
                stale = self._paused or generation != self._generation
            if stale:
                logger.debug("Dropping change pending across a suppression window")
                continue
            if self._stopped.is_set():
                break
            try:
                self.callback()
            except Exception:
                logger.exception("Change callback failed")

        self._set_state(DebounceState.IDLE)


@dataclass(frozen=True)
class StoreChanged:
    """Emitted once per debounced burst of store modifications."""

    directory: Path
    detected_at: datetime


class StoreEventHandler(FileSystemEventHandler):
    """Forwards tracked-file events to a debouncer."""

    def __init__(self, debouncer: Debouncer) -> None:
        super().__init__()
        self.debouncer = debouncer

    def on_any_event(self, event: FileSystemEvent) -> None:
        if is_tracked_event(event):
            self.debouncer.notify()


class StoreWatcher:
    """Watches a store directory and reports debounced changes."""

    def __init__(
        self,
        directory: Path,
        debounce_seconds: float,
        callback: Callable[[StoreChanged], None],
    ) -> None:
        self.directory = Path(directory)
        self.callback = callback
        self.debouncer = Debouncer(debounce_seconds, self._emit)
        self._observer: Observer | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start observing. Returns immediately; work happens on background threads."""
        with self._lock:
            if self._observer is not None:
                return
            observer = Observer()
            try:
                observer.schedule(
                    StoreEventHandler(self.debouncer), str(self.directory), recursive=False
                )
                self.debouncer.start()
                observer.start()
            except OSError as e:
                self.debouncer.stop()
                raise StoreIOError(f"Cannot watch {self.directory}: {e}", self.directory) from e
            self._observer = observer

        logger.info(
            "Watching store",
            directory=str(self.directory),
            debounce_seconds=self.debouncer.delay,
        )

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout)
        self.debouncer.stop(timeout)
        logger.info("Stopped watching store", directory=str(self.directory))

    def suppress(self, seconds: float) -> None:
        self.debouncer.suppress(seconds)

    @contextmanager
    def suppressed(self, grace: float = DEFAULT_SUPPRESS_GRACE) -> Iterator[None]:
        """Pause change reporting for the duration of the block, plus ``grace``."""
        self.debouncer.pause()
        try:
            yield
        finally:
            self.debouncer.resume(grace)

    def _emit(self) -> None:
        changed = StoreChanged(directory=self.directory, detected_at=datetime.now(timezone.utc))
        logger.info("Store change detected", directory=str(self.directory))
        self.callback(changed)
