"""Poll-based change detection for a workspace root.

The loop re-derives a flat snapshot every few seconds, diffs it against the
previous one and fans the resulting events out to listeners. Snapshot state is
private to the loop; one scan runs at a time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from .capability import DirectoryCapability
from .config import DEFAULT_POLL_INTERVAL_SECONDS, WorkspaceConfig
from .file_tree_model import FileChangeEvent, FlatSnapshot, build_flat_snapshot, diff_snapshots

logger = logging.getLogger(__name__)

FileChangeListener = Callable[[FileChangeEvent], None]

IDLE = "idle"
WATCHING = "watching"


class WatchLoop:
    """Periodic snapshot/diff/publish cycle with a listener set.

    States are ``idle`` and ``watching``. Stopping while a scan is in flight
    lets the scan finish but drops its result. ``force_check`` runs a cycle
    without touching the timer; it waits for any scan already running.
    """

    def __init__(
        self,
        config: WorkspaceConfig | None = None,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.config = config or WorkspaceConfig()
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._listeners: dict[FileChangeListener, None] = {}
        self._capability: DirectoryCapability | None = None
        self._snapshot: FlatSnapshot | None = None
        self._timer_task: asyncio.Task | None = None
        self._scan_lock = asyncio.Lock()
        # Bumped on every start/stop; a scan whose generation is stale is discarded.
        self._generation = 0

    @property
    def state(self) -> str:
        return WATCHING if self._capability is not None else IDLE

    @property
    def is_active(self) -> bool:
        return self._capability is not None

    @property
    def capability(self) -> DirectoryCapability | None:
        return self._capability

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: FileChangeListener) -> None:
        self._listeners[listener] = None

    def remove_listener(self, listener: FileChangeListener) -> None:
        self._listeners.pop(listener, None)

    async def start_watching(self, capability: DirectoryCapability) -> None:
        """Capture the initial snapshot of ``capability`` and start the timer.

        Starting again on the same directory is a no-op; starting on another
        directory stops the current loop first.
        """
        if self._capability is not None:
            if self._capability.same_entry(capability):
                return
            self.stop_watching()

        self._generation += 1
        generation = self._generation
        self._capability = capability
        async with self._scan_lock:
            try:
                snapshot = await build_flat_snapshot(capability, self.config)
            except Exception:
                # Watching still starts; the first tick takes a fresh baseline.
                logger.warning("Initial scan of %s failed", capability.path, exc_info=True)
                snapshot = None
            if generation != self._generation:
                return
            self._snapshot = snapshot

        self._timer_task = asyncio.create_task(self._run_timer(generation))
        logger.info("Watching %s every %.1fs", capability.path, self.interval_seconds)

    def stop_watching(self) -> None:
        """Cancel the timer and drop snapshot state. Idempotent."""
        if self._capability is None and self._timer_task is None:
            return
        self._generation += 1
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
        path = self._capability.path if self._capability is not None else None
        self._snapshot = None
        self._capability = None
        logger.info("Stopped watching %s", path)

    async def force_check(self) -> list[FileChangeEvent]:
        """Run one cycle now and return the events it delivered to listeners."""
        if self._capability is None:
            return []
        return await self._check_for_changes()

    async def _run_timer(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self.interval_seconds)
            if generation != self._generation:
                return
            # Shielded so cancellation from stop_watching lets the scan finish.
            await asyncio.shield(self._check_for_changes())

    async def _check_for_changes(self) -> list[FileChangeEvent]:
        async with self._scan_lock:
            generation = self._generation
            capability = self._capability
            if capability is None:
                return []
            try:
                current = await build_flat_snapshot(capability, self.config)
            except Exception:
                logger.warning("Scan of %s failed", capability.path, exc_info=True)
                return []
            if generation != self._generation:
                return []

            previous = self._snapshot
            if previous is None:
                self._snapshot = current
                return []

            delivered: list[FileChangeEvent] = []
            for event in diff_snapshots(previous, current, timestamp=self._clock()):
                # A listener may have stopped or restarted the loop.
                if generation != self._generation:
                    break
                self._notify(event)
                delivered.append(event)
            if generation == self._generation:
                self._snapshot = current
            return delivered

    def _notify(self, event: FileChangeEvent) -> None:
        logger.debug("File change: %s %s", event.type, event.path)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("File change listener %r failed", listener)


__all__ = [
    "FileChangeListener",
    "IDLE",
    "WATCHING",
    "WatchLoop",
]
