"""Snapshot differ: turns two flat snapshots into change events."""

from __future__ import annotations

import time

from .types import FileChangeEvent, FlatSnapshot


def diff_snapshots(
    previous: FlatSnapshot,
    current: FlatSnapshot,
    timestamp: float | None = None,
) -> list[FileChangeEvent]:
    """Compute created/modified/deleted events between two snapshots.

    A file counts as modified when its size or mtime differs. Renames surface
    as a ``deleted`` plus a ``created`` event. Consumers must not rely on event
    order. Neither argument is mutated.
    """
    stamp = time.time() if timestamp is None else timestamp
    events: list[FileChangeEvent] = []
    for path, stat in current.items():
        before = previous.get(path)
        if before is None:
            events.append(FileChangeEvent(type="created", path=path, timestamp=stamp))
        elif before.size != stat.size or before.mtime_ns != stat.mtime_ns:
            events.append(FileChangeEvent(type="modified", path=path, timestamp=stamp))

    for path in previous:
        if path not in current:
            events.append(FileChangeEvent(type="deleted", path=path, timestamp=stamp))
    return events


__all__ = ["diff_snapshots"]
