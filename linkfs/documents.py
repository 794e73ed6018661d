"""Editor-facing document model for workspace files."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class Document:
    """In-editor view of one workspace file.

    ``id`` equals ``file_path``. ``updated_at`` and ``size`` are refreshed by
    the workspace session on every load and save.
    """

    id: str
    title: str
    content: str
    file_path: str
    created_at: datetime
    updated_at: datetime
    size: int


def timestamp_from_ns(mtime_ns: int) -> datetime:
    """Convert a ``st_mtime_ns`` value into an aware UTC datetime."""
    return datetime.fromtimestamp(mtime_ns / 1_000_000_000, tz=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = ["Document", "timestamp_from_ns", "utc_now"]
