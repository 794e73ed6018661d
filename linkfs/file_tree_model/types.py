"""Domain datatypes for workspace trees, flat snapshots and change events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..capability import FileStat

ChangeType = Literal["created", "modified", "deleted", "renamed"]

FOLDER = "folder"
FILE = "file"


def _leaf_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class FileNode:
    """File entry with the metadata read from the directory listing."""

    path: str
    extension: str
    size: int
    mtime_ns: int

    @property
    def id(self) -> str:
        return self.path

    @property
    def name(self) -> str:
        return _leaf_name(self.path)

    @property
    def kind(self) -> str:
        return FILE


@dataclass(frozen=True)
class FolderNode:
    """Folder entry with recursively nested, already sorted children."""

    path: str
    children: tuple["TreeNode", ...] = ()

    @property
    def id(self) -> str:
        return self.path

    @property
    def name(self) -> str:
        return _leaf_name(self.path)

    @property
    def kind(self) -> str:
        return FOLDER


TreeNode = FolderNode | FileNode

# Relative "/"-joined path -> metadata for every included file.
FlatSnapshot = dict[str, FileStat]


@dataclass(frozen=True)
class FileChangeEvent:
    """One change observed between two consecutive snapshots.

    ``renamed`` and ``old_path`` are reserved; the differ reports a rename as a
    ``deleted`` plus a ``created`` event.
    """

    type: ChangeType
    path: str
    timestamp: float
    old_path: str | None = None


__all__ = [
    "ChangeType",
    "FOLDER",
    "FILE",
    "FileNode",
    "FolderNode",
    "TreeNode",
    "FlatSnapshot",
    "FileChangeEvent",
]
