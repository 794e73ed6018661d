"""Capability handles over a user-selected directory tree.

A ``DirectoryCapability`` grants enumerate/read/write access to one directory
and everything below it, and nothing else: children are reached one segment at
a time, never through raw path strings. Blocking OS calls run in worker
threads via ``asyncio.to_thread`` so every step is a suspension point for the
calling task.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat as stat_module
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from .errors import PathNotFoundError, WorkspaceError, WorkspacePermissionError

logger = logging.getLogger(__name__)

TOKEN_KIND = "directory"


@dataclass(frozen=True)
class FileStat:
    """Size and modification time of one file, read without opening it."""

    size: int
    mtime_ns: int


def _check_segment(name: str) -> None:
    """Reject names that would step outside the owning directory."""
    if not name or name in (".", ".."):
        raise ValueError(f"invalid entry name: {name!r}")
    if "/" in name or (os.altsep is not None and os.altsep in name) or os.sep in name:
        raise ValueError(f"entry name must be a single path segment: {name!r}")


def _raise_translated(exc: OSError, path: Path) -> NoReturn:
    """Re-raise an OS failure as its workspace error type."""
    if isinstance(exc, WorkspaceError):
        raise exc
    if isinstance(exc, PermissionError):
        raise WorkspacePermissionError(str(path)) from exc
    if isinstance(exc, FileNotFoundError):
        raise PathNotFoundError(str(path)) from exc
    if isinstance(exc, NotADirectoryError):
        raise PathNotFoundError(str(path), "not a folder") from exc
    if isinstance(exc, IsADirectoryError):
        raise PathNotFoundError(str(path), "not a file") from exc
    raise exc


class FileCapability:
    """Handle to one regular file inside a workspace."""

    kind = "file"

    def __init__(self, path: Path) -> None:
        self._path = path

    def __repr__(self) -> str:
        return f"FileCapability({str(self._path)!r})"

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def path(self) -> Path:
        return self._path

    def _stat(self) -> FileStat:
        st = self._path.stat()
        return FileStat(size=int(st.st_size), mtime_ns=int(st.st_mtime_ns))

    async def stat(self) -> FileStat:
        """Return size and mtime without reading content."""
        try:
            return await asyncio.to_thread(self._stat)
        except OSError as exc:
            _raise_translated(exc, self._path)

    async def read_bytes(self) -> bytes:
        try:
            return await asyncio.to_thread(self._path.read_bytes)
        except OSError as exc:
            _raise_translated(exc, self._path)

    async def write_bytes(self, data: bytes) -> None:
        """Replace the whole file content with ``data``."""
        try:
            await asyncio.to_thread(self._path.write_bytes, data)
        except OSError as exc:
            _raise_translated(exc, self._path)


class DirectoryCapability:
    """Handle to one directory inside (or at the root of) a workspace."""

    kind = "directory"

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).absolute()

    def __repr__(self) -> str:
        return f"DirectoryCapability({str(self._path)!r})"

    @property
    def name(self) -> str:
        return self._path.name or str(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def same_entry(self, other: object) -> bool:
        """Return whether ``other`` grants access to the same directory."""
        if not isinstance(other, DirectoryCapability):
            return False
        try:
            return self._path.resolve() == other._path.resolve()
        except OSError:
            return self._path == other._path

    def _scan(self) -> list[tuple[str, FileCapability | DirectoryCapability]]:
        entries: list[tuple[str, FileCapability | DirectoryCapability]] = []
        with os.scandir(self._path) as iterator:
            for entry in iterator:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        entries.append((entry.name, DirectoryCapability(Path(entry.path))))
                    elif entry.is_file(follow_symlinks=False):
                        entries.append((entry.name, FileCapability(Path(entry.path))))
                except OSError as exc:
                    logger.warning("Skipping %s: %s", entry.path, exc)
        return entries

    async def entries(self) -> list[tuple[str, FileCapability | DirectoryCapability]]:
        """Enumerate direct children as ``(name, handle)`` pairs in OS order."""
        try:
            return await asyncio.to_thread(self._scan)
        except OSError as exc:
            _raise_translated(exc, self._path)

    def _get_directory(self, name: str, create: bool) -> DirectoryCapability:
        target = self._path / name
        try:
            mode = target.lstat().st_mode
        except FileNotFoundError:
            if not create:
                raise PathNotFoundError(str(target)) from None
            target.mkdir()
            return DirectoryCapability(target)
        if not stat_module.S_ISDIR(mode):
            raise PathNotFoundError(str(target), "not a folder")
        return DirectoryCapability(target)

    async def get_directory(self, name: str, *, create: bool = False) -> DirectoryCapability:
        """Resolve child folder ``name``, creating it when ``create`` is set."""
        _check_segment(name)
        try:
            return await asyncio.to_thread(self._get_directory, name, create)
        except OSError as exc:
            _raise_translated(exc, self._path / name)

    def _get_file(self, name: str, create: bool) -> FileCapability:
        target = self._path / name
        try:
            mode = target.lstat().st_mode
        except FileNotFoundError:
            if not create:
                raise PathNotFoundError(str(target)) from None
            target.touch()
            return FileCapability(target)
        if not stat_module.S_ISREG(mode):
            raise PathNotFoundError(str(target), "not a file")
        return FileCapability(target)

    async def get_file(self, name: str, *, create: bool = False) -> FileCapability:
        """Resolve child file ``name``, creating an empty file when ``create`` is set."""
        _check_segment(name)
        try:
            return await asyncio.to_thread(self._get_file, name, create)
        except OSError as exc:
            _raise_translated(exc, self._path / name)

    def _remove_entry(self, name: str, recursive: bool) -> None:
        target = self._path / name
        try:
            mode = target.lstat().st_mode
        except FileNotFoundError:
            raise PathNotFoundError(str(target)) from None
        if not stat_module.S_ISDIR(mode):
            target.unlink()
        elif recursive:
            shutil.rmtree(target)
        else:
            target.rmdir()

    async def remove_entry(self, name: str, *, recursive: bool = False) -> None:
        """Remove child ``name``; folders need ``recursive`` unless empty."""
        _check_segment(name)
        try:
            await asyncio.to_thread(self._remove_entry, name, recursive)
        except OSError as exc:
            _raise_translated(exc, self._path / name)

    async def query_permission(self) -> bool:
        """Return whether this directory is still readable, writable and listable."""
        return await asyncio.to_thread(
            lambda: self._path.is_dir() and os.access(self._path, os.R_OK | os.W_OK | os.X_OK)
        )

    def to_token(self) -> dict[str, str]:
        """Serialize for the handle store."""
        return {"kind": TOKEN_KIND, "path": str(self._path)}

    @classmethod
    def from_token(cls, token: object) -> DirectoryCapability | None:
        """Rebuild a capability from ``to_token`` output; ``None`` for bad tokens."""
        if not isinstance(token, dict) or token.get("kind") != TOKEN_KIND:
            return None
        raw_path = token.get("path")
        if not isinstance(raw_path, str) or not raw_path:
            return None
        return cls(Path(raw_path))


__all__ = [
    "FileStat",
    "FileCapability",
    "DirectoryCapability",
]
