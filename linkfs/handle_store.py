"""Persistence for the workspace root capability across sessions.

The store keeps exactly one record, keyed by ``WORKSPACE_KEY``. Backend
failures never propagate out of ``HandleStore``: losing the cached handle only
means the user has to pick the folder again.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from . import config
from .capability import DirectoryCapability
from .errors import PersistenceError

logger = logging.getLogger(__name__)

WORKSPACE_KEY = "workspace"


@runtime_checkable
class KeyValueStore(Protocol):
    """Embedded key-value backend. Failures raise ``PersistenceError``."""

    def get(self, key: str) -> object | None:
        ...

    def put(self, key: str, value: object) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """Process-local backend for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, object] = {}

    def get(self, key: str) -> object | None:
        return self._data.get(key)

    def put(self, key: str, value: object) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Backend holding all records in one JSON object on disk.

    Writes go to a temporary sibling file that replaces the target, so a crash
    mid-write leaves the previous document intact.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else config.STORE_PATH

    def _load(self) -> dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise PersistenceError(f"cannot read {self.path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise PersistenceError(f"corrupt store {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"corrupt store {self.path}: expected an object")
        return data

    def _save(self, data: dict[str, object]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".handles-", suffix=".json", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2)
                    handle.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"cannot write {self.path}: {exc}") from exc

    def get(self, key: str) -> object | None:
        return self._load().get(key)

    def put(self, key: str, value: object) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class HandleStore:
    """Owner of the session's root capability.

    ``get_stored_handle`` reads the backend at most once per session unless
    ``invalidate`` is called.
    """

    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self._backend = backend if backend is not None else JsonFileStore()
        self._handle: DirectoryCapability | None = None
        self._loaded = False
        self._revoked = False

    async def set_workspace(self, capability: DirectoryCapability) -> None:
        """Make ``capability`` the workspace root and persist it.

        The previous root is replaced, never merged. A persistence failure is
        logged; the handle still applies for the rest of this session.
        """
        self._handle = capability
        self._loaded = True
        self._revoked = False
        try:
            await asyncio.to_thread(self._backend.put, WORKSPACE_KEY, capability.to_token())
        except PersistenceError:
            logger.warning("Could not persist workspace %s", capability.path, exc_info=True)

    async def get_stored_handle(self) -> DirectoryCapability | None:
        """Return the current root, loading it from the backend on first use."""
        if self._handle is not None:
            return self._handle
        if self._revoked or self._loaded:
            return None

        self._loaded = True
        try:
            token = await asyncio.to_thread(self._backend.get, WORKSPACE_KEY)
        except PersistenceError:
            logger.warning("Could not load stored workspace", exc_info=True)
            return None
        if token is None:
            return None

        capability = DirectoryCapability.from_token(token)
        if capability is None:
            logger.warning("Ignoring malformed stored workspace record: %r", token)
            return None
        try:
            exists = await asyncio.to_thread(capability.path.is_dir)
        except OSError as exc:
            logger.warning("Cannot access stored workspace %s: %s", capability.path, exc)
            return None
        if not exists:
            logger.warning("Stored workspace %s no longer exists", capability.path)
            return None
        self._handle = capability
        return capability

    def invalidate(self) -> None:
        """Forget the in-memory handle so the next lookup re-reads the backend."""
        self._handle = None
        self._loaded = False
        self._revoked = False

    def mark_revoked(self) -> None:
        """Record that access to the root was withdrawn.

        Lookups return ``None`` until ``set_workspace`` is called again. The
        persisted record is kept.
        """
        if self._handle is not None:
            logger.warning("Access to workspace %s was revoked", self._handle.path)
        self._handle = None
        self._revoked = True

    async def clear(self) -> None:
        """Delete the persisted record and forget the current handle."""
        self._handle = None
        self._loaded = True
        self._revoked = False
        try:
            await asyncio.to_thread(self._backend.delete, WORKSPACE_KEY)
        except PersistenceError:
            logger.warning("Could not clear stored workspace", exc_info=True)


__all__ = [
    "WORKSPACE_KEY",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "HandleStore",
]
