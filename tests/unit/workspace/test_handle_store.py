"""Tests for workspace handle persistence across sessions."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from linkfs.capability import DirectoryCapability
from linkfs.errors import PersistenceError
from linkfs.handle_store import WORKSPACE_KEY, HandleStore, JsonFileStore, MemoryStore


class CountingStore(MemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.gets = 0

    def get(self, key: str) -> object | None:
        self.gets += 1
        return super().get(key)


class BrokenStore:
    def get(self, key: str) -> object | None:
        raise PersistenceError("store unavailable")

    def put(self, key: str, value: object) -> None:
        raise PersistenceError("quota exceeded")

    def delete(self, key: str) -> None:
        raise PersistenceError("store unavailable")


class HandleStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = Path(tmp.name).resolve()
        self.workspace = self.tmp / "workspace"
        self.workspace.mkdir()
        self.store_path = self.tmp / "data" / "handles.json"

    async def test_handle_survives_reload_through_json_file(self) -> None:
        await HandleStore(JsonFileStore(self.store_path)).set_workspace(DirectoryCapability(self.workspace))

        reloaded = await HandleStore(JsonFileStore(self.store_path)).get_stored_handle()

        self.assertIsNotNone(reloaded)
        self.assertEqual(reloaded.path, self.workspace)
        saved = json.loads(self.store_path.read_text(encoding="utf-8"))
        self.assertEqual(saved[WORKSPACE_KEY], {"kind": "directory", "path": str(self.workspace)})

    async def test_default_json_store_uses_configured_path(self) -> None:
        with mock.patch("linkfs.config.STORE_PATH", self.store_path):
            store = JsonFileStore()
        self.assertEqual(store.path, self.store_path)

    async def test_new_workspace_replaces_previous_one(self) -> None:
        other = self.tmp / "other"
        other.mkdir()
        backend = JsonFileStore(self.store_path)
        store = HandleStore(backend)
        await store.set_workspace(DirectoryCapability(self.workspace))
        await store.set_workspace(DirectoryCapability(other))

        reloaded = await HandleStore(backend).get_stored_handle()

        self.assertEqual(reloaded.path, other)
        self.assertEqual(list(json.loads(self.store_path.read_text(encoding="utf-8"))), [WORKSPACE_KEY])

    async def test_backend_is_read_at_most_once_until_invalidated(self) -> None:
        backend = CountingStore()
        store = HandleStore(backend)

        self.assertIsNone(await store.get_stored_handle())
        self.assertIsNone(await store.get_stored_handle())
        self.assertEqual(backend.gets, 1)

        backend.put(WORKSPACE_KEY, DirectoryCapability(self.workspace).to_token())
        store.invalidate()
        loaded = await store.get_stored_handle()
        await store.get_stored_handle()

        self.assertEqual(loaded.path, self.workspace)
        self.assertEqual(backend.gets, 2)

    async def test_persistence_failures_degrade_to_no_workspace(self) -> None:
        store = HandleStore(BrokenStore())

        with self.assertLogs("linkfs.handle_store", level="WARNING"):
            self.assertIsNone(await store.get_stored_handle())
        with self.assertLogs("linkfs.handle_store", level="WARNING"):
            await store.set_workspace(DirectoryCapability(self.workspace))

        self.assertEqual((await store.get_stored_handle()).path, self.workspace)

    async def test_corrupt_store_file_loads_nothing(self) -> None:
        self.store_path.parent.mkdir(parents=True)
        self.store_path.write_text("{not json", encoding="utf-8")

        with self.assertLogs("linkfs.handle_store", level="WARNING"):
            self.assertIsNone(await HandleStore(JsonFileStore(self.store_path)).get_stored_handle())

    async def test_malformed_record_and_missing_directory_load_nothing(self) -> None:
        backend = MemoryStore()
        backend.put(WORKSPACE_KEY, {"kind": "file", "path": "/tmp"})
        with self.assertLogs("linkfs.handle_store", level="WARNING"):
            self.assertIsNone(await HandleStore(backend).get_stored_handle())

        backend.put(WORKSPACE_KEY, DirectoryCapability(self.tmp / "deleted").to_token())
        with self.assertLogs("linkfs.handle_store", level="WARNING"):
            self.assertIsNone(await HandleStore(backend).get_stored_handle())

    async def test_inaccessible_stored_directory_loads_nothing(self) -> None:
        backend = MemoryStore()
        backend.put(WORKSPACE_KEY, DirectoryCapability(self.workspace).to_token())

        with mock.patch.object(Path, "is_dir", side_effect=PermissionError(13, "Permission denied")):
            with self.assertLogs("linkfs.handle_store", level="WARNING") as logs:
                self.assertIsNone(await HandleStore(backend).get_stored_handle())

        self.assertIn("Cannot access stored workspace", logs.output[0])

    async def test_revoked_handle_is_hidden_until_reselected(self) -> None:
        backend = MemoryStore()
        store = HandleStore(backend)
        await store.set_workspace(DirectoryCapability(self.workspace))

        store.mark_revoked()

        self.assertIsNone(await store.get_stored_handle())
        self.assertIsNotNone(backend.get(WORKSPACE_KEY))
        await store.set_workspace(DirectoryCapability(self.workspace))
        self.assertIsNotNone(await store.get_stored_handle())

    async def test_clear_removes_persisted_record(self) -> None:
        backend = JsonFileStore(self.store_path)
        store = HandleStore(backend)
        await store.set_workspace(DirectoryCapability(self.workspace))

        await store.clear()

        self.assertIsNone(await store.get_stored_handle())
        self.assertIsNone(await HandleStore(backend).get_stored_handle())


if __name__ == "__main__":
    unittest.main()
