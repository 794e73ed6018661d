"""Tests for the polling watch loop lifecycle and event fan-out."""

from __future__ import annotations

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from linkfs import watch
from linkfs.capability import DirectoryCapability
from linkfs.file_tree_model import FileChangeEvent
from linkfs.watch import WatchLoop

LONG_INTERVAL = 3600.0


class WatchLoopTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name).resolve()
        self.capability = DirectoryCapability(self.root)
        self.events: list[FileChangeEvent] = []
        self.watcher = WatchLoop(interval_seconds=LONG_INTERVAL, clock=lambda: 42.0)
        self.watcher.add_listener(self.events.append)
        self.addCleanup(self.watcher.stop_watching)

    async def test_force_check_publishes_one_created_event(self) -> None:
        await self.watcher.start_watching(self.capability)
        (self.root / "new.md").write_text("hello", encoding="utf-8")

        published = await self.watcher.force_check()

        self.assertEqual(self.events, [FileChangeEvent(type="created", path="new.md", timestamp=42.0)])
        self.assertEqual(published, self.events)
        self.assertEqual(await self.watcher.force_check(), [])

    async def test_modified_and_deleted_files_are_reported(self) -> None:
        (self.root / "edit.md").write_text("a", encoding="utf-8")
        (self.root / "drop.txt").write_text("b", encoding="utf-8")
        await self.watcher.start_watching(self.capability)

        (self.root / "edit.md").write_text("a longer body", encoding="utf-8")
        (self.root / "drop.txt").unlink()
        await self.watcher.force_check()

        self.assertEqual(
            {(event.type, event.path) for event in self.events},
            {("modified", "edit.md"), ("deleted", "drop.txt")},
        )

    async def test_changes_in_excluded_or_unwatched_files_are_ignored(self) -> None:
        await self.watcher.start_watching(self.capability)
        (self.root / "node_modules").mkdir()
        (self.root / "node_modules" / "readme.md").write_text("x", encoding="utf-8")
        (self.root / "script.py").write_text("x", encoding="utf-8")

        self.assertEqual(await self.watcher.force_check(), [])

    async def test_failing_listener_does_not_block_others(self) -> None:
        received: list[str] = []

        def broken(_event: FileChangeEvent) -> None:
            raise RuntimeError("listener bug")

        watcher = WatchLoop(interval_seconds=LONG_INTERVAL)
        self.addCleanup(watcher.stop_watching)
        watcher.add_listener(broken)
        watcher.add_listener(lambda event: received.append(event.path))
        await watcher.start_watching(self.capability)
        (self.root / "a.md").write_text("x", encoding="utf-8")

        with self.assertLogs("linkfs.watch", level="ERROR"):
            await watcher.force_check()

        self.assertEqual(received, ["a.md"])
        self.assertTrue(watcher.is_active)

    async def test_listener_registration(self) -> None:
        def listener(_event: FileChangeEvent) -> None:
            return None

        self.watcher.add_listener(listener)
        self.watcher.add_listener(listener)
        self.assertEqual(self.watcher.listener_count, 2)

        self.watcher.remove_listener(listener)
        self.watcher.remove_listener(listener)
        self.assertEqual(self.watcher.listener_count, 1)

    async def test_restart_on_same_directory_is_a_no_op(self) -> None:
        await self.watcher.start_watching(self.capability)
        (self.root / "later.md").write_text("x", encoding="utf-8")

        await self.watcher.start_watching(DirectoryCapability(self.root))
        await self.watcher.force_check()

        self.assertEqual([(event.type, event.path) for event in self.events], [("created", "later.md")])

    async def test_start_on_other_directory_replaces_the_loop(self) -> None:
        with tempfile.TemporaryDirectory() as other_tmp:
            other_root = Path(other_tmp).resolve()
            await self.watcher.start_watching(self.capability)
            await self.watcher.start_watching(DirectoryCapability(other_root))

            self.assertEqual(self.watcher.capability.path, other_root)
            (self.root / "old-root.md").write_text("x", encoding="utf-8")
            (other_root / "new-root.md").write_text("x", encoding="utf-8")
            await self.watcher.force_check()
            self.watcher.stop_watching()

        self.assertEqual([event.path for event in self.events], ["new-root.md"])

    async def test_stop_is_idempotent_and_returns_to_idle(self) -> None:
        self.assertEqual(self.watcher.state, "idle")
        await self.watcher.start_watching(self.capability)
        self.assertEqual(self.watcher.state, "watching")

        self.watcher.stop_watching()
        self.watcher.stop_watching()

        self.assertEqual(self.watcher.state, "idle")
        self.assertIsNone(self.watcher.capability)
        (self.root / "after-stop.md").write_text("x", encoding="utf-8")
        self.assertEqual(await self.watcher.force_check(), [])
        self.assertEqual(self.events, [])

    async def test_stop_during_scan_discards_its_result(self) -> None:
        await self.watcher.start_watching(self.capability)
        (self.root / "pending.md").write_text("x", encoding="utf-8")
        started = asyncio.Event()
        release = asyncio.Event()
        real_build = watch.build_flat_snapshot

        async def slow_build(capability, config):
            started.set()
            await release.wait()
            return await real_build(capability, config)

        with mock.patch("linkfs.watch.build_flat_snapshot", slow_build):
            check = asyncio.create_task(self.watcher.force_check())
            await started.wait()
            self.watcher.stop_watching()
            release.set()
            result = await check

        self.assertEqual(result, [])
        self.assertEqual(self.events, [])
        self.assertEqual(self.watcher.state, "idle")

    async def test_listener_stopping_the_loop_ends_delivery(self) -> None:
        seen: list[tuple[str, str]] = []

        def stop_on_first(event: FileChangeEvent) -> None:
            seen.append((event.path, self.watcher.state))
            self.watcher.stop_watching()

        self.watcher.remove_listener(self.events.append)
        self.watcher.add_listener(stop_on_first)
        await self.watcher.start_watching(self.capability)
        for name in ("a.md", "b.md", "c.md"):
            (self.root / name).write_text("x", encoding="utf-8")

        delivered = await self.watcher.force_check()

        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0][1], "watching")
        self.assertEqual([event.path for event in delivered], [seen[0][0]])
        self.assertEqual(self.watcher.state, "idle")

    async def test_overlapping_checks_are_serialized(self) -> None:
        await self.watcher.start_watching(self.capability)
        (self.root / "once.md").write_text("x", encoding="utf-8")

        first, second = await asyncio.gather(self.watcher.force_check(), self.watcher.force_check())

        self.assertEqual(len(first) + len(second), 1)
        self.assertEqual([event.path for event in self.events], ["once.md"])

    async def test_failed_scan_is_absorbed_and_loop_keeps_working(self) -> None:
        await self.watcher.start_watching(self.capability)

        async def failing_build(_capability, _config):
            raise OSError("disk went away")

        with mock.patch("linkfs.watch.build_flat_snapshot", failing_build):
            with self.assertLogs("linkfs.watch", level="WARNING"):
                self.assertEqual(await self.watcher.force_check(), [])

        self.assertTrue(self.watcher.is_active)
        (self.root / "recovered.md").write_text("x", encoding="utf-8")
        await self.watcher.force_check()
        self.assertEqual([event.path for event in self.events], ["recovered.md"])

    async def test_timer_tick_publishes_changes(self) -> None:
        seen = asyncio.Event()
        watcher = WatchLoop(interval_seconds=0.05)
        self.addCleanup(watcher.stop_watching)
        watcher.add_listener(lambda event: seen.set() if event.path == "ticked.md" else None)
        await watcher.start_watching(self.capability)

        (self.root / "ticked.md").write_text("x", encoding="utf-8")

        await asyncio.wait_for(seen.wait(), timeout=5.0)

    async def test_interval_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            WatchLoop(interval_seconds=0)


if __name__ == "__main__":
    unittest.main()
