"""Workspace session: CRUD over the selected root plus its watch loop.

A ``WorkspaceSession`` is the explicit owner of one workspace: the handle
store holding the root capability, the static configuration applied to it, and
the watch loop with its listeners. Logical ``/``-separated paths are resolved
one segment at a time from the root. Read-style resolution fails on a missing
segment; write-style resolution creates missing folders on the way.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import PurePosixPath

from . import docx_format
from .capability import DirectoryCapability, FileCapability
from .config import ENCODABLE_WORD_EXTENSIONS, WORD_EXTENSIONS, WorkspaceConfig, file_extension
from .documents import Document, timestamp_from_ns, utc_now
from .errors import NoWorkspaceError, PathNotFoundError, WorkspacePermissionError
from .file_tree_model import TreeNode, build_tree
from .handle_store import HandleStore
from .watch import FileChangeListener, WatchLoop

logger = logging.getLogger(__name__)

PLACEHOLDER_TEMPLATE = "# {stem}\n\nStart writing...\n"


def split_path(path: str) -> list[str]:
    """Split a logical path on ``/`` and drop empty segments."""
    return [segment for segment in path.split("/") if segment]


def decode_text(data: bytes) -> str:
    """Decode file bytes as UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def placeholder_content(file_name: str) -> str:
    return PLACEHOLDER_TEMPLATE.format(stem=PurePosixPath(file_name).stem)


def _require(value: str, label: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{label} must not be empty")


async def resolve_directory(
    root: DirectoryCapability,
    segments: list[str],
    *,
    create: bool = False,
) -> DirectoryCapability:
    """Walk ``segments`` from ``root`` down to a folder capability."""
    current = root
    for index, segment in enumerate(segments):
        try:
            current = await current.get_directory(segment, create=create)
        except PathNotFoundError as exc:
            raise PathNotFoundError("/".join(segments[: index + 1]), exc.reason) from exc
    return current


async def resolve_file(
    root: DirectoryCapability,
    segments: list[str],
    *,
    create: bool = False,
) -> FileCapability:
    """Walk ``segments`` from ``root`` down to a file capability."""
    parent = await resolve_directory(root, segments[:-1], create=create)
    try:
        return await parent.get_file(segments[-1], create=create)
    except PathNotFoundError as exc:
        raise PathNotFoundError("/".join(segments), exc.reason) from exc


def encode_content(file_name: str, content: str, title: str) -> bytes:
    """Serialize editor text for ``file_name`` according to its extension."""
    if file_extension(file_name) in ENCODABLE_WORD_EXTENSIONS:
        return docx_format.encode(content, title)
    return content.encode("utf-8")


class WorkspaceSession:
    """One user workspace: root handle, configuration and change watching."""

    def __init__(
        self,
        handle_store: HandleStore | None = None,
        config: WorkspaceConfig | None = None,
        watcher: WatchLoop | None = None,
    ) -> None:
        self.handle_store = handle_store if handle_store is not None else HandleStore()
        self.config = config or WorkspaceConfig()
        self.watcher = watcher if watcher is not None else WatchLoop(self.config)

    def _apply_root(self, capability: DirectoryCapability) -> None:
        if self.config.root_name != capability.name:
            self.config = self.config.with_root_name(capability.name)
            self.watcher.config = self.config

    async def set_workspace(self, capability: DirectoryCapability) -> None:
        """Select ``capability`` as the root, replacing any previous one."""
        await self.handle_store.set_workspace(capability)
        self._apply_root(capability)
        current = self.watcher.capability
        if current is not None and not current.same_entry(capability):
            await self.watcher.start_watching(capability)

    async def root(self) -> DirectoryCapability:
        """Return the root capability or raise ``NoWorkspaceError``."""
        capability = await self.handle_store.get_stored_handle()
        if capability is None:
            raise NoWorkspaceError()
        self._apply_root(capability)
        return capability

    @contextlib.asynccontextmanager
    async def _access(self) -> AsyncIterator[DirectoryCapability]:
        root = await self.root()
        try:
            yield root
        except WorkspacePermissionError:
            if not await root.query_permission():
                self.handle_store.mark_revoked()
                self.watcher.stop_watching()
            raise

    async def get_folder_structure(self) -> list[TreeNode]:
        async with self._access() as root:
            return await build_tree(root, self.config)

    async def read_file(self, path: str) -> Document:
        """Load ``path`` into a ``Document``.

        Word-processor files go through the format adapter; everything else is
        decoded as text.
        """
        segments = split_path(path)
        if not segments:
            raise ValueError("file path must not be empty")
        async with self._access() as root:
            handle = await resolve_file(root, segments)
            data = await handle.read_bytes()
            stat = await handle.stat()

        file_path = "/".join(segments)
        if file_extension(file_path) in WORD_EXTENSIONS:
            content = docx_format.decode(data)
        else:
            content = decode_text(data)
        modified = timestamp_from_ns(stat.mtime_ns)
        return Document(
            id=file_path,
            title=segments[-1],
            content=content,
            file_path=file_path,
            created_at=modified,
            updated_at=modified,
            size=stat.size,
        )

    async def save_file(self, document: Document) -> None:
        """Write ``document`` to its path, creating missing folders.

        ``document.updated_at`` and ``document.size`` are refreshed in place.
        """
        segments = split_path(document.file_path)
        if not segments:
            raise ValueError("file path must not be empty")
        data = encode_content(segments[-1], document.content, document.title)
        async with self._access() as root:
            handle = await resolve_file(root, segments, create=True)
            await handle.write_bytes(data)

        document.updated_at = utc_now()
        document.size = len(data)
        logger.debug("Saved %s (%d bytes)", document.file_path, document.size)

    async def create_file(self, folder_path: str, file_name: str, content: str | None = None) -> Document:
        """Create ``file_name`` under ``folder_path``, creating folders as needed.

        Without ``content`` the file gets a heading placeholder named after it.
        An existing file at that path is overwritten.
        """
        _require(file_name, "file name")
        segments = split_path(folder_path) + [file_name]
        text = content if content else placeholder_content(file_name)
        data = encode_content(file_name, text, file_name)
        async with self._access() as root:
            handle = await resolve_file(root, segments, create=True)
            await handle.write_bytes(data)

        file_path = "/".join(segments)
        now = utc_now()
        logger.debug("Created %s", file_path)
        return Document(
            id=file_path,
            title=file_name,
            content=text,
            file_path=file_path,
            created_at=now,
            updated_at=now,
            size=len(data),
        )

    async def create_folder(self, parent_path: str, folder_name: str) -> str:
        """Create ``folder_name`` under ``parent_path`` and return its path."""
        _require(folder_name, "folder name")
        segments = split_path(parent_path) + [folder_name]
        async with self._access() as root:
            await resolve_directory(root, segments, create=True)
        folder_path = "/".join(segments)
        logger.debug("Created folder %s", folder_path)
        return folder_path

    async def delete_item(self, path: str) -> None:
        """Delete the file or folder at ``path``; folders go recursively."""
        segments = split_path(path)
        if not segments:
            raise ValueError("cannot delete the workspace root")
        async with self._access() as root:
            parent = await resolve_directory(root, segments[:-1])
            try:
                await parent.remove_entry(segments[-1], recursive=True)
            except PathNotFoundError as exc:
                raise PathNotFoundError("/".join(segments), exc.reason) from exc
        logger.debug("Deleted %s", "/".join(segments))

    async def start_watching(self) -> None:
        await self.watcher.start_watching(await self.root())

    def stop_watching(self) -> None:
        self.watcher.stop_watching()

    def add_listener(self, listener: FileChangeListener) -> None:
        self.watcher.add_listener(listener)

    def remove_listener(self, listener: FileChangeListener) -> None:
        self.watcher.remove_listener(listener)


__all__ = [
    "PLACEHOLDER_TEMPLATE",
    "WorkspaceSession",
    "decode_text",
    "encode_content",
    "placeholder_content",
    "resolve_directory",
    "resolve_file",
    "split_path",
]
