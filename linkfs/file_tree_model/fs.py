"""Directory traversal shared by tree building and change snapshots.

``list_directory_children`` is the one primitive that applies exclusion
rules and the extension allowlist; ``build_tree`` and ``build_flat_snapshot``
are two projections of the same walk. Sibling subtrees are traversed
concurrently and re-sorted, so results are deterministic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ..capability import DirectoryCapability, FileCapability, FileStat
from ..config import WorkspaceConfig, file_extension
from ..errors import WorkspaceError
from .types import FileNode, FlatSnapshot, FolderNode, TreeNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryChild:
    """One included directory child plus its handle and file metadata."""

    name: str
    path: str
    handle: FileCapability | DirectoryCapability
    stat: FileStat | None = None

    @property
    def is_dir(self) -> bool:
        return isinstance(self.handle, DirectoryCapability)


def join_path(parent_path: str, name: str) -> str:
    """Join a relative workspace path and a child name with ``/``."""
    return f"{parent_path}/{name}" if parent_path else name


def _sort_key(child: DirectoryChild) -> tuple[bool, str, str]:
    return (not child.is_dir, child.name.casefold(), child.name)


async def _stat_child(name: str, path: str, handle: FileCapability) -> DirectoryChild | None:
    try:
        stat = await handle.stat()
    except (WorkspaceError, OSError) as exc:
        logger.warning("Skipping %s: %s", path, exc)
        return None
    return DirectoryChild(name=name, path=path, handle=handle, stat=stat)


async def list_directory_children(
    directory: DirectoryCapability,
    parent_path: str,
    config: WorkspaceConfig,
) -> list[DirectoryChild]:
    """List included children of ``directory`` in display order.

    Folders come first, then files, each ordered case-insensitively by name.
    Excluded names and files outside the allowlist are dropped silently. Files
    whose metadata cannot be read are logged and dropped. Failure to enumerate
    ``directory`` itself propagates.
    """
    entries = await directory.entries()
    folders: list[DirectoryChild] = []
    pending_files = []
    for name, handle in entries:
        if config.should_exclude(name):
            continue
        path = join_path(parent_path, name)
        if isinstance(handle, DirectoryCapability):
            folders.append(DirectoryChild(name=name, path=path, handle=handle))
        elif config.is_watched(name):
            pending_files.append(_stat_child(name, path, handle))

    files = [child for child in await asyncio.gather(*pending_files) if child is not None]
    children = folders + files
    children.sort(key=_sort_key)
    return children


async def _build_node(child: DirectoryChild, config: WorkspaceConfig) -> TreeNode | None:
    if not child.is_dir:
        assert child.stat is not None
        return FileNode(
            path=child.path,
            extension=file_extension(child.name),
            size=child.stat.size,
            mtime_ns=child.stat.mtime_ns,
        )
    assert isinstance(child.handle, DirectoryCapability)
    try:
        children = await _build_children(child.handle, child.path, config)
    except (WorkspaceError, OSError) as exc:
        logger.warning("Skipping folder %s: %s", child.path, exc)
        return None
    return FolderNode(path=child.path, children=children)


async def _build_children(
    directory: DirectoryCapability,
    parent_path: str,
    config: WorkspaceConfig,
) -> tuple[TreeNode, ...]:
    children = await list_directory_children(directory, parent_path, config)
    nodes = await asyncio.gather(*(_build_node(child, config) for child in children))
    return tuple(node for node in nodes if node is not None)


async def build_tree(
    capability: DirectoryCapability,
    config: WorkspaceConfig | None = None,
) -> list[TreeNode]:
    """Materialize the whole included tree below ``capability``.

    The result is a fresh value on every call; nothing is cached between calls.
    """
    return list(await _build_children(capability, "", config or WorkspaceConfig()))


async def _collect_snapshot(
    directory: DirectoryCapability,
    parent_path: str,
    config: WorkspaceConfig,
    snapshot: FlatSnapshot,
) -> None:
    children = await list_directory_children(directory, parent_path, config)
    folders: list[DirectoryChild] = []
    for child in children:
        if child.is_dir:
            folders.append(child)
        elif child.stat is not None:
            snapshot[child.path] = child.stat
    await asyncio.gather(*(_collect_folder_snapshot(folder, config, snapshot) for folder in folders))


async def _collect_folder_snapshot(
    folder: DirectoryChild,
    config: WorkspaceConfig,
    snapshot: FlatSnapshot,
) -> None:
    assert isinstance(folder.handle, DirectoryCapability)
    try:
        await _collect_snapshot(folder.handle, folder.path, config, snapshot)
    except (WorkspaceError, OSError) as exc:
        logger.warning("Skipping folder %s: %s", folder.path, exc)


async def build_flat_snapshot(
    capability: DirectoryCapability,
    config: WorkspaceConfig | None = None,
) -> FlatSnapshot:
    """Return ``{relative path: FileStat}`` for every included file."""
    snapshot: FlatSnapshot = {}
    await _collect_snapshot(capability, "", config or WorkspaceConfig(), snapshot)
    return snapshot


def iter_tree_nodes(nodes: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Yield every node depth-first in display order."""
    for node in nodes:
        yield node
        if isinstance(node, FolderNode):
            yield from iter_tree_nodes(node.children)


def find_node(nodes: Iterable[TreeNode], path: str) -> TreeNode | None:
    """Return the node at ``path`` or ``None``."""
    for node in iter_tree_nodes(nodes):
        if node.path == path:
            return node
    return None


__all__ = [
    "DirectoryChild",
    "join_path",
    "list_directory_children",
    "build_tree",
    "build_flat_snapshot",
    "iter_tree_nodes",
    "find_node",
]
