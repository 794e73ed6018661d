"""Domain model for workspace trees and change detection.

This package contains the non-UI primitives:
- tree node, flat snapshot and change-event datatypes
- the traversal that builds trees and flat snapshots from a capability
- the pure snapshot differ used by the watch loop
"""

from __future__ import annotations

from .types import (
    FILE,
    FOLDER,
    ChangeType,
    FileChangeEvent,
    FileNode,
    FlatSnapshot,
    FolderNode,
    TreeNode,
)
from .fs import (
    DirectoryChild,
    build_flat_snapshot,
    build_tree,
    find_node,
    iter_tree_nodes,
    join_path,
    list_directory_children,
)
from .snapshot import diff_snapshots

__all__ = [
    "FILE",
    "FOLDER",
    "ChangeType",
    "FileChangeEvent",
    "FileNode",
    "FolderNode",
    "TreeNode",
    "FlatSnapshot",
    "DirectoryChild",
    "join_path",
    "list_directory_children",
    "build_tree",
    "build_flat_snapshot",
    "iter_tree_nodes",
    "find_node",
    "diff_snapshots",
]
