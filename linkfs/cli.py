"""Command-line front door for linkfs.

Selects and persists a workspace folder, prints its tree, performs file
operations against it, and can follow external changes from the terminal.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .capability import DirectoryCapability
from .config import load_poll_interval_seconds, save_poll_interval_seconds
from .documents import Document, utc_now
from .errors import WorkspaceError
from .file_tree_model import FileChangeEvent, FileNode, FolderNode, TreeNode
from .handle_store import HandleStore
from .watch import WatchLoop
from .workspace import WorkspaceSession, split_path


def _positive_float(value: str) -> float:
    """argparse type for positive float values."""
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be > 0")
    return parsed


def tree_to_json(nodes: list[TreeNode] | tuple[TreeNode, ...]) -> list[dict[str, object]]:
    """Convert tree nodes into JSON-ready dicts."""
    out: list[dict[str, object]] = []
    for node in nodes:
        item: dict[str, object] = {"id": node.id, "name": node.name, "path": node.path, "type": node.kind}
        if isinstance(node, FolderNode):
            item["children"] = tree_to_json(node.children)
        else:
            item["extension"] = node.extension
            item["size"] = node.size
            item["lastModified"] = node.mtime_ns // 1_000_000
        out.append(item)
    return out


def format_tree(nodes: list[TreeNode] | tuple[TreeNode, ...], depth: int = 0) -> list[str]:
    """Render tree nodes as indented text lines."""
    lines: list[str] = []
    indent = "  " * depth
    for node in nodes:
        if isinstance(node, FolderNode):
            lines.append(f"{indent}{node.name}/")
            lines.extend(format_tree(node.children, depth + 1))
        elif isinstance(node, FileNode):
            lines.append(f"{indent}{node.name} ({node.size} B)")
    return lines


def format_event(event: FileChangeEvent) -> str:
    return f"{event.type}\t{event.path}"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linkfs", description="Work with a local writing workspace folder.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    open_parser = sub.add_parser("open", help="Select and remember the workspace folder.")
    open_parser.add_argument("path", help="Folder to use as the workspace root.")

    tree_parser = sub.add_parser("tree", help="Print the workspace folder tree.")
    tree_parser.add_argument("--json", action="store_true", help="Print the tree as JSON.")

    read_parser = sub.add_parser("read", help="Print a workspace file.")
    read_parser.add_argument("path")

    write_parser = sub.add_parser("write", help="Replace a workspace file with stdin.")
    write_parser.add_argument("path")

    new_file_parser = sub.add_parser("new-file", help="Create a file with placeholder content.")
    new_file_parser.add_argument("folder", help="Folder path; use '' for the root.")
    new_file_parser.add_argument("name")

    mkdir_parser = sub.add_parser("mkdir", help="Create a folder.")
    mkdir_parser.add_argument("parent", help="Parent folder path; use '' for the root.")
    mkdir_parser.add_argument("name")

    rm_parser = sub.add_parser("rm", help="Delete a file or folder recursively.")
    rm_parser.add_argument("path")

    watch_parser = sub.add_parser("watch", help="Print external changes until interrupted.")
    watch_parser.add_argument(
        "--interval",
        type=_positive_float,
        default=None,
        help="Seconds between scans (default: configured poll interval).",
    )
    watch_parser.add_argument(
        "--save",
        action="store_true",
        help="Persist --interval as the default poll interval.",
    )
    return parser


async def _watch(session: WorkspaceSession) -> None:
    session.add_listener(lambda event: print(format_event(event), flush=True))
    await session.start_watching()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        session.stop_watching()


async def _run(args: argparse.Namespace, session: WorkspaceSession) -> None:
    command = args.command
    if command == "open":
        path = Path(args.path).expanduser()
        if not path.is_dir():
            raise SystemExit(f"Folder not found: {path}")
        await session.set_workspace(DirectoryCapability(path.resolve()))
        print(f"Workspace set to {path.resolve()}")
    elif command == "tree":
        nodes = await session.get_folder_structure()
        if args.json:
            print(json.dumps(tree_to_json(nodes), indent=2))
        else:
            for line in format_tree(nodes):
                print(line)
    elif command == "read":
        document = await session.read_file(args.path)
        sys.stdout.write(document.content)
    elif command == "write":
        segments = split_path(args.path)
        now = utc_now()
        document = Document(
            id="/".join(segments),
            title=segments[-1] if segments else "",
            content=sys.stdin.read(),
            file_path="/".join(segments),
            created_at=now,
            updated_at=now,
            size=0,
        )
        await session.save_file(document)
    elif command == "new-file":
        document = await session.create_file(args.folder, args.name)
        print(document.file_path)
    elif command == "mkdir":
        print(await session.create_folder(args.parent, args.name))
    elif command == "rm":
        await session.delete_item(args.path)
    elif command == "watch":
        await _watch(session)


ACTION_LABELS = {
    "open": "open workspace",
    "tree": "load folder structure",
    "read": "read file",
    "write": "save file",
    "new-file": "create file",
    "mkdir": "create folder",
    "rm": "delete item",
    "watch": "watch workspace",
}


def main(argv: list[str] | None = None, handle_store: HandleStore | None = None) -> None:
    """Parse CLI arguments and run one workspace command.

    ``handle_store`` is primarily for tests; by default the workspace handle
    is persisted under the user data directory.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "save", False):
        if args.interval is None:
            parser.error("--save requires --interval")
        save_poll_interval_seconds(args.interval)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    interval = getattr(args, "interval", None) or load_poll_interval_seconds()
    session = WorkspaceSession(
        handle_store=handle_store or HandleStore(),
        watcher=WatchLoop(interval_seconds=interval),
    )
    try:
        asyncio.run(_run(args, session))
    except KeyboardInterrupt:
        return
    except (WorkspaceError, ValueError) as exc:
        raise SystemExit(f"failed to {ACTION_LABELS[args.command]}: {exc}") from exc


if __name__ == "__main__":
    main()
