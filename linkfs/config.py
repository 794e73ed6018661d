"""Static workspace configuration plus persisted user settings.

Exclusion patterns and the watched-extension allowlist are fixed.
The poll interval can be overridden from a JSON settings file; all access to
that file is defensive, so malformed or missing data falls back safely.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "linkfs"
CONFIG_FILENAME = "config.json"
STORE_FILENAME = "handles.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
STORE_PATH = Path(user_data_dir(APP_NAME, appauthor=False)) / STORE_FILENAME

EXCLUDE_PATTERNS: tuple[str, ...] = (
    "node_modules",
    ".git",
    ".DS_Store",
    ".vscode",
    "dist",
    "build",
    ".next",
    ".nuxt",
    "coverage",
    ".nyc_output",
    "Thumbs.db",
)
WATCHED_EXTENSIONS: tuple[str, ...] = (".md", ".markdown", ".txt", ".docx", ".doc")
WORD_EXTENSIONS: frozenset[str] = frozenset({".docx", ".doc"})
ENCODABLE_WORD_EXTENSIONS: frozenset[str] = frozenset({".docx"})
DEFAULT_POLL_INTERVAL_SECONDS = 2.0


def file_extension(name: str) -> str:
    """Return the lower-cased extension of ``name`` including the dot.

    Dotfiles such as ``.env`` have no extension, matching how the tree labels
    them.
    """
    dot = name.rfind(".")
    if dot <= 0:
        return ""
    return name[dot:].lower()


@dataclass(frozen=True)
class WorkspaceConfig:
    """Exclusion rules and extension allowlist applied to one root."""

    root_name: str = ""
    watched_extensions: tuple[str, ...] = WATCHED_EXTENSIONS
    exclude_patterns: tuple[str, ...] = EXCLUDE_PATTERNS

    def should_exclude(self, name: str) -> bool:
        """Return whether ``name`` matches an exclusion pattern exactly or by prefix."""
        return any(name == pattern or name.startswith(pattern) for pattern in self.exclude_patterns)

    def is_watched(self, name: str) -> bool:
        """Return whether a file called ``name`` belongs in trees and snapshots."""
        return file_extension(name) in self.watched_extensions

    def with_root_name(self, root_name: str) -> WorkspaceConfig:
        return WorkspaceConfig(
            root_name=root_name,
            watched_extensions=self.watched_extensions,
            exclude_patterns=self.exclude_patterns,
        )


def load_config() -> dict[str, object]:
    """Load the persisted JSON settings object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist settings as pretty-printed JSON.

    Any filesystem/serialization error is ignored; settings are a convenience,
    not a requirement for running.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception:
        pass


def load_poll_interval_seconds() -> float:
    """Return the persisted watch poll interval or the default.

    Only positive numbers are accepted; booleans and other types are ignored.
    """
    value = load_config().get("poll_interval_seconds")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_POLL_INTERVAL_SECONDS
    if value <= 0:
        return DEFAULT_POLL_INTERVAL_SECONDS
    return float(value)


def save_poll_interval_seconds(seconds: float) -> None:
    """Persist a positive poll interval; non-positive values are ignored."""
    if seconds <= 0:
        return
    config = load_config()
    config["poll_interval_seconds"] = float(seconds)
    save_config(config)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "STORE_PATH",
    "EXCLUDE_PATTERNS",
    "WATCHED_EXTENSIONS",
    "WORD_EXTENSIONS",
    "ENCODABLE_WORD_EXTENSIONS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "WorkspaceConfig",
    "file_extension",
    "load_config",
    "save_config",
    "load_poll_interval_seconds",
    "save_poll_interval_seconds",
]
