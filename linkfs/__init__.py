"""Public package surface for linkfs.

Exports ``main`` for programmatic CLI invocation.
The workspace engine lives in ``linkfs.workspace`` and its submodules.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
