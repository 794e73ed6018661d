"""Module entrypoint for ``python -m linkfs``.

All argument parsing and session setup happen in ``linkfs.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
