"""
Executable module for deptree.

    python -m deptree

is equivalent to running the ``deptree`` console script.
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: ImportError) -> None:
    """Explain why the CLI could not be imported."""
    sys.stderr.write("deptree CLI could not be loaded.\n")
    sys.stderr.write(f"Python version : {sys.version}\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """Entrypoint for ``python -m deptree``.

    Returns:
        Exit code returned by the CLI, or 1 if it cannot be imported.
    """
    try:
        # Imported lazily so a broken dependency is reported, not raised.
        from deptree.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
