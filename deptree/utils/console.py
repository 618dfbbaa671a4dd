"""
Console output utilities for deptree using Rich.

User-facing output for CLI commands lives here. Diagnostics go through
:mod:`deptree.utils.logger` instead.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, List, Optional

from rich.tree import Tree
from rich.table import Table
from rich.theme import Theme
from rich.console import Console

from deptree.models.node import ResolvedNode

DEPTREE_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold cyan",
        "dim": "dim",
        "highlight": "bold magenta",
    }
)

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    """Return True if colored output should be enabled."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console() -> Console:
    """Return a singleton Rich Console instance."""
    global _console

    if _console is None:
        with _console_lock:
            if _console is None:
                use_color = _should_use_color()
                _console = Console(
                    theme=DEPTREE_THEME,
                    no_color=not use_color,
                    highlight=use_color,
                )
    return _console


def reconfigure_console() -> None:
    """Drop the cached console so the next call re-reads ``NO_COLOR``."""
    global _console
    with _console_lock:
        _console = None


def get_raw_console() -> Console:
    """Return the underlying Rich Console instance."""
    return _get_console()


# ---------------------------------------------------------------------------
# Status messages
# ---------------------------------------------------------------------------


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    _get_console().print(f"{prefix} {message}", style="error")


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    _get_console().print(f"{prefix} {message}", style="warning")


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------


def print_table(
    data: List[Dict[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    title: Optional[str] = None,
    caption: Optional[str] = None,
) -> None:
    """Render a list of row dictionaries as a Rich table.

    Args:
        data: Row dictionaries.
        headers: Column order. Defaults to the keys of the first row.
        title: Optional table title.
        caption: Optional table caption.
    """
    if not data:
        return

    if headers is None:
        headers = list(data[0].keys())

    table = Table(title=title, caption=caption, show_header=True, header_style="bold")
    for header in headers:
        table.add_column(header, overflow="fold")

    for row in data:
        table.add_row(*(str(row.get(h, "")) for h in headers))

    _get_console().print(table)


def build_tree(node: ResolvedNode) -> Tree:
    """Build a Rich tree mirroring a resolution tree.

    Deduplicated children are rendered dimmed with a ``(dedup)`` marker.
    """
    tree = Tree(f"[highlight]{node.name}[/highlight]@{node.version}")
    _add_children(tree, node)
    return tree


def _add_children(branch: Tree, node: ResolvedNode) -> None:
    for name in sorted(node.children):
        child = node.children[name]
        if child.deduplicated:
            branch.add(f"[dim]{child.name}@{child.version} (dedup)[/dim]")
            continue
        _add_children(branch.add(f"{child.name}@{child.version}"), child)


def print_tree(node: ResolvedNode) -> None:
    """Print a resolution tree."""
    _get_console().print(build_tree(node))
