"""
Shared context object for deptree CLI commands.

The global Click context carries configuration and runtime options from
the ``deptree`` group to its subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from deptree.config import DepTreeConfig


class DepTreeContext:
    """Global context object for deptree CLI commands.

    Attributes:
        config_path: Path to the configuration file, if one was used.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Loaded configuration, or ``None`` before the group runs.
    """

    __slots__ = ("config_path", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: Optional[DepTreeConfig] = None

    def get_config(self) -> DepTreeConfig:
        """Return the loaded configuration, falling back to defaults."""
        return self.config if self.config is not None else DepTreeConfig()


#: Click decorator for injecting :class:`DepTreeContext` into commands.
pass_context = click.make_pass_decorator(DepTreeContext, ensure=True)
