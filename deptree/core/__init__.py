"""
Core functionality exports for deptree.

    from deptree.core import DependencyResolver, RegistryClient
"""

from __future__ import annotations

from deptree.core.state import ResolutionState
from deptree.core.registry import RegistryClient
from deptree.core.selector import parse_range, satisfies, select_highest
from deptree.core.resolver import DependencyResolver, resolve_package

__all__ = [
    "DependencyResolver",
    "RegistryClient",
    "ResolutionState",
    "parse_range",
    "resolve_package",
    "satisfies",
    "select_highest",
]
