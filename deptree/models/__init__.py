"""
Data model exports for deptree.

Example:
    >>> from deptree.models import ResolvedNode, PackageManifest
"""

from __future__ import annotations

from deptree.models.node import NodeState, ResolvedNode
from deptree.models.result import ResolutionResult
from deptree.models.package import PackageManifest, PackageMetadata, VersionDescriptor

__all__ = [
    "NodeState",
    "ResolvedNode",
    "ResolutionResult",
    "PackageManifest",
    "PackageMetadata",
    "VersionDescriptor",
]
