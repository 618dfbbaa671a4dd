"""Result of one top-level resolution request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from deptree.models.node import ResolvedNode


@dataclass
class ResolutionResult:
    """A resolved tree plus the bookkeeping gathered while building it.

    Attributes:
        root: Root of the resolution tree.
        mode: Strategy that produced it (``concurrent`` or ``sequential``).
        constraint: Range the root was resolved against.
        metadata_fetches: Metadata documents requested from the registry.
        manifest_fetches: Manifests requested from the registry.
        dedup_hits: Edges satisfied by reusing an already-claimed version.
        elapsed: Wall-clock seconds spent resolving.
    """

    root: ResolvedNode
    mode: str
    constraint: str
    metadata_fetches: int = 0
    manifest_fetches: int = 0
    dedup_hits: int = 0
    elapsed: float = 0.0

    @property
    def total_packages(self) -> int:
        """Distinct package names in the tree, root included."""
        return len(self.root.package_names())

    def to_dict(self) -> Dict[str, Any]:
        return self.root.to_dict()

    def summary(self) -> str:
        """Generate a human-readable summary.

        Example::

            >>> print(result.summary())
            Resolution Summary:
            ==================================================
            Root: express@4.19.2 (range ^4.0.0)
            ...
        """
        lines = [
            "Resolution Summary:",
            "=" * 50,
            f"Root: {self.root.name}@{self.root.version} (range {self.constraint})",
            f"Mode: {self.mode}",
            f"Distinct packages: {self.total_packages}",
            f"Registry calls: {self.metadata_fetches} metadata, "
            f"{self.manifest_fetches} manifest",
            f"Dedup hits: {self.dedup_hits}",
            f"Elapsed: {self.elapsed:.2f}s",
        ]
        return "\n".join(lines)
