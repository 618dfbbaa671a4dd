"""
Resolution tree models for deptree.

:class:`ResolvedNode` is the source of truth for a resolution: a nested
tree rooted at the requested package. The flat ``name -> versions`` view
is a projection of it. :class:`NodeState` tracks where a node is in its
lifecycle while it is being resolved.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Set

import semantic_version

from deptree.exceptions import InternalError


class NodeState(Enum):
    """Lifecycle of a single node during resolution."""

    PENDING = "pending"
    FETCHING_METADATA = "fetching_metadata"
    SELECTING_VERSION = "selecting_version"
    FETCHING_MANIFEST = "fetching_manifest"
    RESOLVING_CHILDREN = "resolving_children"
    RESOLVED = "resolved"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (NodeState.RESOLVED, NodeState.FAILED)

    def can_transition_to(self, target: "NodeState") -> bool:
        if self.is_terminal:
            return False
        if target is NodeState.FAILED:
            return True
        return target in _FORWARD[self]


_FORWARD: Dict[NodeState, FrozenSet[NodeState]] = {
    NodeState.PENDING: frozenset({NodeState.FETCHING_METADATA}),
    NodeState.FETCHING_METADATA: frozenset({NodeState.SELECTING_VERSION}),
    NodeState.SELECTING_VERSION: frozenset({NodeState.FETCHING_MANIFEST}),
    NodeState.FETCHING_MANIFEST: frozenset({NodeState.RESOLVING_CHILDREN}),
    NodeState.RESOLVING_CHILDREN: frozenset({NodeState.RESOLVED}),
    NodeState.RESOLVED: frozenset(),
    NodeState.FAILED: frozenset(),
}


@dataclass
class ResolvedNode:
    """One package in the resolution tree.

    Attributes:
        name: Package name.
        version: Concrete version selected for this node.
        children: Dependency name -> resolved child node.
        deduplicated: ``True`` when this node reuses a version claimed by
            another branch; such nodes carry no children of their own.
        state: Lifecycle state; ``RESOLVED`` once the node is attached.
    """

    name: str
    version: str = ""
    children: Dict[str, "ResolvedNode"] = field(default_factory=dict)
    deduplicated: bool = False
    state: NodeState = field(default=NodeState.PENDING, compare=False, repr=False)

    def advance(self, target: NodeState) -> None:
        """Move to ``target``, rejecting transitions the lifecycle does not allow.

        Raises:
            InternalError: The transition is illegal (e.g. out of a terminal state).
        """
        if not self.state.can_transition_to(target):
            raise InternalError(
                f"Illegal state transition for '{self.name}': "
                f"{self.state.value} -> {target.value}"
            )
        self.state = target

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def walk(self):
        """Yield every node of the subtree, depth-first, children sorted by name."""
        yield self
        for name in sorted(self.children):
            yield from self.children[name].walk()

    def package_names(self) -> Set[str]:
        """Return every distinct package name in the subtree, root included."""
        return {node.name for node in self.walk()}

    def flatten(self) -> Dict[str, List[str]]:
        """Project the tree onto ``name -> distinct versions`` (root excluded).

        A name keeps every version it resolved to anywhere in the tree, so
        nothing is lost when different branches pick different versions.
        Versions are sorted by semantic-version precedence.
        """
        found: Dict[str, Set[str]] = {}
        for node in self.walk():
            if node is self:
                continue
            found.setdefault(node.name, set()).add(node.version)

        return {name: _sort_versions(found[name]) for name in sorted(found)}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return the nested JSON form.

        ``{"name", "version", "dependencies": {name: <nested>}}`` with
        dependency keys sorted; dedup nodes add ``"deduplicated": true``.
        """
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "dependencies": {
                name: self.children[name].to_dict() for name in sorted(self.children)
            },
        }
        if self.deduplicated:
            data["deduplicated"] = True
        return data

    def to_flat_dict(self) -> Dict[str, Any]:
        """Return ``{"name", "version", "dependencies": {name: [versions]}}``."""
        return {
            "name": self.name,
            "version": self.version,
            "dependencies": self.flatten(),
        }


def _sort_versions(versions: Set[str]) -> List[str]:
    """Sort version strings by semver precedence; unparseable ones go last, lexically."""
    valid = []
    invalid = []
    for raw in versions:
        try:
            valid.append((semantic_version.Version(raw), raw))
        except ValueError:
            invalid.append(raw)

    valid.sort(key=lambda item: item[0])
    return [raw for _, raw in valid] + sorted(invalid)
