"""
deptree: transitive dependency resolution against a package registry

Given a package name and a version range, deptree picks the highest
published version satisfying the range, then does the same for every
declared dependency, recursively, producing a nested resolution tree.

Features include:
    • npm-style range matching (caret, tilde, x-ranges, hyphen ranges)
    • Sequential and bounded concurrent resolution strategies
    • Per-request deduplication with an atomic check-and-claim
    • Cycle and conflicting-range detection
    • A small HTTP service and a CLI front end
"""

from __future__ import annotations

from deptree.__version__ import __version__

__author__ = "deptree Contributors"
__license__ = "Apache-2.0"
__description__ = "Resolve a package's transitive dependency tree against a registry."

__all__ = [
    "__version__",
]
