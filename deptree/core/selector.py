"""Version selection for deptree.

Ranges follow npm semantics (``^1.2.0``, ``~1.2``, ``1.x``,
``>=2.0.0 <3.0.0``, ``1.0.0 - 1.4.5``, ``a || b``) via
:class:`semantic_version.NpmSpec`. Candidate versions must be strict
``MAJOR.MINOR.PATCH[-PRE][+BUILD]`` strings; anything else published under
a package is ignored rather than treated as an error.

Typical usage::

    metadata = await registry.fetch_metadata("left-pad")
    version = select_highest("^1.0.0", metadata)   # e.g. "1.3.0"
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

import semantic_version

from deptree.utils.logger import get_logger
from deptree.exceptions import InvalidConstraintError, NoCompatibleVersionError

logger = get_logger("selector")

__all__ = ["parse_range", "satisfies", "select_highest", "parse_version"]


@lru_cache(maxsize=1024)
def _compile(expression: str) -> semantic_version.NpmSpec:
    return semantic_version.NpmSpec(expression)


def parse_range(expression: str, *, package_name: Optional[str] = None) -> semantic_version.NpmSpec:
    """Parse an npm range expression.

    An empty expression matches every release, as in npm.

    Raises:
        InvalidConstraintError: The expression is not valid range syntax.
    """
    normalized = expression.strip() or "*"
    try:
        return _compile(normalized)
    except ValueError as exc:
        raise InvalidConstraintError(
            f"Invalid version range '{expression}': {exc}",
            constraint=expression,
            package_name=package_name,
        ) from exc


def parse_version(raw: str) -> Optional[semantic_version.Version]:
    """Parse a strict semantic version, returning ``None`` when ``raw`` is not one."""
    try:
        return semantic_version.Version(raw)
    except ValueError:
        return None


def satisfies(version: str, expression: str) -> bool:
    """Return True if ``version`` is a valid semver matching ``expression``.

    Raises:
        InvalidConstraintError: ``expression`` is not valid range syntax.
    """
    spec = parse_range(expression)
    parsed = parse_version(version)
    return parsed is not None and spec.match(parsed)


def select_highest(
    expression: str,
    versions: Iterable[str],
    *,
    package_name: Optional[str] = None,
) -> str:
    """Return the highest version in ``versions`` that satisfies ``expression``.

    ``versions`` is any iterable of version strings; a
    :class:`~deptree.models.PackageMetadata` iterates over its keys. The
    returned string is the key exactly as published.

    Raises:
        InvalidConstraintError: ``expression`` is not valid range syntax.
        NoCompatibleVersionError: No valid version satisfies the range.
    """
    spec = parse_range(expression, package_name=package_name)

    matching: List[Tuple[semantic_version.Version, str]] = []
    total = 0
    for raw in versions:
        total += 1
        parsed = parse_version(raw)
        if parsed is None:
            continue
        if spec.match(parsed):
            matching.append((parsed, raw))

    if not matching:
        raise NoCompatibleVersionError(
            f"No version of '{package_name or '?'}' satisfies '{expression}'",
            package_name=package_name,
            constraint=expression,
            candidates=total,
        )

    best = max(matching, key=lambda item: item[0])
    logger.debug(
        "Selected %s@%s for '%s' (%d of %d candidates matched)",
        package_name,
        best[1],
        expression,
        len(matching),
        total,
    )
    return best[1]
