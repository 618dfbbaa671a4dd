"""
Registry document models for deptree.

These dataclasses are the decoded form of the two registry endpoints:
the metadata document (every published version of a package) and the
manifest of one concrete version (its declared dependency ranges).
Decoding is strict: anything that does not match the schema raises
:class:`~deptree.exceptions.ParseError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional

from deptree.exceptions import ParseError


def _decode_dependencies(
    raw: Any,
    *,
    package_name: str,
) -> Dict[str, str]:
    """Validate a ``dependencies`` object: a mapping of name to range string.

    A missing or ``null`` value means the package has no dependencies.
    """
    if raw is None:
        return {}

    if not isinstance(raw, Mapping):
        raise ParseError(
            f"'dependencies' of '{package_name}' must be an object",
            package_name=package_name,
        )

    deps: Dict[str, str] = {}
    for dep_name, dep_range in raw.items():
        if not isinstance(dep_range, str):
            raise ParseError(
                f"Range for dependency '{dep_name}' of '{package_name}' must be a string",
                package_name=package_name,
            )
        deps[str(dep_name)] = dep_range

    return deps


@dataclass(frozen=True)
class PackageManifest:
    """Declared dependencies of one concrete package version.

    Attributes:
        name: Package name as reported by the registry.
        version: Concrete version string.
        dependencies: Dependency name -> range expression, in declaration order.
    """

    name: str
    version: str
    dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(
        cls,
        data: Mapping[str, Any],
        *,
        package_name: str,
        version: Optional[str] = None,
    ) -> "PackageManifest":
        """Decode ``{"name", "version", "dependencies"}``.

        ``name`` and ``version`` fall back to the requested values when the
        registry omits them.
        """
        name = data.get("name", package_name)
        resolved_version = data.get("version", version)

        if not isinstance(name, str) or not isinstance(resolved_version, str):
            raise ParseError(
                f"Manifest of '{package_name}' has a non-string name or version",
                package_name=package_name,
            )

        return cls(
            name=name,
            version=resolved_version,
            dependencies=_decode_dependencies(
                data.get("dependencies"), package_name=package_name
            ),
        )


# Metadata entries carry the same shape as a manifest.
VersionDescriptor = PackageManifest


@dataclass
class PackageMetadata:
    """Every published version of a package.

    Only the keys of :attr:`versions` take part in version selection; the
    descriptors are kept for callers that want them.

    Attributes:
        name: Package name requested from the registry.
        versions: Version string -> descriptor, as published.
    """

    name: str
    versions: Dict[str, VersionDescriptor] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Mapping[str, Any], *, package_name: str) -> "PackageMetadata":
        """Decode ``{"versions": {"<version>": {...}, ...}}``."""
        raw_versions = data.get("versions")
        if not isinstance(raw_versions, Mapping):
            raise ParseError(
                f"Metadata of '{package_name}' has no 'versions' object",
                package_name=package_name,
            )

        versions: Dict[str, VersionDescriptor] = {}
        for version_key, entry in raw_versions.items():
            if not isinstance(entry, Mapping):
                raise ParseError(
                    f"Version entry '{version_key}' of '{package_name}' must be an object",
                    package_name=package_name,
                )
            try:
                descriptor = VersionDescriptor.from_json(
                    entry, package_name=package_name, version=str(version_key)
                )
            except ParseError:
                # Old publishes sometimes carry malformed dependency blocks;
                # the manifest endpoint is authoritative for those.
                descriptor = VersionDescriptor(name=package_name, version=str(version_key))
            versions[str(version_key)] = descriptor

        return cls(name=package_name, versions=versions)

    def __iter__(self) -> Iterator[str]:
        return iter(self.versions)

    def __len__(self) -> int:
        return len(self.versions)

    def __contains__(self, version: object) -> bool:
        return version in self.versions
