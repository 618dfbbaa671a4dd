"""Registry client for deptree.

Reads the two documents the resolver needs from an npm-compatible
registry:

* ``GET {registry}/{name}``           -> :class:`PackageMetadata`
* ``GET {registry}/{name}/{version}`` -> :class:`PackageManifest`

Nothing is cached: each call is a fresh network read. A semaphore caps
how many calls one client keeps in flight, so a single client shared by
every task of a request bounds that request's registry concurrency
regardless of tree depth.

Typical usage::

    async with HTTPClient() as http:
        registry = RegistryClient(http)
        metadata = await registry.fetch_metadata("left-pad")
        manifest = await registry.fetch_manifest("left-pad", "1.3.0")
"""

from __future__ import annotations

import asyncio
from urllib.parse import quote
from typing import Any, Dict, Optional

from deptree.utils.http import HTTPClient
from deptree.utils.logger import get_logger
from deptree.models.package import PackageManifest, PackageMetadata
from deptree.exceptions import NetworkError, PackageNotFoundError, ParseError
from deptree.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_REGISTRY_URL,
    MANIFEST_PATH,
    METADATA_PATH,
)

logger = get_logger("registry")

__all__ = ["RegistryClient", "encode_package_name"]


def encode_package_name(name: str) -> str:
    """Encode a package name for use as a single URL path segment.

    Scoped names keep their leading ``@`` but the separating slash is
    escaped, as the npm registry expects.

    Example::

        >>> encode_package_name("@types/node")
        '@types%2Fnode'
    """
    return quote(name, safe="@")


class RegistryClient:
    """Fetch package metadata and manifests from a registry.

    Args:
        http_client: A configured :class:`HTTPClient` (owns the connection pool).
        registry_url: Registry base URL, without a trailing slash.
        concurrent_limit: Maximum number of registry calls in flight at once.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        *,
        registry_url: str = DEFAULT_REGISTRY_URL,
        concurrent_limit: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self.http_client = http_client
        self.registry_url = registry_url.rstrip("/")
        self._semaphore = asyncio.Semaphore(concurrent_limit)

        self.metadata_fetches: int = 0
        self.manifest_fetches: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_metadata(self, name: str) -> PackageMetadata:
        """Fetch every published version of ``name``.

        Raises:
            PackageNotFoundError: The registry has no such package.
            NetworkError: Transport failure or unexpected status.
            ParseError: The body does not match the metadata schema.
        """
        url = METADATA_PATH.format(
            registry=self.registry_url, package=encode_package_name(name)
        )
        self.metadata_fetches += 1
        data = await self._get_json(url, name)
        metadata = PackageMetadata.from_json(data, package_name=name)
        logger.debug("Fetched metadata for %s (%d versions)", name, len(metadata))
        return metadata

    async def fetch_manifest(self, name: str, version: str) -> PackageManifest:
        """Fetch the manifest of one concrete version.

        Raises:
            PackageNotFoundError: The registry has no such package or version.
            NetworkError: Transport failure or unexpected status.
            ParseError: The body does not match the manifest schema.
        """
        url = MANIFEST_PATH.format(
            registry=self.registry_url,
            package=encode_package_name(name),
            version=quote(version, safe=""),
        )
        self.manifest_fetches += 1
        data = await self._get_json(url, name, version)
        manifest = PackageManifest.from_json(data, package_name=name, version=version)
        logger.debug(
            "Fetched manifest for %s@%s (%d dependencies)",
            name,
            version,
            len(manifest.dependencies),
        )
        return manifest

    def stats(self) -> Dict[str, int]:
        """Return registry call counters."""
        return {
            "metadata_fetches": self.metadata_fetches,
            "manifest_fetches": self.manifest_fetches,
        }

    # ------------------------------------------------------------------
    # Network helpers
    # ------------------------------------------------------------------

    async def _get_json(
        self, url: str, name: str, version: Optional[str] = None
    ) -> Dict[str, Any]:
        async with self._semaphore:
            try:
                return await self.http_client.get_json(url)
            except NetworkError as exc:
                if exc.status_code == 404:
                    target = f"{name}@{version}" if version else name
                    raise PackageNotFoundError(
                        f"Package '{target}' not found in registry",
                        package_name=name,
                        version=version,
                    ) from exc
                exc.details.setdefault("package", name)
                raise
            except ParseError as exc:
                exc.package_name = name
                exc.details.setdefault("package", name)
                raise
