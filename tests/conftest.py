"""Shared fixtures: an in-memory registry standing in for the HTTP layer."""

from __future__ import annotations

import asyncio
from urllib.parse import unquote
from typing import Any, Callable, Dict, List, Optional

import pytest

from deptree.core.registry import RegistryClient, encode_package_name
from deptree.exceptions import NetworkError

REGISTRY_URL = "https://registry.test"

# name -> version -> dependencies
Packages = Dict[str, Dict[str, Dict[str, str]]]


class FakeRegistryHTTP:
    """Duck-typed ``HTTPClient`` answering from a dict of packages.

    ``delays`` slows individual packages down, ``gates`` blocks them until
    the event is set. ``in_flight`` / ``max_in_flight`` record concurrency.
    """

    def __init__(self, packages: Packages) -> None:
        self.packages = packages
        self.calls: List[str] = []
        self.delays: Dict[str, float] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def get_json(self, url: str) -> Dict[str, Any]:
        self.calls.append(url)
        parts = [unquote(part) for part in url[len(REGISTRY_URL) + 1 :].split("/")]
        name = parts[0]

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(name, 0))
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
        finally:
            self.in_flight -= 1

        versions = self.packages.get(name)
        if versions is None:
            raise NetworkError(f"HTTP 404 error for {url}", url=url, status_code=404)

        if len(parts) == 1:
            return {
                "versions": {
                    version: _manifest(name, version, deps)
                    for version, deps in versions.items()
                }
            }

        version = parts[1]
        if version not in versions:
            raise NetworkError(f"HTTP 404 error for {url}", url=url, status_code=404)
        return _manifest(name, version, versions[version])

    async def close(self) -> None:
        self.closed = True

    def metadata_calls(self, name: str) -> int:
        target = f"{REGISTRY_URL}/{encode_package_name(name)}"
        return sum(1 for call in self.calls if call == target)


def _manifest(name: str, version: str, deps: Dict[str, str]) -> Dict[str, Any]:
    return {"name": name, "version": version, "dependencies": dict(deps)}


@pytest.fixture
def make_registry() -> Callable[..., RegistryClient]:
    """Build a :class:`RegistryClient` over a :class:`FakeRegistryHTTP`.

    The fake is reachable as ``registry.http_client``.
    """

    def _make(packages: Packages, *, concurrent_limit: Optional[int] = None) -> RegistryClient:
        kwargs: Dict[str, Any] = {"registry_url": REGISTRY_URL}
        if concurrent_limit is not None:
            kwargs["concurrent_limit"] = concurrent_limit
        return RegistryClient(FakeRegistryHTTP(packages), **kwargs)

    return _make


@pytest.fixture
def diamond_packages() -> Packages:
    """root -> a, b; a -> c@^1.0.0; b -> c@^1.0.0."""
    return {
        "root": {"1.0.0": {"a": "^1.0.0", "b": "^1.0.0"}},
        "a": {"1.0.0": {"c": "^1.0.0"}, "1.1.0": {"c": "^1.0.0"}},
        "b": {"1.0.0": {"c": "^1.0.0"}},
        "c": {"1.0.0": {}, "1.4.0": {}, "2.0.0": {}},
    }
