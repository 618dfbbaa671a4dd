from __future__ import annotations

import asyncio
from typing import Callable
from unittest.mock import patch

import pytest

from deptree.models import NodeState, ResolvedNode
from deptree.core.registry import RegistryClient
from deptree.core.resolver import DependencyResolver, resolve_package
from deptree.constants import MODE_CONCURRENT, MODE_SEQUENTIAL, RESOLUTION_MODES
from deptree.exceptions import (
    ConflictingConstraintsError,
    CycleDetectedError,
    InvalidConstraintError,
    NoCompatibleVersionError,
    PackageNotFoundError,
)

from tests.conftest import REGISTRY_URL, FakeRegistryHTTP, Packages

MakeRegistry = Callable[..., RegistryClient]

EXPRESS_LIKE: Packages = {
    "app": {
        "1.0.0": {"router": "^2.0.0"},
        "1.2.0": {"router": "^2.0.0", "debug": "~4.1.0"},
        "2.0.0": {},
    },
    "router": {"2.0.0": {"debug": "^4.0.0"}, "2.3.1": {"debug": "^4.0.0"}, "3.0.0": {}},
    "debug": {"4.1.0": {}, "4.1.1": {}, "4.3.4": {}},
}


def _nodes(root: ResolvedNode):
    return list(root.walk())


@pytest.mark.unit
class TestResolverInit:
    """Tests for DependencyResolver construction."""

    def test_unknown_mode_rejected(self, make_registry: MakeRegistry) -> None:
        with pytest.raises(ValueError, match="Unknown resolution mode"):
            DependencyResolver(make_registry({}), mode="parallel")

    def test_default_mode_is_concurrent(self, make_registry: MakeRegistry) -> None:
        assert DependencyResolver(make_registry({})).mode == MODE_CONCURRENT


@pytest.mark.unit
@pytest.mark.parametrize("mode", RESOLUTION_MODES)
class TestResolveBothModes:
    """Behavior shared by the sequential and concurrent strategies."""

    @pytest.mark.asyncio
    async def test_single_package_without_dependencies(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        """Test the left-pad case: highest 1.x with an empty dependency map."""
        registry = make_registry(
            {"left-pad": {"1.0.0": {}, "1.1.3": {}, "1.3.0": {}, "2.0.0-beta.1": {}}}
        )

        result = await DependencyResolver(registry, mode=mode).resolve("left-pad", "^1.0.0")

        assert result.to_dict() == {
            "name": "left-pad",
            "version": "1.3.0",
            "dependencies": {},
        }
        assert result.mode == mode
        assert result.constraint == "^1.0.0"
        assert result.metadata_fetches == 1
        assert result.manifest_fetches == 1

    @pytest.mark.asyncio
    async def test_transitive_tree(self, mode: str, make_registry: MakeRegistry) -> None:
        """Test every level picks the highest version satisfying its parent's range."""
        registry = make_registry(EXPRESS_LIKE)

        result = await DependencyResolver(registry, mode=mode).resolve("app", "^1.0.0")
        root = result.root

        assert root.version == "1.2.0"
        assert root.children["router"].version == "2.3.1"
        assert root.children["debug"].version == "4.1.1"
        assert root.children["router"].children["debug"].version in ("4.1.1", "4.3.4")
        assert result.total_packages == 3

    @pytest.mark.asyncio
    async def test_every_node_ends_resolved(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        registry = make_registry(EXPRESS_LIKE)

        result = await DependencyResolver(registry, mode=mode).resolve("app", "^1.0.0")

        assert all(node.state is NodeState.RESOLVED for node in _nodes(result.root))

    @pytest.mark.asyncio
    async def test_default_range_selects_highest(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        registry = make_registry(EXPRESS_LIKE)

        result = await DependencyResolver(registry, mode=mode).resolve("app")

        assert result.root.version == "2.0.0"
        assert result.root.children == {}

    @pytest.mark.asyncio
    async def test_unknown_root(self, mode: str, make_registry: MakeRegistry) -> None:
        registry = make_registry({})

        with pytest.raises(PackageNotFoundError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("does-not-exist", "*")

        assert exc_info.value.package_name == "does-not-exist"

    @pytest.mark.asyncio
    async def test_unknown_transitive_dependency(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        """Test a missing dependency fails the whole request."""
        registry = make_registry({"app": {"1.0.0": {"ghost": "^1.0.0"}}})

        with pytest.raises(PackageNotFoundError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("app", "1.0.0")

        assert exc_info.value.package_name == "ghost"

    @pytest.mark.asyncio
    async def test_no_compatible_transitive_version(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        registry = make_registry(
            {
                "app": {"1.0.0": {"lib": "^3.0.0"}},
                "lib": {"1.0.0": {}, "2.5.0": {}},
            }
        )

        with pytest.raises(NoCompatibleVersionError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("app", "1.0.0")

        assert exc_info.value.package_name == "lib"
        assert exc_info.value.constraint == "^3.0.0"

    @pytest.mark.asyncio
    async def test_invalid_root_range_makes_no_calls(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        """Test a malformed root range is rejected before any registry call."""
        registry = make_registry(EXPRESS_LIKE)

        with pytest.raises(InvalidConstraintError):
            await DependencyResolver(registry, mode=mode).resolve("app", "not a range")

        assert registry.http_client.calls == []

    @pytest.mark.asyncio
    async def test_invalid_transitive_range(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        registry = make_registry(
            {"app": {"1.0.0": {"lib": "~>2"}}, "lib": {"2.0.0": {}}}
        )

        with pytest.raises(InvalidConstraintError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("app", "1.0.0")

        assert exc_info.value.package_name == "lib"

    @pytest.mark.asyncio
    async def test_direct_cycle(self, mode: str, make_registry: MakeRegistry) -> None:
        """Test a -> b -> a is reported with its chain."""
        registry = make_registry(
            {"a": {"1.0.0": {"b": "^1.0.0"}}, "b": {"1.0.0": {"a": "^1.0.0"}}}
        )

        with pytest.raises(CycleDetectedError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("a", "^1.0.0")

        assert exc_info.value.chain == ["a", "b", "a"]
        assert exc_info.value.package_name == "a"

    @pytest.mark.asyncio
    async def test_self_dependency(self, mode: str, make_registry: MakeRegistry) -> None:
        registry = make_registry({"loop": {"1.0.0": {"loop": "*"}}})

        with pytest.raises(CycleDetectedError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("loop", "*")

        assert exc_info.value.chain == ["loop", "loop"]

    @pytest.mark.asyncio
    async def test_deep_cycle_chain_starts_at_repeated_package(
        self, mode: str, make_registry: MakeRegistry
    ) -> None:
        registry = make_registry(
            {
                "root": {"1.0.0": {"a": "*"}},
                "a": {"1.0.0": {"b": "*"}},
                "b": {"1.0.0": {"c": "*"}},
                "c": {"1.0.0": {"a": "*"}},
            }
        )

        with pytest.raises(CycleDetectedError) as exc_info:
            await DependencyResolver(registry, mode=mode).resolve("root", "*")

        assert exc_info.value.chain == ["a", "b", "c", "a"]

    @pytest.mark.asyncio
    async def test_scoped_packages(self, mode: str, make_registry: MakeRegistry) -> None:
        registry = make_registry(
            {
                "@scope/app": {"1.0.0": {"@types/node": "^20.0.0"}},
                "@types/node": {"20.1.0": {}, "20.11.5": {}, "21.0.0": {}},
            }
        )

        result = await DependencyResolver(registry, mode=mode).resolve("@scope/app", "1.0.0")

        assert result.root.children["@types/node"].version == "20.11.5"
        assert f"{REGISTRY_URL}/@types%2Fnode" in registry.http_client.calls


@pytest.mark.unit
class TestDeduplication:
    """Tests for the difference between the two strategies on shared dependencies."""

    @pytest.mark.asyncio
    async def test_concurrent_fetches_shared_dependency_once(
        self, make_registry: MakeRegistry, diamond_packages: Packages
    ) -> None:
        """Test the diamond: c is fetched once and reused by the second branch."""
        registry = make_registry(diamond_packages)

        result = await DependencyResolver(registry, mode=MODE_CONCURRENT).resolve(
            "root", "1.0.0"
        )

        fake: FakeRegistryHTTP = registry.http_client
        assert fake.metadata_calls("c") == 1

        c_nodes = [
            result.root.children["a"].children["c"],
            result.root.children["b"].children["c"],
        ]
        assert [node.version for node in c_nodes] == ["1.4.0", "1.4.0"]
        assert sorted(node.deduplicated for node in c_nodes) == [False, True]
        assert result.dedup_hits == 1
        assert result.root.flatten() == {"a": ["1.1.0"], "b": ["1.0.0"], "c": ["1.4.0"]}

    @pytest.mark.asyncio
    async def test_dedup_node_serialization(
        self, make_registry: MakeRegistry, diamond_packages: Packages
    ) -> None:
        """Test a reused node is a leaf flagged as deduplicated."""
        registry = make_registry(diamond_packages)

        result = await DependencyResolver(registry, mode=MODE_CONCURRENT).resolve(
            "root", "1.0.0"
        )

        c_dicts = [
            result.to_dict()["dependencies"][parent]["dependencies"]["c"]
            for parent in ("a", "b")
        ]
        dedup = [d for d in c_dicts if d.get("deduplicated")]
        assert dedup == [
            {"name": "c", "version": "1.4.0", "dependencies": {}, "deduplicated": True}
        ]

    @pytest.mark.asyncio
    async def test_sequential_refetches_shared_dependency(
        self, make_registry: MakeRegistry, diamond_packages: Packages
    ) -> None:
        """Test sequential mode resolves every occurrence independently."""
        registry = make_registry(diamond_packages)

        result = await DependencyResolver(registry, mode=MODE_SEQUENTIAL).resolve(
            "root", "1.0.0"
        )

        fake: FakeRegistryHTTP = registry.http_client
        assert fake.metadata_calls("c") == 2
        assert result.dedup_hits == 0
        assert not any(node.deduplicated for node in _nodes(result.root))
        assert result.metadata_fetches == 5
        assert result.manifest_fetches == 5

    @pytest.mark.asyncio
    async def test_sequential_fetch_order_is_depth_first(
        self, make_registry: MakeRegistry, diamond_packages: Packages
    ) -> None:
        registry = make_registry(diamond_packages)

        await DependencyResolver(registry, mode=MODE_SEQUENTIAL).resolve("root", "1.0.0")

        metadata_order = [
            call[len(REGISTRY_URL) + 1 :]
            for call in registry.http_client.calls
            if call.count("/") == 3
        ]
        assert metadata_order == ["root", "a", "c", "b", "c"]

    @pytest.mark.asyncio
    async def test_conflicting_ranges_fail_in_concurrent_mode(
        self, make_registry: MakeRegistry
    ) -> None:
        """Test a reused version that violates another branch's range is an error."""
        registry = make_registry(
            {
                "root": {"1.0.0": {"a": "*", "b": "*"}},
                "a": {"1.0.0": {"c": "^1.0.0"}},
                "b": {"1.0.0": {"c": "^2.0.0"}},
                "c": {"1.5.0": {}, "2.3.0": {}},
            }
        )

        with pytest.raises(ConflictingConstraintsError) as exc_info:
            await DependencyResolver(registry, mode=MODE_CONCURRENT).resolve("root", "*")

        exc = exc_info.value
        assert exc.package_name == "c"
        assert exc.resolved_version in ("1.5.0", "2.3.0")
        assert exc.required_by in ("a@1.0.0", "b@1.0.0")

    @pytest.mark.asyncio
    async def test_conflicting_ranges_coexist_in_sequential_mode(
        self, make_registry: MakeRegistry
    ) -> None:
        registry = make_registry(
            {
                "root": {"1.0.0": {"a": "*", "b": "*"}},
                "a": {"1.0.0": {"c": "^1.0.0"}},
                "b": {"1.0.0": {"c": "^2.0.0"}},
                "c": {"1.5.0": {}, "2.3.0": {}},
            }
        )

        result = await DependencyResolver(registry, mode=MODE_SEQUENTIAL).resolve("root", "*")

        assert result.root.flatten()["c"] == ["1.5.0", "2.3.0"]

    @pytest.mark.asyncio
    async def test_cross_branch_cycle_terminates(self, make_registry: MakeRegistry) -> None:
        """Test a -> b in one branch and b -> a in another does not deadlock."""
        registry = make_registry(
            {
                "root": {"1.0.0": {"a": "*", "b": "*"}},
                "a": {"1.0.0": {"b": "*"}},
                "b": {"1.0.0": {"a": "*"}},
            }
        )
        resolver = DependencyResolver(registry, mode=MODE_CONCURRENT)

        result = await asyncio.wait_for(resolver.resolve("root", "*"), timeout=5)

        a = result.root.children["a"]
        b = result.root.children["b"]
        assert a.children["b"].deduplicated
        assert b.children["a"].deduplicated
        assert result.dedup_hits == 2


@pytest.mark.unit
class TestConcurrency:
    """Tests for fail-fast cancellation and the registry concurrency bound."""

    @pytest.mark.asyncio
    async def test_failure_cancels_running_siblings(
        self, make_registry: MakeRegistry
    ) -> None:
        """Test one failing branch aborts without waiting for a blocked sibling."""
        registry = make_registry(
            {"root": {"1.0.0": {"slow": "*", "missing": "*"}}, "slow": {"1.0.0": {}}}
        )
        fake: FakeRegistryHTTP = registry.http_client
        fake.gates["slow"] = asyncio.Event()

        resolver = DependencyResolver(registry, mode=MODE_CONCURRENT)
        with pytest.raises(PackageNotFoundError):
            await asyncio.wait_for(resolver.resolve("root", "*"), timeout=5)

        assert fake.in_flight == 0

    @pytest.mark.asyncio
    async def test_first_failure_in_declaration_order_wins(
        self, make_registry: MakeRegistry
    ) -> None:
        """Test simultaneous failures report the earliest declared dependency."""
        registry = make_registry({"root": {"1.0.0": {"first": "*", "second": "*"}}})

        with pytest.raises(PackageNotFoundError) as exc_info:
            await DependencyResolver(registry, mode=MODE_CONCURRENT).resolve("root", "*")

        assert exc_info.value.package_name == "first"

    @pytest.mark.asyncio
    async def test_waiter_on_cancelled_claim_does_not_mask_failure(
        self, make_registry: MakeRegistry
    ) -> None:
        """Test a branch waiting on a cancelled claim keeps the real error.

        ``b`` is declared first and waits on ``x``, which ``a`` claimed and
        is still fetching when ``a``'s other dependency ``y`` turns out to be
        missing. Cancelling ``x`` must not surface as ``b``'s own failure.
        """
        registry = make_registry(
            {
                "root": {"1.0.0": {"b": "*", "a": "*"}},
                "a": {"1.0.0": {"x": "*", "y": "*"}},
                "b": {"1.0.0": {"x": "*"}},
                "x": {"1.0.0": {}},
            }
        )
        fake: FakeRegistryHTTP = registry.http_client
        fake.delays.update({"b": 0.01, "y": 0.2})
        fake.gates["x"] = asyncio.Event()

        resolver = DependencyResolver(registry, mode=MODE_CONCURRENT)
        with pytest.raises(PackageNotFoundError) as exc_info:
            await asyncio.wait_for(resolver.resolve("root", "*"), timeout=5)

        assert exc_info.value.package_name == "y"
        assert fake.in_flight == 0

    @pytest.mark.asyncio
    async def test_registry_concurrency_is_bounded(
        self, make_registry: MakeRegistry
    ) -> None:
        """Test no more calls are in flight than the client's limit."""
        deps = {f"dep-{i}": "*" for i in range(8)}
        packages: Packages = {"root": {"1.0.0": deps}}
        packages.update({name: {"1.0.0": {}} for name in deps})
        registry = make_registry(packages, concurrent_limit=2)
        fake: FakeRegistryHTTP = registry.http_client
        fake.delays.update({name: 0.01 for name in deps})

        result = await DependencyResolver(registry, mode=MODE_CONCURRENT).resolve("root", "*")

        assert len(result.root.children) == 8
        assert fake.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_sequential_keeps_one_call_in_flight(
        self, make_registry: MakeRegistry, diamond_packages: Packages
    ) -> None:
        registry = make_registry(diamond_packages)

        await DependencyResolver(registry, mode=MODE_SEQUENTIAL).resolve("root", "1.0.0")

        assert registry.http_client.max_in_flight == 1


@pytest.mark.unit
class TestResolvePackage:
    """Tests for the resolve_package convenience function."""

    @pytest.mark.asyncio
    async def test_uses_given_client_and_leaves_it_open(self) -> None:
        fake = FakeRegistryHTTP({"left-pad": {"1.3.0": {}}})

        result = await resolve_package(
            "left-pad",
            "^1.0.0",
            registry_url=REGISTRY_URL,
            http_client=fake,
        )

        assert result.root.version == "1.3.0"
        assert fake.closed is False

    @pytest.mark.asyncio
    async def test_creates_and_closes_its_own_client(self) -> None:
        """Test a client is created from the settings when none is given."""
        fake = FakeRegistryHTTP({"left-pad": {"1.3.0": {}}})

        class _ContextFake:
            def __init__(self, **kwargs):
                self.kwargs = kwargs

            async def __aenter__(self):
                return fake

            async def __aexit__(self, *exc_info):
                await fake.close()

        with patch("deptree.core.resolver.HTTPClient", side_effect=_ContextFake) as factory:
            result = await resolve_package(
                "left-pad",
                registry_url=REGISTRY_URL,
                mode=MODE_SEQUENTIAL,
                timeout=7,
                max_retries=2,
                max_concurrency=3,
            )

        factory.assert_called_once_with(timeout=7, max_retries=2, max_concurrency=3)
        assert result.mode == MODE_SEQUENTIAL
        assert fake.closed is True
