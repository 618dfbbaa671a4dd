"""Dependency resolution for deptree.

Turns ``(name, range)`` into a :class:`ResolvedNode` tree by repeatedly
fetching metadata, selecting the highest satisfying version, fetching
that version's manifest and recursing into its dependencies.

Two strategies are available:

1. **sequential**: depth-first on a single task, dependencies in
   declaration order. No deduplication: a package that appears in several
   places is resolved (and fetched) again each time.
2. **concurrent**: one task per dependency edge. Package names are
   claimed through a shared :class:`ResolutionState`; the first branch to
   claim a name resolves it, later branches reuse the published version
   as a ``deduplicated`` leaf. The reused version must still satisfy the
   later branch's range, otherwise :class:`ConflictingConstraintsError`
   is raised.

Both strategies fail fast: the first error anywhere aborts the whole
request, and in the concurrent strategy still-running siblings are
cancelled. A dependency that names one of its own ancestors raises
:class:`CycleDetectedError`. Registry concurrency is bounded by the
:class:`RegistryClient`'s semaphore, not per tree level.

Typical usage::

    async with HTTPClient() as http:
        resolver = DependencyResolver(RegistryClient(http))
        result = await resolver.resolve("express", "^4.0.0")
        print(result.summary())
"""

from __future__ import annotations

import time
import asyncio
from typing import Dict, Iterable, Optional, Tuple

from deptree.utils.http import HTTPClient
from deptree.utils.logger import get_logger
from deptree.core.state import ResolutionState
from deptree.core.registry import RegistryClient
from deptree.core.selector import parse_range, satisfies, select_highest
from deptree.models import NodeState, PackageManifest, ResolutionResult, ResolvedNode
from deptree.exceptions import (
    ConflictingConstraintsError,
    CycleDetectedError,
)
from deptree.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODE,
    DEFAULT_RANGE,
    DEFAULT_REGISTRY_URL,
    DEFAULT_TIMEOUT,
    MODE_SEQUENTIAL,
    RESOLUTION_MODES,
)

logger = get_logger("resolver")

__all__ = ["DependencyResolver", "resolve_package"]

# Ancestor chain from the root down to the current node.
Path = Tuple[str, ...]


class DependencyResolver:
    """Resolve a package's transitive dependency tree.

    Args:
        registry: Registry client used for every fetch. Its semaphore is the
            concurrency bound for the whole request.
        mode: ``"concurrent"`` (default) or ``"sequential"``.

    Raises:
        ValueError: ``mode`` is not a known strategy.
    """

    def __init__(
        self,
        registry: RegistryClient,
        *,
        mode: str = DEFAULT_MODE,
    ) -> None:
        if mode not in RESOLUTION_MODES:
            raise ValueError(
                f"Unknown resolution mode '{mode}'; expected one of {', '.join(RESOLUTION_MODES)}"
            )
        self.registry = registry
        self.mode = mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(
        self,
        name: str,
        constraint: str = DEFAULT_RANGE,
    ) -> ResolutionResult:
        """Resolve ``name`` against ``constraint`` and every transitive dependency.

        Returns:
            A :class:`ResolutionResult` whose ``root`` is the resolved tree.

        Raises:
            InvalidConstraintError: A range anywhere in the graph is malformed.
            PackageNotFoundError: A package does not exist in the registry.
            NoCompatibleVersionError: A range matches no published version.
            NetworkError: The registry could not be reached.
            ParseError: The registry answered with an unexpected document.
            CycleDetectedError: A dependency names one of its ancestors.
            ConflictingConstraintsError: A reused version violates a range
                (concurrent mode only).
        """
        # Reject a malformed root range before touching the network.
        parse_range(constraint, package_name=name)

        started = time.perf_counter()
        metadata_before = self.registry.metadata_fetches
        manifest_before = self.registry.manifest_fetches
        dedup_hits = 0

        logger.info("Resolving %s@%s (%s)", name, constraint, self.mode)

        if self.mode == MODE_SEQUENTIAL:
            root = await self._resolve_sequential(name, constraint, ())
        else:
            state = ResolutionState()
            await state.claim(name)
            root = await self._resolve_owned(name, constraint, (), state)
            dedup_hits = state.dedup_hits

        result = ResolutionResult(
            root=root,
            mode=self.mode,
            constraint=constraint,
            metadata_fetches=self.registry.metadata_fetches - metadata_before,
            manifest_fetches=self.registry.manifest_fetches - manifest_before,
            dedup_hits=dedup_hits,
            elapsed=time.perf_counter() - started,
        )
        logger.info(
            "Resolved %s@%s: %d packages in %.2fs",
            root.name,
            root.version,
            result.total_packages,
            result.elapsed,
        )
        return result

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _select(self, node: ResolvedNode, constraint: str) -> None:
        """Fetch metadata for ``node`` and pick its version."""
        node.advance(NodeState.FETCHING_METADATA)
        metadata = await self.registry.fetch_metadata(node.name)

        node.advance(NodeState.SELECTING_VERSION)
        node.version = select_highest(constraint, metadata, package_name=node.name)

    async def _fetch_manifest(self, node: ResolvedNode) -> PackageManifest:
        node.advance(NodeState.FETCHING_MANIFEST)
        manifest = await self.registry.fetch_manifest(node.name, node.version)
        node.advance(NodeState.RESOLVING_CHILDREN)
        return manifest

    @staticmethod
    def _check_cycle(dep_name: str, path: Path) -> None:
        if dep_name in path:
            chain = path[path.index(dep_name):] + (dep_name,)
            raise CycleDetectedError(
                f"Dependency cycle detected at '{dep_name}'",
                package_name=dep_name,
                chain=chain,
            )

    @staticmethod
    def _mark_failed(node: ResolvedNode) -> None:
        if not node.state.is_terminal:
            node.advance(NodeState.FAILED)

    # ------------------------------------------------------------------
    # Sequential strategy
    # ------------------------------------------------------------------

    async def _resolve_sequential(
        self,
        name: str,
        constraint: str,
        ancestors: Path,
    ) -> ResolvedNode:
        node = ResolvedNode(name=name)
        path = ancestors + (name,)

        try:
            await self._select(node, constraint)
            manifest = await self._fetch_manifest(node)

            for dep_name, dep_range in manifest.dependencies.items():
                self._check_cycle(dep_name, path)
                node.children[dep_name] = await self._resolve_sequential(
                    dep_name, dep_range, path
                )

            node.advance(NodeState.RESOLVED)
        except BaseException:
            self._mark_failed(node)
            raise

        logger.debug("Resolved %s@%s", node.name, node.version)
        return node

    # ------------------------------------------------------------------
    # Concurrent strategy
    # ------------------------------------------------------------------

    async def _resolve_owned(
        self,
        name: str,
        constraint: str,
        ancestors: Path,
        state: ResolutionState,
    ) -> ResolvedNode:
        """Resolve a package whose claim the caller already owns."""
        node = ResolvedNode(name=name)
        path = ancestors + (name,)

        try:
            try:
                await self._select(node, constraint)
            except asyncio.CancelledError:
                state.abandon(name)
                raise
            except Exception as exc:
                state.fail(name, exc)
                raise

            state.publish(name, node.version)

            manifest = await self._fetch_manifest(node)
            node.children = await self._fan_out(node, manifest, path, state)
            node.advance(NodeState.RESOLVED)
        except BaseException:
            self._mark_failed(node)
            raise

        logger.debug("Resolved %s@%s", node.name, node.version)
        return node

    async def _resolve_edge(
        self,
        parent: ResolvedNode,
        dep_name: str,
        dep_range: str,
        path: Path,
        state: ResolutionState,
    ) -> ResolvedNode:
        """Resolve one dependency edge, reusing an existing claim when there is one."""
        self._check_cycle(dep_name, path)

        owner, _ = await state.claim(dep_name)
        if owner:
            return await self._resolve_owned(dep_name, dep_range, path, state)

        version = await state.wait_for(dep_name)
        if not satisfies(version, dep_range):
            raise ConflictingConstraintsError(
                f"'{dep_name}' was resolved to {version}, "
                f"which does not satisfy '{dep_range}' required by "
                f"{parent.name}@{parent.version}",
                package_name=dep_name,
                resolved_version=version,
                constraint=dep_range,
                required_by=f"{parent.name}@{parent.version}",
            )

        logger.debug("Reusing %s@%s for %s", dep_name, version, parent.name)
        return ResolvedNode(
            name=dep_name,
            version=version,
            deduplicated=True,
            state=NodeState.RESOLVED,
        )

    async def _fan_out(
        self,
        parent: ResolvedNode,
        manifest: PackageManifest,
        path: Path,
        state: ResolutionState,
    ) -> Dict[str, ResolvedNode]:
        """Resolve every dependency of ``parent`` concurrently.

        Waits for all of them; on the first failure the rest are cancelled
        and the failure is re-raised. Children that ended cancelled are
        never the reported failure.
        """
        if not manifest.dependencies:
            return {}

        tasks: Dict[str, "asyncio.Task[ResolvedNode]"] = {
            dep_name: asyncio.ensure_future(
                self._resolve_edge(parent, dep_name, dep_range, path, state)
            )
            for dep_name, dep_range in manifest.dependencies.items()
        }

        try:
            await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
        finally:
            await _cancel_pending(tasks.values())

        failure: Optional[BaseException] = None
        for task in tasks.values():
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None and failure is None:
                failure = exc

        if failure is not None:
            raise failure

        return {dep_name: task.result() for dep_name, task in tasks.items()}


async def _cancel_pending(tasks: Iterable["asyncio.Future[ResolvedNode]"]) -> None:
    """Cancel unfinished tasks and wait until they have actually stopped."""
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


async def resolve_package(
    name: str,
    constraint: str = DEFAULT_RANGE,
    *,
    mode: str = DEFAULT_MODE,
    registry_url: str = DEFAULT_REGISTRY_URL,
    timeout: int = DEFAULT_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    http_client: Optional[HTTPClient] = None,
) -> ResolutionResult:
    """Resolve one package with a fresh registry client.

    When ``http_client`` is given it is used as-is and left open;
    otherwise a client is created for this call and closed afterwards.
    """
    if http_client is not None:
        registry = RegistryClient(
            http_client,
            registry_url=registry_url,
            concurrent_limit=max_concurrency,
        )
        return await DependencyResolver(registry, mode=mode).resolve(name, constraint)

    async with HTTPClient(
        timeout=timeout,
        max_retries=max_retries,
        max_concurrency=max_concurrency,
    ) as client:
        return await resolve_package(
            name,
            constraint,
            mode=mode,
            registry_url=registry_url,
            max_concurrency=max_concurrency,
            http_client=client,
        )
