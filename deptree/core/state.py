"""Per-request deduplication state for the concurrent resolver.

Every package name is *claimed* exactly once per request. Checking for a
previous claim and registering a new one happen in a single locked step
(:meth:`ResolutionState.claim`), so two branches can never both decide
that a name is unclaimed.

The owner of a claim publishes the version it selected as soon as
selection finishes, before it starts on its own dependencies. Branches
that lose the claim wait only for that publication, never for the
owner's subtree, which keeps cross-branch cycles (A -> B in one branch,
B -> A in another) from deadlocking.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Tuple

from deptree.utils.logger import get_logger
from deptree.exceptions import InternalError

logger = get_logger("state")

__all__ = ["ResolutionState"]


class ResolutionState:
    """Name -> version claims shared by every task of one resolution request.

    Example::

        state = ResolutionState()
        owner, claim = await state.claim("lodash")
        if owner:
            state.publish("lodash", "4.17.21")
        else:
            version = await state.wait_for("lodash")
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._claims: Dict[str, "asyncio.Future[str]"] = {}
        self.dedup_hits: int = 0

    async def claim(self, name: str) -> Tuple[bool, "asyncio.Future[str]"]:
        """Atomically claim ``name`` if nobody has yet.

        Returns:
            ``(True, future)`` for the caller that now owns the name, or
            ``(False, future)`` for everyone after it. The future resolves
            to the owner's selected version.
        """
        async with self._lock:
            existing = self._claims.get(name)
            if existing is not None:
                self.dedup_hits += 1
                logger.debug("Dedup hit for '%s'", name)
                return False, existing

            future: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
            self._claims[name] = future
            return True, future

    def publish(self, name: str, version: str) -> None:
        """Record the owner's selected version and wake every waiter."""
        future = self._owned_future(name)
        future.set_result(version)
        logger.debug("Claimed %s@%s", name, version)

    def fail(self, name: str, exc: BaseException) -> None:
        """Propagate the owner's selection failure to every waiter.

        A no-op when the version was already published; failures after
        publication belong to the owner's subtree, not to the claim.
        """
        future = self._claims.get(name)
        if future is None or future.done():
            return
        future.set_exception(exc)
        # Waiters re-raise it; nobody waiting is not an error of its own.
        future.exception()

    def abandon(self, name: str) -> None:
        """Cancel an unpublished claim whose owner was cancelled.

        Waiters end up cancelled as well rather than raising an error of
        their own.
        """
        future = self._claims.get(name)
        if future is not None and not future.done():
            future.cancel()
            logger.debug("Abandoned claim for '%s'", name)

    async def wait_for(self, name: str) -> str:
        """Wait for the version published under ``name``.

        The shared future is shielded so that cancelling one waiter does
        not cancel it for everyone else.

        Raises:
            asyncio.CancelledError: The claim was abandoned.
        """
        future = self._claims.get(name)
        if future is None:
            raise InternalError(f"No claim registered for '{name}'")
        return await asyncio.shield(future)

    def _owned_future(self, name: str) -> "asyncio.Future[str]":
        future = self._claims.get(name)
        if future is None:
            raise InternalError(f"Cannot publish '{name}': it was never claimed")
        if future.done():
            raise InternalError(f"Cannot publish '{name}': it was already published")
        return future

    def __contains__(self, name: object) -> bool:
        return name in self._claims

    def __len__(self) -> int:
        return len(self._claims)
