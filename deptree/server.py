"""HTTP service exposing dependency resolution, built on aiohttp.

Routes:

* ``GET /package/{name}/{range}`` -> resolve an unscoped package
* ``GET /package/@{scope}/{name}/{range}`` -> resolve a scoped package
* ``GET /health`` -> liveness probe

A lone ``@scope`` segment is not a package name; ``/package/@scope/name``
without a range is an invalid path.

``{range}`` is any npm range expression (URL-encoded), not necessarily a
concrete version. The answer is the nested tree
``{"name", "version", "dependencies": {name: <nested>}}``; ``?format=flat``
returns ``{"name", "version", "dependencies": {name: [versions]}}`` instead
and ``?mode=sequential|concurrent`` overrides the configured strategy.

Any other path answers 400 without contacting the registry. Resolution
failures answer 500 with the error text.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from aiohttp import web

from deptree.config import DepTreeConfig
from deptree.utils.http import HTTPClient
from deptree.utils.logger import get_logger
from deptree.core.resolver import resolve_package
from deptree.exceptions import DepTreeError, InternalError
from deptree.constants import INVALID_PATH_MESSAGE, RESOLUTION_MODES

logger = get_logger("server")

__all__ = ["DepTreeServer", "run_server"]

OUTPUT_FORMATS = ("tree", "flat")


class DepTreeServer:
    """aiohttp application wrapper for the resolution service.

    One :class:`HTTPClient` (and its connection pool) is shared by every
    request; each request gets its own registry client and resolution
    state, so nothing resolved for one request is reused by another.

    Args:
        config: Loaded deptree configuration.
    """

    def __init__(self, config: Optional[DepTreeConfig] = None) -> None:
        self._config = config or DepTreeConfig()
        self._http: Optional[HTTPClient] = None

    @property
    def config(self) -> DepTreeConfig:
        return self._config

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._health_check)
        app.router.add_get(
            "/package/{scope:@[^/]+}/{name}/{version}", self._handle_package
        )
        app.router.add_get(
            "/package/{name:[^@/][^/]*}/{version}", self._handle_package
        )
        app.router.add_route("*", "/{tail:.*}", self._handle_invalid_path)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        self._http = HTTPClient(
            timeout=self._config.timeout,
            max_retries=self._config.max_retries,
            max_concurrency=self._config.max_concurrency,
        )
        logger.info("Using registry %s", self._config.registry_url)

    async def _on_cleanup(self, app: web.Application) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _health_check(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", "mode": self._config.mode})

    async def _handle_invalid_path(self, request: web.Request) -> web.Response:
        logger.info("Invalid request at %s", request.path)
        return web.Response(status=400, text=INVALID_PATH_MESSAGE)

    async def _handle_package(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        scope = request.match_info.get("scope")
        if scope:
            name = f"{scope}/{name}"
        constraint = request.match_info["version"]

        mode = request.query.get("mode", self._config.mode)
        if mode not in RESOLUTION_MODES:
            return web.Response(
                status=400,
                text=f"Invalid mode '{mode}'. Expected one of: {', '.join(RESOLUTION_MODES)}",
            )

        output = request.query.get("format", "tree")
        if output not in OUTPUT_FORMATS:
            return web.Response(
                status=400,
                text=f"Invalid format '{output}'. Expected one of: {', '.join(OUTPUT_FORMATS)}",
            )

        logger.info("Handling %s@%s (%s)", name, constraint, mode)

        try:
            result = await resolve_package(
                name,
                constraint,
                mode=mode,
                registry_url=self._config.registry_url,
                max_concurrency=self._config.max_concurrency,
                http_client=self._http,
            )
            body = _encode(
                result.root.to_flat_dict() if output == "flat" else result.to_dict()
            )
        except DepTreeError as exc:
            logger.warning("Resolution of %s@%s failed: %s", name, constraint, exc)
            return web.Response(
                status=500,
                text=f"Failed to resolve {name}@{constraint}: {exc}",
            )
        except Exception:
            logger.exception("Unhandled error resolving %s@%s", name, constraint)
            return web.Response(status=500, text="Internal error")

        return web.Response(text=body, content_type="application/json")


def _encode(payload: Dict[str, Any]) -> str:
    try:
        return json.dumps(payload, indent=2)
    except (TypeError, ValueError) as exc:
        raise InternalError(f"Failed to encode response: {exc}") from exc


def run_server(config: DepTreeConfig) -> None:
    """Serve until interrupted."""
    server = DepTreeServer(config)
    logger.info("Listening on http://%s:%s/", config.host, config.port)
    web.run_app(server.create_app(), host=config.host, port=config.port, print=None)
