"""Serve command: run the HTTP resolution service.

Typical usage::

    $ deptree serve
    $ deptree serve --host 127.0.0.1 --port 8080
    $ PORT=9000 deptree serve
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

import click

from deptree.server import run_server
from deptree.utils import get_logger
from deptree.constants import RESOLUTION_MODES
from deptree.context import DepTreeContext, pass_context

logger = get_logger("commands.serve")


@click.command()
@click.option("--host", default=None, help="Interface to bind (default from config).")
@click.option(
    "--port",
    type=click.IntRange(0, 65535),
    default=None,
    envvar="PORT",
    help="Port to listen on (default from config, or $PORT).",
)
@click.option(
    "--mode",
    type=click.Choice(RESOLUTION_MODES, case_sensitive=False),
    default=None,
    help="Default resolution strategy for requests.",
)
@pass_context
def serve(
    ctx: DepTreeContext,
    host: Optional[str],
    port: Optional[int],
    mode: Optional[str],
) -> None:
    """Run the HTTP service answering ``GET /package/{name}/{range}``."""
    config = ctx.get_config()
    overrides = {
        key: value
        for key, value in (("host", host), ("port", port), ("mode", mode and mode.lower()))
        if value is not None
    }
    config = replace(config, **overrides)

    logger.debug("Effective service configuration: %s", config.to_log_dict())
    run_server(config)
