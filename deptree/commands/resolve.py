"""Resolve command implementation for deptree.

Resolves a package and every transitive dependency against the
configured registry and prints the result.

Typical usage::

    # Rich tree view
    $ deptree resolve express "^4.0.0"

    # Nested JSON, as served by ``deptree serve``
    $ deptree resolve express "^4.0.0" --format json

    # Flattened name -> versions view
    $ deptree resolve express --format flat

    # Depth-first, one registry call at a time
    $ deptree resolve express --mode sequential
"""

from __future__ import annotations

import json
import asyncio
from typing import Any, Dict, List, Optional

import click

from deptree.models import ResolutionResult
from deptree.core import resolve_package
from deptree.constants import DEFAULT_RANGE, RESOLUTION_MODES
from deptree.context import DepTreeContext, pass_context
from deptree.utils import get_logger, get_raw_console, print_table, print_tree

logger = get_logger("commands.resolve")


@click.command()
@click.argument("name")
@click.argument("constraint", metavar="RANGE", default=DEFAULT_RANGE)
@click.option(
    "--mode",
    "-m",
    type=click.Choice(RESOLUTION_MODES, case_sensitive=False),
    default=None,
    help="Resolution strategy (default from config: concurrent).",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["tree", "json", "flat", "table"], case_sensitive=False),
    default="tree",
    help="Output format.",
)
@click.option(
    "--registry",
    default=None,
    help="Registry base URL (overrides configuration).",
)
@pass_context
def resolve(
    ctx: DepTreeContext,
    name: str,
    constraint: str,
    mode: Optional[str],
    output_format: str,
    registry: Optional[str],
) -> None:
    """Resolve NAME against RANGE and print its dependency tree.

    RANGE is an npm range expression such as ``^1.2.0``, ``~1.2``,
    ``>=2.0.0 <3.0.0`` or ``1.x``; it defaults to ``*`` (highest release).

    Any failure (unknown package, no compatible version, malformed range,
    registry error, dependency cycle or conflicting ranges) aborts the
    whole resolution and exits with status 1.
    """
    config = ctx.get_config()
    effective_mode = (mode or config.mode).lower()

    result = asyncio.run(
        resolve_package(
            name,
            constraint,
            mode=effective_mode,
            registry_url=registry or config.registry_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            max_concurrency=config.max_concurrency,
        )
    )

    _render(result, output_format.lower())


def _render(result: ResolutionResult, output_format: str) -> None:
    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if output_format == "flat":
        click.echo(json.dumps(result.root.to_flat_dict(), indent=2))
        return

    if output_format == "table":
        if not result.root.children:
            get_raw_console().print(
                f"{result.root.name}@{result.root.version} has no dependencies"
            )
            return
        print_table(
            _flat_rows(result),
            headers=["Package", "Versions"],
            title=f"{result.root.name}@{result.root.version}",
            caption=f"{result.total_packages} packages, {result.mode} mode",
        )
        return

    print_tree(result.root)
    get_raw_console().print(result.summary(), style="dim")


def _flat_rows(result: ResolutionResult) -> List[Dict[str, Any]]:
    return [
        {"Package": name, "Versions": ", ".join(versions)}
        for name, versions in result.root.flatten().items()
    ]
