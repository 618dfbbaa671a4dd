"""
Command-line interface for deptree.

Main CLI entry point: global options, configuration loading and command
registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from deptree.config import load_config
from deptree.__version__ import __version__
from deptree.context import DepTreeContext
from deptree.exceptions import ConfigError, DepTreeError
from deptree.utils.logger import get_logger, setup_logging
from deptree.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="DEPTREE_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DEPTREE_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="deptree",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """deptree: resolve a package's dependency tree against a registry.

    \b
    Available commands:
      deptree resolve NAME [RANGE]   Resolve and print the dependency tree
      deptree serve                  Run the HTTP resolution service

    \b
    Examples:
      deptree resolve express "^4.0.0"
      deptree resolve left-pad --format json
      deptree -v serve --port 8080
    """
    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    deptree_ctx = DepTreeContext()
    deptree_ctx.config_path = config or loaded_config.source_path
    deptree_ctx.color = color
    deptree_ctx.verbose = verbose
    deptree_ctx.config = loaded_config
    ctx.obj = deptree_ctx

    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    logger.debug("deptree v%s", __version__)
    logger.debug("Config path: %s", deptree_ctx.config_path)
    logger.debug("Configuration: %s", loaded_config.to_log_dict())


def _configure_logging(verbose: int) -> None:
    """Map ``-v`` count onto a logging level."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level, verbose=verbose >= 2)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


from deptree.commands.resolve import resolve  # noqa: E402
from deptree.commands.serve import serve  # noqa: E402

cli.add_command(resolve)
cli.add_command(serve)


def main() -> int:
    """Main entry point for the deptree CLI.

    Returns:
        Exit code:
            0   Success
            1   Resolution or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.exceptions.Exit as exc:
        return exc.exit_code

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except DepTreeError as exc:
        print_error(str(exc))
        logger.debug("DepTreeError details: %s", exc.details or "<none>", exc_info=True)
        return 1

    except (KeyboardInterrupt, click.exceptions.Abort):
        print_warning("\nOperation cancelled by user")
        return 130

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
