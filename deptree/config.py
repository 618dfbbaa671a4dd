"""Configuration file loader for deptree.

Supports two formats:

- ``deptree.toml``: settings under a ``[deptree]`` table
- ``pyproject.toml``: settings under a ``[tool.deptree]`` table

Discovery order:

1. Explicit path from ``--config`` or ``DEPTREE_CONFIG``
2. ``deptree.toml`` in the current directory
3. ``pyproject.toml`` with a ``[tool.deptree]`` section

Precedence: defaults < config file < environment < CLI options.

Example (``deptree.toml``)::

    [deptree]
    registry_url = "https://registry.npmjs.org"
    timeout = 15
    max_concurrency = 16
    mode = "concurrent"
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from deptree.exceptions import ConfigError
from deptree.utils.logger import get_logger
from deptree.constants import (
    DEFAULT_HOST,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODE,
    DEFAULT_PORT,
    DEFAULT_REGISTRY_URL,
    DEFAULT_TIMEOUT,
    RESOLUTION_MODES,
)

logger = get_logger("config")


@dataclass
class DepTreeConfig:
    """Parsed and validated deptree configuration.

    All fields have defaults, so an empty config file is valid.

    Attributes:
        registry_url: Base URL of the npm-compatible registry.
        timeout: Per-call registry timeout in seconds.
        max_retries: Retries for transient registry failures (``0`` = none).
        max_concurrency: Upper bound on in-flight registry calls per request.
        mode: Default resolution strategy.
        host: Interface the service binds to.
        port: Port the service listens on.
        source_path: Path to the loaded file, or ``None`` when using defaults.
    """

    registry_url: str = DEFAULT_REGISTRY_URL
    timeout: int = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    mode: str = DEFAULT_MODE
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return the user-facing options (``source_path`` excluded)."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "source_path"}


# option -> (expected type, minimum value for ints)
_OPTIONS: Dict[str, Tuple[type, Optional[int]]] = {
    "registry_url": (str, None),
    "timeout": (int, 1),
    "max_retries": (int, 0),
    "max_concurrency": (int, 1),
    "mode": (str, None),
    "host": (str, None),
    "port": (int, 0),
}


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Raises:
        ConfigError: An explicit path was given but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    deptree_toml = cwd / "deptree.toml"
    if deptree_toml.is_file():
        logger.debug("Found deptree.toml: %s", deptree_toml)
        return deptree_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_deptree_section(pyproject_toml):
        logger.debug("Found [tool.deptree] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_deptree_section(path: Path) -> bool:
    """Return True if ``path`` parses and has a ``[tool.deptree]`` table."""
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    return "deptree" in raw.get("tool", {})


def load_config(config_path: Optional[Path] = None) -> DepTreeConfig:
    """Load and validate deptree configuration.

    Returns defaults when no file is found.

    Raises:
        ConfigError: The file cannot be parsed, has unknown keys or bad values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return DepTreeConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("deptree", {})
    else:
        section = raw.get("deptree", {})

    if not section:
        logger.debug("Config file found but no deptree section, using defaults")
        return DepTreeConfig(source_path=resolved)

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: The file cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> DepTreeConfig:
    """Validate a ``[deptree]`` / ``[tool.deptree]`` table.

    Raises:
        ConfigError: Unknown keys, wrong types or out-of-range values.
    """
    unknown = set(section) - set(_OPTIONS)
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    config = DepTreeConfig()

    for option, value in section.items():
        expected, minimum = _OPTIONS[option]

        # bool is an int subclass; ``timeout = true`` is still a type error.
        if not isinstance(value, expected) or isinstance(value, bool):
            raise ConfigError(
                f"{option} must be {'an integer' if expected is int else 'a string'}, "
                f"got {type(value).__name__}",
                config_path=config_path,
                option=option,
            )

        if minimum is not None and value < minimum:
            raise ConfigError(
                f"{option} must be >= {minimum}, got {value}",
                config_path=config_path,
                option=option,
            )

        setattr(config, option, value)

    if config.mode not in RESOLUTION_MODES:
        raise ConfigError(
            f"mode must be one of {', '.join(RESOLUTION_MODES)}, got {config.mode!r}",
            config_path=config_path,
            option="mode",
        )

    return config
