"""
Centralized constants for deptree.

Network settings, resolver defaults, service defaults and logging formats.
All values are intended to be treated as read-only.
"""

from typing import Final, Tuple

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "deptree/{version}"

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Default registry base URL (npm-compatible JSON API).
DEFAULT_REGISTRY_URL: Final[str] = "https://registry.npmjs.org"

#: Package metadata document: every published version.
METADATA_PATH: Final[str] = "{registry}/{package}"

#: Manifest of one concrete version.
MANIFEST_PATH: Final[str] = "{registry}/{package}/{version}"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default per-call network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Registry calls are not retried unless configured.
DEFAULT_MAX_RETRIES: Final[int] = 0

#: Upper bound on in-flight registry calls for one resolution request.
DEFAULT_MAX_CONCURRENCY: Final[int] = 10

# ---------------------------------------------------------------------------
# Resolver configuration
# ---------------------------------------------------------------------------

MODE_CONCURRENT: Final[str] = "concurrent"
MODE_SEQUENTIAL: Final[str] = "sequential"

#: Accepted resolution strategies.
RESOLUTION_MODES: Final[Tuple[str, ...]] = (MODE_CONCURRENT, MODE_SEQUENTIAL)

DEFAULT_MODE: Final[str] = MODE_CONCURRENT

#: Range used when the caller does not supply one.
DEFAULT_RANGE: Final[str] = "*"

# ---------------------------------------------------------------------------
# Service configuration
# ---------------------------------------------------------------------------

DEFAULT_HOST: Final[str] = "0.0.0.0"

DEFAULT_PORT: Final[int] = 3003

#: Body returned for any path the service does not route.
INVALID_PATH_MESSAGE: Final[str] = (
    "Invalid request path. Expected format: /package/{name}/{version}"
)

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
