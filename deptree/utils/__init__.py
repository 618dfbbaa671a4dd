"""
Utility helpers for deptree.

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Async HTTP client

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

from deptree.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

from deptree.utils.console import (
    get_raw_console,
    print_error,
    print_table,
    print_tree,
    print_warning,
    reconfigure_console,
)

from deptree.utils.http import HTTPClient

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_tree",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # HTTP
    "HTTPClient",
]
