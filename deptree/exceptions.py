"""
Custom exception hierarchy for deptree.

Every error raised by the resolver, the registry client or the
configuration loader inherits from :class:`DepTreeError`. Each class
carries structured metadata in ``details`` so that the CLI and the
service can report a single readable line while logs keep the context.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional, Sequence


class DepTreeError(Exception):
    """Base exception for all deptree errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ---------------------------------------------------------------------------
# Registry errors
# ---------------------------------------------------------------------------


class NetworkError(DepTreeError):
    """Raised when the registry cannot be reached or answers non-2xx.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class PackageNotFoundError(DepTreeError):
    """Raised when the registry reports that a package (or version) does not exist."""

    __slots__ = ("package_name", "version")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        version: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "version", version)

        super().__init__(message, details)

        self.package_name = package_name
        self.version = version


class ParseError(DepTreeError):
    """Raised when a registry response cannot be decoded into the expected schema.

    Args:
        message: Error description.
        url: URL whose body failed to decode.
        package_name: Package being fetched.
        response_body: Raw body, truncated for safety.
    """

    __slots__ = ("url", "package_name", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        package_name: Optional[str] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "url", url)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.package_name = package_name
        self.response_body = response_body


# ---------------------------------------------------------------------------
# Version selection errors
# ---------------------------------------------------------------------------


class InvalidConstraintError(DepTreeError):
    """Raised when a version range expression is syntactically invalid."""

    __slots__ = ("constraint", "package_name")

    def __init__(
        self,
        message: str,
        *,
        constraint: Optional[str] = None,
        package_name: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "constraint", constraint)

        super().__init__(message, details)

        self.constraint = constraint
        self.package_name = package_name


class NoCompatibleVersionError(DepTreeError):
    """Raised when no published version satisfies a range."""

    __slots__ = ("package_name", "constraint", "candidates")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        constraint: Optional[str] = None,
        candidates: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "constraint", constraint)
        _add_if(details, "candidates", candidates)

        super().__init__(message, details)

        self.package_name = package_name
        self.constraint = constraint
        self.candidates = candidates


# ---------------------------------------------------------------------------
# Resolution errors
# ---------------------------------------------------------------------------


class CycleDetectedError(DepTreeError):
    """Raised when a dependency names one of its own ancestors.

    Args:
        message: Error description.
        package_name: The package that closes the cycle.
        chain: Ancestor path from the root down to the offending edge.
    """

    __slots__ = ("package_name", "chain")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        chain: Optional[Sequence[str]] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        if chain:
            details["chain"] = " -> ".join(chain)

        super().__init__(message, details)

        self.package_name = package_name
        self.chain = list(chain) if chain else []


class ConflictingConstraintsError(DepTreeError):
    """Raised when a deduplicated version does not satisfy a later range."""

    __slots__ = ("package_name", "resolved_version", "constraint", "required_by")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        resolved_version: Optional[str] = None,
        constraint: Optional[str] = None,
        required_by: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "resolved", resolved_version)
        _add_if(details, "constraint", constraint)
        _add_if(details, "required_by", required_by)

        super().__init__(message, details)

        self.package_name = package_name
        self.resolved_version = resolved_version
        self.constraint = constraint
        self.required_by = required_by


class InternalError(DepTreeError):
    """Raised on serialization failures or unexpected resolver state."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigError(DepTreeError):
    """Raised when a configuration file is missing, unreadable or invalid.

    Args:
        message: Error description.
        config_path: Path of the offending file.
        option: Option name that failed validation.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option
