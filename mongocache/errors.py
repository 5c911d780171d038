"""
mongocache - Core Error Types

Defines the exception hierarchy for the cache adapter and its resource manager.
All exceptions inherit from MongoCacheError for consistent error handling.

Propagation rules:
- Configuration errors (InvalidOptionError, UnknownOptionError) are raised at the
  call that introduced the bad value and are never retried.
- BackendOperationError carries the backend's own message and is never retried here.
- Read misses are results, not errors.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes for structured error reporting.

    Used by callers that need to branch on error category without importing
    every exception class.
    """

    # Configuration errors
    INVALID_OPTION = "INVALID_OPTION"
    UNKNOWN_OPTION = "UNKNOWN_OPTION"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Lookup errors
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INVALID_KEY = "INVALID_KEY"

    # Backend errors
    BACKEND_FAILURE = "BACKEND_FAILURE"
    EXTENSION_UNAVAILABLE = "EXTENSION_UNAVAILABLE"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MongoCacheError(Exception):
    """Base exception for all mongocache errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(MongoCacheError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class InvalidOptionError(ConfigurationError):
    """Raised when an option value violates its validation rule."""

    def __init__(self, option: str, reason: str, value: Any = None):
        message = f"Invalid value for option '{option}': {reason}"
        super().__init__(message, {"option": option, "reason": reason, "value": repr(value)})
        self.option = option
        self.reason = reason


class UnknownOptionError(ConfigurationError):
    """Raised when an option name is not recognized."""

    def __init__(self, option: str):
        super().__init__(f"Unknown option: {option}", {"option": option})
        self.option = option


class CacheError(MongoCacheError):
    """Base exception for cache-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class BackendOperationError(CacheError):
    """Raised when the document store reports a non-success status."""

    @classmethod
    def from_result(cls, result: Mapping[str, Any], operation: str) -> "BackendOperationError":
        """
        Build an error from a backend status document ({"ok": 0, "errmsg": ...}).

        Raises:
            ValueError: If the status document reports success. Wrapping a
                success into an error is a programming error.
        """
        if result.get("ok") == 1:
            raise ValueError(f"Backend result for '{operation}' reports success and cannot be raised")

        message = str(result.get("errmsg") or "Unknown backend error")
        details: dict[str, Any] = {"operation": operation}
        if "code" in result:
            details["code"] = result["code"]
        if "codeName" in result:
            details["code_name"] = result["codeName"]
        return cls(message, details)


class ValidationError(MongoCacheError):
    """Raised when a cache key fails validation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=400)


class NotFoundError(MongoCacheError):
    """Raised when a requested resource is not registered."""

    def __init__(self, resource: str, identifier: str):
        message = f"{resource} not found: {identifier}"
        super().__init__(message, {"resource": resource, "id": identifier}, status_code=404)


class ExtensionUnavailableError(MongoCacheError):
    """Raised when the MongoDB driver is missing or below the required version."""

    def __init__(
        self,
        package: str,
        required: str | None = None,
        found: str | None = None,
        install_hint: str | None = None,
    ):
        if found is None:
            message = f"Required driver '{package}' is not installed"
        else:
            message = f"Driver '{package}' {found} is too old, need >= {required}"

        if install_hint:
            message += f". Install with: {install_hint}"

        super().__init__(
            message,
            {
                "package": package,
                "required": required,
                "found": found,
                "install_hint": install_hint,
            },
            status_code=500,
        )


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        Appropriate ErrorCode for the exception
    """
    if isinstance(error, InvalidOptionError):
        return ErrorCode.INVALID_OPTION

    if isinstance(error, UnknownOptionError):
        return ErrorCode.UNKNOWN_OPTION

    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIGURATION_ERROR

    if isinstance(error, NotFoundError):
        return ErrorCode.RESOURCE_NOT_FOUND

    if isinstance(error, ValidationError):
        return ErrorCode.INVALID_KEY

    if isinstance(error, BackendOperationError):
        return ErrorCode.BACKEND_FAILURE

    if isinstance(error, ExtensionUnavailableError):
        return ErrorCode.EXTENSION_UNAVAILABLE

    return ErrorCode.INTERNAL_ERROR
