"""
Error taxonomy for the exporter.

Fetch errors are classified so each collector can decide whether a failure is
expected (feature not enabled), transient (connectivity, deadline), or a sign
of an engine/declaration bug (invariant violations). None of them is fatal to
the process; the CLI maps them to exit codes.

Exit Codes:
- 0: Success
- 1: Warning (advisory, operation succeeded with warnings)
- 10: Configuration error
- 11: Database error (connectivity, permissions, command failure)
- 12: Invariant violation (duplicate series, depth ceiling)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    DATABASE_ERROR = 11
    INVARIANT_ERROR = 12
    UNKNOWN_ERROR = 127


class ExporterError(Exception):
    """Base exception for exporter errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ExporterError):
    """Raised for invalid settings or declaration files."""

    exit_code = ExitCode.CONFIG_ERROR


class ConnectivityError(ExporterError):
    """Raised when the database cannot be reached or authenticated against."""

    exit_code = ExitCode.DATABASE_ERROR


class ScrapeTimeoutError(ConnectivityError):
    """Raised when the scrape deadline expires during a fetch."""


class PermissionDeniedError(ExporterError):
    """Raised when the monitoring user lacks a privilege for a command."""

    exit_code = ExitCode.DATABASE_ERROR


class FeatureDisabledError(ExporterError):
    """Raised when the server does not have the queried feature enabled.

    Replication not enabled or not yet initialized are the usual cases. This is
    an expected state, never reported as an error.
    """

    exit_code = ExitCode.DATABASE_ERROR


class CommandError(ExporterError):
    """Raised for any other server-side command failure."""

    exit_code = ExitCode.DATABASE_ERROR


class SchemaError(ExporterError):
    """Raised when a document value has a type the dispatcher cannot classify."""


class InternalInvariantError(ExporterError):
    """Raised for duplicate series or documents nested past the depth ceiling."""

    exit_code = ExitCode.INVARIANT_ERROR
    show_traceback = True


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - ExporterError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ExporterError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ExporterError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
