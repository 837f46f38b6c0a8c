"""Structured exception hierarchy for the response envelope layer.

This module defines the exceptions raised by the envelope pipeline itself and
the small set of domain errors the API exception handlers translate into
error envelopes.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **EnvelopeError**: Base exception with rich context and stack capture
- **Pipeline errors**: Configuration, serialization and stream failures
- **Domain errors**: Not found, unauthenticated and forbidden conditions

Pipeline errors are fatal for the response being built and propagate to the
caller. Domain errors are expected to be raised by endpoint code and turned
into error envelopes by the registered exception handlers.
"""

import traceback
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the envelope layer."""

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    # Pipeline errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """The envelope structure configuration is invalid or incomplete."""

    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    """The envelope could not be serialized to the negotiated format."""

    INVALID_STREAM = "INVALID_STREAM"
    """A stream data generator did not produce an iterable."""

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    # Authentication/Authorization errors
    UNAUTHORIZED = "UNAUTHORIZED"
    """Authentication failed."""

    FORBIDDEN = "FORBIDDEN"
    """The authenticated caller is not allowed to perform this action."""


class Severity(Enum):
    """Severity levels for errors raised by the envelope layer."""

    LOW = "LOW"
    """Low severity errors that don't significantly impact functionality."""

    MEDIUM = "MEDIUM"
    """Medium severity errors that may affect some features but not critical ops."""

    HIGH = "HIGH"
    """High severity errors impacting critical functionality or data integrity."""

    CRITICAL = "CRITICAL"
    """Critical errors requiring immediate attention, may cause system failures."""


class EnvelopeError(Exception):
    """Base exception class for all envelope layer exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]  # Exclude this frame

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    @property
    def is_expected(self) -> bool:
        """Determine if this is an expected error based on severity.

        Returns:
            bool: True if the error is expected (LOW or MEDIUM severity)
        """
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        """Return a string representation of the exception.

        Returns:
            str: A formatted string containing the error code and message
        """
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception.

        Returns:
            str: A string showing the class name, error code, message, severity,
                and context
        """
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ConfigurationError(EnvelopeError):
    """Raised when the envelope structure configuration is invalid.

    Args:
        message: Description of the configuration problem
        context: Additional context, e.g. the missing keys
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.CONFIGURATION_ERROR, message, Severity.CRITICAL, context, cause
        )


class SerializationError(EnvelopeError):
    """Raised when an envelope cannot be rendered to its negotiated format.

    Args:
        message: Description of the serialization failure
        context: Additional context, e.g. the target format
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.SERIALIZATION_ERROR, message, Severity.HIGH, context, cause
        )


class InvalidStreamError(EnvelopeError):
    """Raised when a stream data generator does not return an iterable.

    Args:
        message: Description of the stream failure
        context: Additional context, e.g. the returned type
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str = "Data generator must return an iterable.",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.INVALID_STREAM, message, Severity.HIGH, context, cause)


class NotFoundError(EnvelopeError):
    """Exception raised when a requested resource cannot be found.

    Args:
        message: Description of what resource was not found
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, Severity.LOW, context, cause)


class UnauthorizedError(EnvelopeError):
    """Exception raised when the caller is not authenticated.

    Args:
        message: Description of the authentication failure
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.UNAUTHORIZED, message, Severity.HIGH, context, cause)


class ForbiddenError(EnvelopeError):
    """Exception raised when an authenticated caller lacks permission.

    Args:
        message: Description of the authorization failure
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.FORBIDDEN, message, Severity.MEDIUM, context, cause)
