"""Type aliases for dynamic data structures throughout the application.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning and documentation for these types.

All types defined here should be JSON-serializable to support logging,
API responses, and caching.
"""

from typing import Any, TypedDict

# JSON-compatible type that represents any valid JSON value
# Used for envelope content, request bodies, and serialization
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Context dictionary for logging additional information
# Values must be JSON-serializable for structured logging
type LogContext = dict[str, Any]

# HTTP headers attached to an envelope; values are stringified on the wire
type HeaderMap = dict[str, str | int]


class TraceFrame(TypedDict):
    """One frame of a captured stack trace."""

    file: str
    line: int
    function: str


class ExceptionDetail(TypedDict):
    """Serializable description of an exception attached to error envelopes."""

    message: str
    file: str
    line: int
    code: int | str
    trace: list[TraceFrame]
