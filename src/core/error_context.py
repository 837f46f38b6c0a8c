"""Exception conversion and sensitive data sanitization.

Live exception objects never enter the envelope pipeline. At the boundary
they are converted into a plain ``ExceptionDetail`` record (message, file,
line, code, trace) which can be serialized to any output format. The same
module sanitizes context attached to log records so that secrets do not leak
into log sinks.

Key features:
- **Exception records**: Serializable snapshot of an exception and its frames
- **Pattern matching**: Regex-based detection of sensitive field names
- **Configurable fields**: Additional sensitive fields via configuration
- **Deep sanitization**: Recursive handling of nested data structures
"""

from __future__ import annotations

import re
import traceback
from functools import lru_cache
from re import Pattern
from typing import Any, Final

from src.core.config import get_settings
from src.core.constants import REDACTED
from src.core.types import ExceptionDetail, TraceFrame

# Type alias for values we can sanitize
SanitizableValue = (
    str | int | float | bool | None | dict[str, Any] | list[Any] | tuple[Any, ...]
)

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|auth|authorization|"
    r"credential|private[_-]?key|access[_-]?key|secret[_-]?key|session|"
    r"ssn|social[_-]?security|pin|cvv|cvc|card[_-]?number|connection[_-]?string)",
    re.IGNORECASE,
)

# Maximum depth for nested structure sanitization
MAX_DEPTH: Final[int] = 10


def _exception_code(error: BaseException) -> int | str:
    """Pick the most specific code an exception carries."""
    for attr in ("code", "errno", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int | str) and not isinstance(value, bool):
            return value
    return 0


def exception_detail(error: BaseException) -> ExceptionDetail:
    """Convert an exception into a serializable record.

    The location is taken from the innermost traceback frame. Exceptions that
    were never raised have no traceback and report an empty file and line 0.

    Args:
        error: The exception to describe.

    Returns:
        ExceptionDetail: Message, file, line, code and stack trace frames.
    """
    frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
    trace: list[TraceFrame] = [
        {"file": frame.filename, "line": frame.lineno or 0, "function": frame.name}
        for frame in frames
    ]
    last = frames[-1] if frames else None

    return {
        "message": str(getattr(error, "message", None) or error),
        "file": last.filename if last else "",
        "line": (last.lineno or 0) if last else 0,
        "code": _exception_code(error),
        "trace": trace,
    }


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> list[str]:
    """Get the configured sensitive fields from settings.

    Returns:
        list[str]: List of sensitive field names to check.
    """
    settings = get_settings()
    return settings.log_config.sensitive_fields


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Checks against both the default regex pattern and the
    configured sensitive fields list.

    Args:
        field_name: The field name to check.

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True

    field_lower = field_name.lower()
    return any(
        sensitive_field.lower() in field_lower
        for sensitive_field in _get_sensitive_fields()
    )


def sanitize_value(
    value: SanitizableValue, field_name: str = "", depth: int = 0
) -> SanitizableValue:
    """Sanitize a value if it appears to be sensitive.

    This function recursively sanitizes nested structures (dicts and lists)
    up to MAX_DEPTH to prevent infinite recursion.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.

    Returns:
        SanitizableValue: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if isinstance(value, dict):
        return {k: sanitize_value(v, str(k), depth + 1) for k, v in value.items()}

    if isinstance(value, list):
        return [sanitize_value(item, "", depth + 1) for item in value]

    if isinstance(value, tuple):
        return tuple(sanitize_value(item, "", depth + 1) for item in value)

    return value


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize a dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize.

    Returns:
        dict[str, Any]: New dictionary with sensitive values redacted.
    """
    return {key: sanitize_value(value, key) for key, value in data.items()}


def sanitize_error_context(
    error: BaseException, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Create sanitized error context for logging.

    Args:
        error: The exception to create context for.
        context: Additional context to include (will be sanitized).

    Returns:
        dict[str, Any]: Sanitized error context safe for logging.
    """
    error_context: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if context:
        error_context.update(sanitize_dict(context))

    return error_context
