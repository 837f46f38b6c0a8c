"""Request context management for correlation IDs and inbound request data.

The response envelope pipeline needs read-only access to a handful of request
attributes (``Accept``, ``If-None-Match``, ``If-Modified-Since``, method, URL
and client IP). They are captured once per request into an immutable
``RequestInfo`` snapshot and stored in a context variable so that formatter
code can read them without a request object being threaded through every
call.
"""

import uuid
from collections.abc import Mapping
from contextvars import ContextVar

from pydantic import BaseModel, ConfigDict, Field

# Context variable for storing correlation ID across async boundaries
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class RequestInfo(BaseModel):
    """Immutable snapshot of the inbound request.

    Header names are stored lower-cased so lookups are case-insensitive.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str = ""
    base_url: str = ""
    client_ip: str = "unknown"
    headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        *,
        method: str = "GET",
        url: str = "",
        base_url: str = "",
        client_ip: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> "RequestInfo":
        """Create a snapshot, normalizing header names.

        Args:
            method: HTTP method of the request.
            url: Full request URL.
            base_url: Scheme and host the application is served from.
            client_ip: Client address, ``unknown`` when not available.
            headers: Raw request headers.

        Returns:
            RequestInfo: The normalized snapshot.
        """
        return cls(
            method=method.upper(),
            url=url,
            base_url=base_url,
            client_ip=client_ip or "unknown",
            headers={k.lower(): v for k, v in (headers or {}).items()},
        )

    def header(self, name: str, default: str | None = None) -> str | None:
        """Get a request header by case-insensitive name."""
        return self.headers.get(name.lower(), default)


_request_var: ContextVar[RequestInfo | None] = ContextVar("request_info", default=None)


class RequestContext:
    """Manages request context using contextvars for async-safe storage.

    This class provides thread-safe and async-safe storage for request-scoped
    data: the correlation ID and the inbound request snapshot.
    """

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        """Set the correlation ID for the current context.

        Args:
            correlation_id: The correlation ID to store in the context.
        """
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Get the correlation ID from the current context.

        Returns:
            str | None: The correlation ID if set, None otherwise.
        """
        return _correlation_id_var.get()

    @staticmethod
    def set_request(request: RequestInfo) -> None:
        """Store the inbound request snapshot for the current context."""
        _request_var.set(request)

    @staticmethod
    def get_request() -> RequestInfo:
        """Get the inbound request snapshot.

        Returns:
            RequestInfo: The current request, or an empty GET request when the
                code runs outside of a request (scripts, tests).
        """
        return _request_var.get() or RequestInfo()

    @staticmethod
    def clear() -> None:
        """Clear all context variables.

        This should typically be called at the end of a request to ensure
        clean state for the next request.
        """
        _correlation_id_var.set(None)
        _request_var.set(None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracking.

    Returns:
        str: A string representation of a UUID4.

    Examples:
        >>> correlation_id = generate_correlation_id()
        >>> len(correlation_id)
        36
    """
    return str(uuid.uuid4())
