"""Collaborator protocols consumed by the envelope pipeline.

The formatter and the response service never talk to a router, translation
catalog, rate limiter or cache directly. They depend on these structural
protocols; ``src.infrastructure`` provides the default implementations
(Starlette routes, Redis-backed limiter and cache, dictionary catalog) and
applications are free to plug in their own.
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypedDict


class RouteInfo(TypedDict):
    """Public description of a registered route."""

    uri: str
    methods: list[str]
    name: str | None


class RouteTable(Protocol):
    """Resolves named routes to URLs and enumerates registered routes."""

    def resolve_url(self, name: str, params: Mapping[str, Any]) -> str:
        """Build the URL of a named route."""
        ...

    def methods_of(self, name: str) -> list[str]:
        """HTTP methods declared by a named route (empty when unknown)."""
        ...

    def list_routes(self) -> list[RouteInfo]:
        """All registered routes."""
        ...


class Translator(Protocol):
    """Message catalog lookup."""

    def has(self, key: str) -> bool:
        """Whether a translation exists for ``key``."""
        ...

    def translate(self, key: str) -> str:
        """Translated text for ``key``."""
        ...


class ResponseLogger(Protocol):
    """Sink for rendered response log lines.

    Loguru's ``logger`` satisfies this protocol.
    """

    def info(self, message: str) -> None:
        """Log a successful response."""
        ...

    def error(self, message: str) -> None:
        """Log a client or server error response."""
        ...


class RateLimiter(Protocol):
    """Counter of attempts per key within a decay window."""

    def remaining(self, key: str, max_attempts: int) -> int:
        """Attempts left for ``key`` in the current window."""
        ...

    def available_in(self, key: str) -> int:
        """Seconds until the window for ``key`` resets."""
        ...

    def attempt(self, key: str, max_attempts: int, decay_seconds: int) -> bool:
        """Consume one attempt; False when the limit is already reached."""
        ...


class ResponseCache(Protocol):
    """TTL cache of byte strings with compute-on-miss semantics."""

    def remember(self, key: str, ttl: int, producer: Callable[[], bytes]) -> bytes:
        """Return the cached value for ``key`` or store ``producer()`` for ``ttl``."""
        ...
