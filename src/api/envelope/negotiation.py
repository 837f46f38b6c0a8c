"""Content negotiation from the ``Accept`` request header."""

from enum import Enum
from typing import Final


class ResponseFormat(Enum):
    """Serialization formats the envelope can be rendered to."""

    JSON = "json"
    XML = "xml"

    @property
    def media_type(self) -> str:
        """Content type sent with a body of this format."""
        return f"application/{self.value}"


SUPPORTED_MEDIA_TYPES: Final[dict[str, ResponseFormat]] = {
    "application/json": ResponseFormat.JSON,
    "application/xml": ResponseFormat.XML,
    "text/xml": ResponseFormat.XML,
}

DEFAULT_QUALITY: Final[float] = 1.0


def _parse_quality(params: list[str]) -> float:
    """Extract the ``q`` parameter, defaulting to 1.0 when absent or invalid."""
    for param in params:
        name, _, value = param.partition("=")
        if name.strip().lower() == "q":
            try:
                return float(value.strip())
            except ValueError:
                return DEFAULT_QUALITY
    return DEFAULT_QUALITY


class ContentNegotiator:
    """Pick the response format preferred by the client.

    Only exact JSON and XML media types are recognized; wildcards such as
    ``*/*`` or ``application/*`` never match. Among recognized candidates the
    one with the highest quality wins and ties keep the first candidate seen.
    Anything unrecognized, empty or malformed falls back to JSON.
    """

    def negotiate(self, accept_header: str | None) -> ResponseFormat:
        """Negotiate a response format.

        Args:
            accept_header: Raw ``Accept`` header value.

        Returns:
            ResponseFormat: The selected format.

        Examples:
            >>> ContentNegotiator().negotiate("application/json;q=0.9, text/xml")
            <ResponseFormat.XML: 'xml'>
        """
        best: ResponseFormat | None = None
        best_quality = float("-inf")

        for candidate in (accept_header or "").split(","):
            mime_type, *params = candidate.split(";")
            response_format = SUPPORTED_MEDIA_TYPES.get(mime_type.strip().lower())
            if response_format is None:
                continue

            quality = _parse_quality(params)
            if quality > best_quality:
                best, best_quality = response_format, quality

        return best or ResponseFormat.JSON
