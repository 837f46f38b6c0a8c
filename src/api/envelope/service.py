"""Public response-building operations.

``ApiResponseService`` assembles envelope payloads for the common API
response shapes (success, error, validation, paginated, streamed, metadata,
bulk, partial and conditional) and hands them to ``ResponseFormatter`` for
rendering. It owns the two pieces of runtime-mutable configuration: the
envelope key scheme (through the shared ``StructureStore``) and the table of
error-code details. Both are replaced copy-on-write, so in-flight requests
always see a complete version of each.
"""

import hashlib
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

import orjson
from loguru import logger
from pydantic import BaseModel
from starlette.responses import Response, StreamingResponse

from src.api.envelope.contracts import (
    RateLimiter,
    ResponseCache,
    ResponseLogger,
    RouteInfo,
    RouteTable,
    Translator,
)
from src.api.envelope.formatter import ResponseFormatter
from src.api.envelope.links import LinkGenerator, LinkSpec
from src.api.envelope.negotiation import ResponseFormat
from src.api.envelope.pagination import Page
from src.api.envelope.structure import EnvelopeStructure, StructureStore
from src.core.config import ApiResponseConfig
from src.core.context import RequestContext
from src.core.exceptions import InvalidStreamError
from src.core.types import HeaderMap

HTTP_OK = 200
HTTP_NOT_MODIFIED = 304
HTTP_UNPROCESSABLE_ENTITY = 422
HTTP_TOO_MANY_REQUESTS = 429

RATE_LIMIT_KEY_PREFIX = "api_rate_limit:"
NAVIGATION_LINKS = ("first", "last", "prev", "next")
STREAM_MEDIA_TYPE = "application/json"
LAST_MODIFIED_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"

type Links = Mapping[str, LinkSpec]
type DataGenerator = Callable[[], Any]


def _stream_line(value: Any) -> bytes:  # noqa: ANN401 - one NDJSON record
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return orjson.dumps(value, default=str, option=orjson.OPT_NON_STR_KEYS) + b"\n"


def _stream_record(item: Any) -> Any:  # noqa: ANN401
    """Select what a generator item emits, or None to skip it."""
    if isinstance(item, tuple) and len(item) == 2:  # noqa: PLR2004
        key, value = item
        if isinstance(key, str) and isinstance(value, str):
            return {key: value}
        if isinstance(value, Mapping | list | BaseModel):
            return value
        return None
    if isinstance(item, Mapping | list | BaseModel):
        return item
    return None


def _pack_response(response: Response) -> bytes:
    """Encode a rendered response as a JSON head line followed by the body."""
    head = orjson.dumps(
        {"status_code": response.status_code, "headers": dict(response.headers)}
    )
    return head + b"\n" + bytes(response.body)


def _unpack_response(record: bytes) -> tuple[int, dict[str, str], bytes]:
    head, _, content = record.partition(b"\n")
    decoded = orjson.loads(head)
    return decoded["status_code"], decoded["headers"], content


class ApiResponseService:
    """Build envelope responses for API endpoints.

    Args:
        config: Envelope configuration.
        environment: Name of the running environment, matched against
            ``config.show_exception_environments``.
        structure: Shared store holding the envelope key scheme.
        formatter: Renders envelopes into wire responses.
        link_generator: Resolves HATEOAS links.
        translator: Localizes messages.
        rate_limiter: Counter store used by paginated responses.
        cache: Store for cached paginated responses.
        routes: Route table listed by metadata responses.
        response_logger: Sink for errors hidden from clients. Defaults to Loguru.
    """

    def __init__(
        self,
        config: ApiResponseConfig,
        environment: str,
        structure: StructureStore,
        formatter: ResponseFormatter,
        link_generator: LinkGenerator,
        translator: Translator,
        rate_limiter: RateLimiter,
        cache: ResponseCache,
        routes: RouteTable,
        *,
        response_logger: ResponseLogger | None = None,
    ) -> None:
        self._config = config
        self._environment = environment
        self._structure = structure
        self._formatter = formatter
        self._links = link_generator
        self._translator = translator
        self._rate_limiter = rate_limiter
        self._cache = cache
        self._routes = routes
        self._logger: ResponseLogger = response_logger or logger

        self._mappings_lock = threading.Lock()
        self._error_code_mappings: dict[int, Any] = {}

    @property
    def response_structure(self) -> EnvelopeStructure:
        """The envelope key scheme in effect right now."""
        return self._structure.current

    @property
    def api_version(self) -> str:
        return self._config.api_version

    @property
    def show_exception_details(self) -> bool:
        """Whether caller-supplied errors are rendered to clients."""
        return self._environment in self._config.show_exception_environments

    def localize(self, message: str) -> str:
        """Translate ``message`` when the translator knows it."""
        if message and self._translator.has(message):
            return self._translator.translate(message)
        return message

    def success_response(
        self,
        message: str = "",
        data: Any = None,  # noqa: ANN401 - any JSON-like payload
        headers: HeaderMap | None = None,
        status_code: int = HTTP_OK,
        links: Links | None = None,
    ) -> Response:
        """Envelope reporting a successful operation.

        Args:
            message: Message, localized before rendering.
            data: Payload placed under the data key.
            headers: Extra response headers.
            status_code: HTTP status code.
            links: HATEOAS link definitions keyed by relationship.

        Returns:
            Response: The rendered envelope.
        """
        structure = self.response_structure
        payload: dict[str, Any] = {
            structure.success_key: True,
            structure.message_key: self.localize(message),
            structure.data_key: data,
        }
        if links:
            payload[structure.links_key] = self._links.generate_links(links)

        return self._render(payload, status_code, headers)

    def error_response(
        self,
        message: str,
        status_code: int,
        error: BaseException | None = None,
        error_code: int = 1,
        headers: HeaderMap | None = None,
        links: Links | None = None,
    ) -> Response:
        """Envelope reporting a failed operation.

        Exception detail is attached only when the environment allows it.
        Otherwise the error is logged server side and the client sees only
        the message and error code.

        Args:
            message: Error message.
            status_code: HTTP status code.
            error: Exception behind the failure, if any.
            error_code: Application error code.
            headers: Extra response headers.
            links: HATEOAS link definitions keyed by relationship.

        Returns:
            Response: The rendered envelope.
        """
        structure = self.response_structure
        payload: dict[str, Any] = {
            structure.success_key: False,
            structure.message_key: message,
            structure.error_code_key: error_code,
        }

        details = self._error_code_mappings.get(error_code)
        if details is not None:
            payload["error_details"] = details

        if links:
            payload[structure.links_key] = self._links.generate_links(links)

        if error is not None:
            if self.show_exception_details:
                payload["exception"] = self._formatter.exception_detail(error)
            else:
                self._logger.error(
                    f"{message}: {type(error).__name__}: {error}"
                )

        return self._render(payload, status_code, headers)

    def validation_error_response(
        self,
        errors: Mapping[str, Any],
        message: str = "Validation failed",
        status_code: int = HTTP_UNPROCESSABLE_ENTITY,
        headers: HeaderMap | None = None,
    ) -> Response:
        """Envelope listing field validation errors, error code 422."""
        structure = self.response_structure
        payload: dict[str, Any] = {
            structure.success_key: False,
            structure.message_key: message,
            structure.errors_key: dict(errors),
            structure.error_code_key: HTTP_UNPROCESSABLE_ENTITY,
        }
        return self._render(payload, status_code, headers)

    def paginated_response(
        self,
        data: Mapping[str, Any] | Page,
        message: str = "",
        headers: HeaderMap | None = None,
        links: Links | None = None,
    ) -> Response:
        """Envelope for one page of a collection.

        The response is rate limited per client IP and, when enabled, cached
        per distinct page content, caller headers and negotiated format.

        Args:
            data: A ``Page`` or its ``to_dict()`` form: items under ``data``,
                page metadata and optional ``*_page_url`` entries.
            message: Message, localized before rendering.
            headers: Extra response headers.
            links: Additional HATEOAS link definitions keyed by relationship.

        Returns:
            Response: The rendered envelope, or a 429 error envelope when the
                client has exhausted its rate limit.
        """
        page = data.to_dict() if isinstance(data, Page) else dict(data)
        structure = self.response_structure

        payload: dict[str, Any] = {
            structure.success_key: True,
            structure.message_key: self.localize(message),
            structure.data_key: page.get("data"),
            structure.meta_key: {
                key: page.get(key)
                for key in ("current_page", "from", "last_page", "path", "per_page", "to", "total")
            },
        }

        navigation: dict[str, Any] = {}
        for rel in NAVIGATION_LINKS:
            url = page.get(f"{rel}_page_url")
            navigation[rel] = self._links.from_url(url, rel) if url else None
        payload[structure.links_key] = {
            **navigation,
            **self._links.generate_links(links or {}),
        }

        caller_headers: dict[str, Any] = dict(headers or {})
        rate_key = RATE_LIMIT_KEY_PREFIX + RequestContext.get_request().client_ip
        max_attempts = self._config.rate_limit_max_attempts
        response_headers: dict[str, Any] = {
            **caller_headers,
            "X-RateLimit-Limit": max_attempts,
            "X-RateLimit-Remaining": self._rate_limiter.remaining(rate_key, max_attempts),
            "X-RateLimit-Reset": self._rate_limiter.available_in(rate_key),
        }

        allowed = self._rate_limiter.attempt(
            rate_key, max_attempts, self._config.rate_limit_decay_seconds
        )
        if not allowed:
            logger.warning("Rate limit exceeded for {}", rate_key)
            return self.error_response(
                "Too Many Requests",
                HTTP_TOO_MANY_REQUESTS,
                error_code=HTTP_TOO_MANY_REQUESTS,
                headers=response_headers,
            )

        if not self._config.cache_paginated_responses:
            return self._render(payload, HTTP_OK, response_headers)

        cache_key = self._config.paginated_cache_prefix + self._cache_digest(
            page, caller_headers, self._formatter.negotiate()
        )
        record = self._cache.remember(
            cache_key,
            self._config.paginated_cache_duration,
            lambda: _pack_response(self._render(payload, HTTP_OK, response_headers)),
        )
        status_code, cached_headers, content = _unpack_response(record)
        # Rate-limit headers belong to this request, not the one that filled the cache
        return Response(
            content=content,
            status_code=status_code,
            headers={
                **cached_headers,
                **{name.lower(): str(value) for name, value in response_headers.items()},
            },
        )

    def stream_response(
        self,
        data_generator: DataGenerator,
        message: str = "",
        headers: HeaderMap | None = None,
        status_code: int = HTTP_OK,
    ) -> StreamingResponse:
        """Newline-delimited JSON stream.

        The first line is ``{success, message, api_version}``. Each item the
        generator produces then becomes one line: ``(key, str)`` pairs emit
        ``{key: value}``, ``(key, mapping | list)`` pairs emit the value,
        mappings, lists and models emit themselves and anything else is
        skipped.

        Args:
            data_generator: Called when streaming starts; must return an
                iterable.
            message: Message for the header line, localized.
            headers: Extra response headers.
            status_code: HTTP status code.

        Returns:
            StreamingResponse: The streaming response.

        Raises:
            InvalidStreamError: From the body iterator, before any line is
                sent, if ``data_generator`` does not return an iterable.
        """
        structure = self.response_structure
        header_line = {
            structure.success_key: True,
            structure.message_key: self.localize(message),
            "api_version": self.api_version,
        }

        def lines() -> Iterator[bytes]:
            produced = data_generator()
            if isinstance(produced, Mapping):
                produced = produced.items()
            if isinstance(produced, str | bytes) or not isinstance(produced, Iterable):
                raise InvalidStreamError(
                    context={"produced_type": type(produced).__name__}
                )

            yield _stream_line(header_line)
            for item in produced:
                record = _stream_record(item)
                if record is not None:
                    yield _stream_line(record)

        return StreamingResponse(
            lines(),
            status_code=status_code,
            headers={name: str(value) for name, value in (headers or {}).items()},
            media_type=STREAM_MEDIA_TYPE,
        )

    def metadata_response(
        self,
        additional_info: Mapping[str, Any] | None = None,
        headers: HeaderMap | None = None,
    ) -> Response:
        """Envelope describing the API version and its ``api`` routes."""
        endpoints: list[RouteInfo] = [
            route
            for route in self._routes.list_routes()
            if route["uri"].lstrip("/").startswith("api")
        ]
        structure = self.response_structure
        payload = {
            structure.success_key: True,
            structure.message_key: "API Metadata",
            structure.data_key: {
                "version": self.api_version,
                "endpoints": endpoints,
                "additional_info": dict(additional_info or {}),
            },
        }
        return self._render(payload, HTTP_OK, headers)

    def bulk_operation_response(
        self,
        operations: Iterable[Any],
        message: str = "",
        headers: HeaderMap | None = None,
        status_code: int = HTTP_OK,
    ) -> Response:
        """Envelope summarizing several operations performed in one request.

        Overall success holds only when every operation reports
        ``success: True``. Entries that are not mappings are ignored.
        """
        structure = self.response_structure
        overall_success = True
        formatted: list[dict[str, Any]] = []

        for operation in operations:
            if not isinstance(operation, Mapping):
                continue

            succeeded = operation.get("success", False)
            entry: dict[str, Any] = {
                structure.success_key: succeeded,
                structure.message_key: self.localize(operation.get("message") or ""),
            }
            if operation.get("data") is not None:
                entry[structure.data_key] = operation["data"]
            if operation.get("error_code") is not None:
                entry[structure.error_code_key] = operation["error_code"]

            formatted.append(entry)
            if not succeeded:
                overall_success = False

        payload = {
            structure.success_key: overall_success,
            structure.message_key: self.localize(message),
            "operations": formatted,
        }
        return self._render(payload, status_code, headers)

    def partial_response(
        self,
        data: Mapping[str, Any],
        fields: list[str],
        message: str = "",
        headers: HeaderMap | None = None,
        status_code: int = HTTP_OK,
    ) -> Response:
        """Envelope carrying only the requested top-level fields of ``data``."""
        structure = self.response_structure
        payload = {
            structure.success_key: True,
            structure.message_key: self.localize(message),
            structure.data_key: self._formatter.fields(data, fields),
        }
        return self._render(payload, status_code, headers)

    def conditional_response(
        self,
        data: Any,  # noqa: ANN401 - any JSON-like payload
        message: str = "",
        headers: HeaderMap | None = None,
        status_code: int = HTTP_OK,
        links: Links | None = None,
    ) -> Response:
        """Envelope with ``ETag`` and ``Last-Modified`` validators.

        Returns a bodyless ``304 Not Modified`` when the request's
        ``If-None-Match`` or ``If-Modified-Since`` shows the client copy is
        current.
        """
        structure = self.response_structure
        payload: dict[str, Any] = {
            structure.success_key: True,
            structure.message_key: self.localize(message),
            structure.data_key: data,
        }
        if links:
            payload[structure.links_key] = self._links.generate_links(links)

        etag = f'"{self._formatter.generate_etag(payload)}"'
        last_modified = self._formatter.get_last_modified_date(data)

        if self._formatter.get_not_modified(etag, last_modified):
            return self._formatter.empty_response(HTTP_NOT_MODIFIED, headers)

        response_headers: dict[str, Any] = {
            **(headers or {}),
            "ETag": etag,
            "Last-Modified": last_modified.strftime(LAST_MODIFIED_FORMAT),
            "Cache-Control": "private, must-revalidate",
        }
        return self._render(payload, status_code, response_headers)

    def update_response_structure(self, new_structure: Mapping[str, Any]) -> EnvelopeStructure:
        """Merge ``new_structure`` onto the key scheme and swap it in.

        Raises:
            ConfigurationError: If the merged scheme is invalid; the active
                scheme is left unchanged.
        """
        updated = self._structure.update(new_structure)
        logger.bind(structure=updated.model_dump()).info("Response structure updated")
        return updated

    def set_error_code_mappings(self, mappings: Mapping[int, Any]) -> None:
        """Replace the whole error-code detail table."""
        with self._mappings_lock:
            self._error_code_mappings = dict(mappings)

    def get_error_code_mapping(self, error_code: int) -> dict[str, Any] | None:
        """Detail record for ``error_code``, or None if absent or malformed."""
        mapping = self._error_code_mappings.get(error_code)
        return dict(mapping) if isinstance(mapping, Mapping) else None

    def _render(
        self,
        payload: Mapping[str, Any],
        status_code: int,
        headers: HeaderMap | None,
    ) -> Response:
        return self._formatter.response(
            payload, status_code, headers, api_version=self.api_version
        )

    @staticmethod
    def _cache_digest(
        page: Mapping[str, Any],
        headers: Mapping[str, Any],
        response_format: ResponseFormat,
    ) -> str:
        serialized = (
            orjson.dumps(
                page, default=str, option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS
            )
            + orjson.dumps(headers, default=str, option=orjson.OPT_SORT_KEYS)
            + response_format.value.encode()
        )
        return hashlib.sha256(serialized).hexdigest()
