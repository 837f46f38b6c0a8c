"""Response envelope formatting, serialization and conditional request support.

``ResponseFormatter`` is the engine behind every envelope the API returns:

1. ``format`` shapes arbitrary data into the canonical envelope using the
   active key scheme.
2. ``response`` negotiates JSON or XML from the ``Accept`` header, serializes
   the envelope, logs it and gzips large bodies when that actually saves
   bytes.
3. ``generate_etag``, ``get_last_modified_date`` and ``get_not_modified``
   implement the validators behind conditional responses.

The formatter holds no per-request state. Request attributes are read from
``RequestContext`` and the key scheme from the shared ``StructureStore``, so
one instance serves all requests concurrently.
"""

import gzip
import hashlib
import zlib
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from decimal import Decimal
from email.utils import parsedate_to_datetime
from typing import Any, NamedTuple

import orjson
from loguru import logger
from pydantic import BaseModel
from starlette.responses import Response

from src.api.envelope.contracts import ResponseLogger
from src.api.envelope.negotiation import ContentNegotiator, ResponseFormat
from src.api.envelope.pagination import Page
from src.api.envelope.structure import EnvelopeStructure, StructureStore
from src.api.envelope.xml import to_xml
from src.core.config import ApiResponseConfig
from src.core.context import RequestContext, RequestInfo
from src.core.error_context import exception_detail
from src.core.exceptions import SerializationError
from src.core.observability import trace_operation
from src.core.types import ExceptionDetail, HeaderMap

# Reshapes one item of response data, e.g. a domain object into its API view
type Transform = Callable[[Any], Mapping[str, Any]]

HTTP_OK = 200
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_BAD_REQUEST = 400
GZIP_LEVEL = 9
DEFAULT_ACCEPT = "application/json"
DEFAULT_ERROR_CODE = 1


class FormattedResponse(NamedTuple):
    """Envelope content with the status code and headers it will be sent with."""

    content: dict[str, Any]
    status_code: int
    headers: dict[str, str]


def _json_default(value: Any) -> Any:  # noqa: ANN401 - orjson default hook
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, set | frozenset):
        return list(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def _dump(value: Any) -> Any:  # noqa: ANN401 - arbitrary payload data
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list | tuple):
        return [_dump(item) for item in value]
    return value


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


class ResponseFormatter:
    """Build, serialize and compress response envelopes.

    Args:
        config: Envelope configuration (compression and API version options).
        structure: Store holding the active envelope key scheme.
        response_logger: Sink for rendered responses. Defaults to Loguru.
        negotiator: Content negotiator. Defaults to ``ContentNegotiator()``.
    """

    def __init__(
        self,
        config: ApiResponseConfig,
        structure: StructureStore,
        *,
        response_logger: ResponseLogger | None = None,
        negotiator: ContentNegotiator | None = None,
    ) -> None:
        self._config = config
        self._structure = structure
        self._logger: ResponseLogger = response_logger or logger
        self._negotiator = negotiator or ContentNegotiator()

    @property
    def structure(self) -> EnvelopeStructure:
        """The envelope key scheme in effect right now."""
        return self._structure.current

    def format(
        self,
        data: Any,  # noqa: ANN401 - any payload shape is accepted
        status_code: int,
        headers: HeaderMap | None = None,
        transform: Transform | None = None,
    ) -> FormattedResponse:
        """Shape data into the canonical envelope.

        Args:
            data: Payload. Mappings are read as envelope parts keyed by the
                active key scheme; ``Page`` objects contribute items and a
                meta block; anything else becomes the data part.
            status_code: HTTP status code.
            headers: Response headers.
            transform: Optional per-item reshaping applied to the data part.

        Returns:
            FormattedResponse: Envelope content, final status code and headers.
        """
        structure = self.structure
        payload = self._payload(data, transform, structure)

        content: dict[str, Any] = {
            structure.success_key: payload.get(structure.success_key, True),
            structure.message_key: payload.get(structure.message_key),
            structure.data_key: payload.get(structure.data_key),
        }

        if isinstance(data, Page):
            content[structure.meta_key] = data.meta()

        for key in (structure.meta_key, structure.errors_key, "status", structure.links_key):
            if key not in content and payload.get(key) is not None:
                content[key] = payload[key]

        if payload.get("exception") is not None:
            if status_code == HTTP_OK:
                status_code = HTTP_INTERNAL_SERVER_ERROR
            content["exception"] = payload["exception"]

        if content[structure.success_key] is False:
            error_code = payload.get(structure.error_code_key)
            content[structure.error_code_key] = (
                DEFAULT_ERROR_CODE if error_code is None else error_code
            )

        for key, value in payload.items():
            if key not in content and key != "api_version":
                content[key] = value

        if "api_version" in payload:
            content["api_version"] = payload["api_version"]

        return FormattedResponse(
            content=content,
            status_code=status_code,
            headers={name: str(value) for name, value in (headers or {}).items()},
        )

    def response(
        self,
        data: Mapping[str, Any] | None,
        status_code: int,
        headers: HeaderMap | None = None,
        api_version: str | None = None,
    ) -> Response:
        """Format, negotiate, serialize, log and compress an envelope.

        Args:
            data: Envelope parts keyed by the active key scheme.
            status_code: HTTP status code.
            headers: Extra response headers.
            api_version: API version to report when the key scheme asks for it
                and the payload does not carry one already.

        Returns:
            Response: The wire response.

        Raises:
            SerializationError: If the envelope cannot be rendered.
        """
        payload: dict[str, Any] = dict(data or {})
        if (
            api_version is not None
            and self.structure.include_api_version
            and "api_version" not in payload
        ):
            payload["api_version"] = api_version

        formatted = self.format(payload, status_code, headers)
        request = RequestContext.get_request()

        with trace_operation(
            "envelope.render", status_code=formatted.status_code
        ) as span:
            self._log_response(request, formatted.status_code, formatted.content)

            response_format = self.negotiate()
            body = self.serialize(formatted.content, response_format)
            response_headers = dict(formatted.headers)

            body, compressed = self.compress(body)
            if compressed:
                response_headers["Content-Encoding"] = "gzip"

            span.set_attribute("response_format", response_format.value)
            span.set_attribute("compressed", compressed)
            span.set_attribute("body_bytes", len(body))

        return Response(
            content=body,
            status_code=formatted.status_code,
            headers=response_headers,
            media_type=response_format.media_type,
        )

    def negotiate(self) -> ResponseFormat:
        """Format accepted by the current request, JSON when it states no preference."""
        return self._negotiator.negotiate(
            RequestContext.get_request().header("accept") or DEFAULT_ACCEPT
        )

    def empty_response(self, status_code: int, headers: HeaderMap | None = None) -> Response:
        """Bodyless response, e.g. ``304 Not Modified``."""
        self._log_response(RequestContext.get_request(), status_code, {})
        return Response(
            status_code=status_code,
            headers={name: str(value) for name, value in (headers or {}).items()},
        )

    def serialize(self, content: Mapping[str, Any], response_format: ResponseFormat) -> bytes:
        """Render envelope content in the given format.

        Raises:
            SerializationError: If the content cannot be rendered.
        """
        if response_format is ResponseFormat.XML:
            return to_xml(content)

        try:
            return orjson.dumps(
                content, default=_json_default, option=orjson.OPT_NON_STR_KEYS
            )
        except orjson.JSONEncodeError as e:
            raise SerializationError(
                f"Failed to encode response as JSON: {e}",
                context={"format": "json"},
                cause=e,
            ) from e

    def compress(self, body: bytes) -> tuple[bytes, bool]:
        """Gzip a body when enabled, above threshold and actually smaller.

        Returns:
            tuple[bytes, bool]: The body to send and whether it is compressed.
        """
        if not self._config.enable_compression:
            return body, False
        if len(body) <= self._config.compression_threshold:
            return body, False

        try:
            compressed = gzip.compress(body, compresslevel=GZIP_LEVEL)
        except (OSError, zlib.error) as e:
            logger.warning("Response compression failed, sending uncompressed: {}", e)
            return body, False

        if len(compressed) >= len(body):
            return body, False
        return compressed, True

    def fields(self, data: Mapping[str, Any], fields: list[str]) -> dict[str, Any]:
        """Project ``data`` onto the requested top-level fields.

        Field names are matched literally: ``"author.name"`` selects a
        top-level key named ``author.name``, not a nested path.

        Args:
            data: Full payload.
            fields: Requested field names; empty means all fields.

        Returns:
            dict[str, Any]: The projected payload.
        """
        if not fields:
            return dict(data)
        return {field: data[field] for field in fields if field in data}

    def generate_etag(self, data: Any) -> str:  # noqa: ANN401 - any JSON-like payload
        """SHA-256 fingerprint of the canonical (key-sorted) JSON form of ``data``."""
        canonical = orjson.dumps(
            data,
            default=_json_default,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
        )
        return hashlib.sha256(canonical).hexdigest()

    def get_not_modified(self, etag: str, last_modified: datetime) -> bool:
        """Evaluate the request's conditional headers.

        Args:
            etag: Entity tag exactly as it is sent in the ``ETag`` header.
            last_modified: Modification time of the resource.

        Returns:
            bool: True if ``If-None-Match`` equals ``etag`` or
                ``If-Modified-Since`` is not older than ``last_modified``.
        """
        request = RequestContext.get_request()

        if_none_match = request.header("if-none-match")
        if if_none_match and if_none_match == etag:
            return True

        if_modified_since = request.header("if-modified-since")
        if not if_modified_since:
            return False

        try:
            since = _as_utc(parsedate_to_datetime(if_modified_since))
        except (TypeError, ValueError):
            return False

        # HTTP dates carry whole seconds only
        return _as_utc(last_modified).replace(microsecond=0) <= since

    def get_last_modified_date(self, data: Any) -> datetime:  # noqa: ANN401
        """Modification time of a payload: its ``updated_at`` or now.

        Strings are parsed as ISO 8601; naive values are taken as UTC.
        """
        updated_at = data.get("updated_at") if isinstance(data, Mapping) else None

        if isinstance(updated_at, str):
            try:
                updated_at = datetime.fromisoformat(updated_at)
            except ValueError:
                logger.debug("Unparseable updated_at {!r}, using now", updated_at)
                updated_at = None

        if isinstance(updated_at, datetime):
            return _as_utc(updated_at)
        return datetime.now(UTC)

    def exception_detail(self, error: BaseException) -> ExceptionDetail:
        """Serializable record of an exception for the envelope."""
        return exception_detail(error)

    def _payload(
        self,
        data: Any,  # noqa: ANN401
        transform: Transform | None,
        structure: EnvelopeStructure,
    ) -> dict[str, Any]:
        if isinstance(data, Page):
            items = [dict(transform(item)) if transform else _dump(item) for item in data.items]
            return {structure.data_key: items}

        if transform is not None:
            if isinstance(data, list | tuple):
                transformed: Any = [dict(transform(item)) for item in data]
            else:
                transformed = dict(transform(data))
            payload = dict(data) if isinstance(data, Mapping) else {}
            payload[structure.data_key] = transformed
            return payload

        if isinstance(data, Mapping):
            return dict(data)
        if data is None:
            return {}
        return {structure.data_key: _dump(data)}

    def _log_response(
        self, request: RequestInfo, status_code: int, content: Mapping[str, Any]
    ) -> None:
        message = (
            f"API Response - Method: {request.method}, URL: {request.url}, "
            f"Status: {status_code}, "
            f"Data: {orjson.dumps(content, default=str, option=orjson.OPT_NON_STR_KEYS).decode()}"
        )
        if status_code >= HTTP_BAD_REQUEST:
            self._logger.error(message)
        else:
            self._logger.info(message)
