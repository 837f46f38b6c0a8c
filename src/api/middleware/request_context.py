"""Request context middleware for correlation IDs and request snapshots.

This module implements middleware that prepares the request-scoped context
the response envelope pipeline reads from:

- **Correlation ID propagation**: Extracts or generates unique IDs per request
- **Request snapshot**: Method, URL, base URL, client IP and headers stored
  as an immutable ``RequestInfo`` in a context variable
- **Loguru integration**: Binds the correlation ID to all logs
- **Response headers**: Includes the correlation ID in responses

Formatter code reads content negotiation and conditional request headers from
the snapshot, so it never needs the Starlette request object itself.
"""

import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from src.api.constants import CORRELATION_ID_HEADER
from src.core.context import RequestContext, RequestInfo


def get_client_ip(request: Request, *, trust_proxy_headers: bool = False) -> str:
    """Extract the client IP, optionally honoring proxy headers.

    Args:
        request: The incoming request.
        trust_proxy_headers: Read ``X-Forwarded-For`` / ``X-Real-IP``. Only
            safe behind a proxy that sets them.

    Returns:
        str: The client IP address, or ``unknown``.
    """
    if trust_proxy_headers:
        # Take the first IP (original client)
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host
    return "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to manage request context and correlation IDs.

    Args:
        app: The ASGI application.
        trust_proxy_headers: Take the client IP from proxy headers.
    """

    def __init__(self, app: ASGIApp, *, trust_proxy_headers: bool = False) -> None:
        super().__init__(app)
        self.trust_proxy_headers = trust_proxy_headers

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request with context management.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with correlation ID header.
        """
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        RequestContext.set_correlation_id(correlation_id)
        RequestContext.set_request(
            RequestInfo.build(
                method=request.method,
                url=str(request.url),
                base_url=str(request.base_url),
                client_ip=get_client_ip(
                    request, trust_proxy_headers=self.trust_proxy_headers
                ),
                headers=request.headers,
            )
        )

        # contextualize scopes the binding to this request
        with logger.contextualize(correlation_id=correlation_id):
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
