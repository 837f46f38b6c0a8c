"""Global exception handlers for the FastAPI application.

Every error leaving the application is rendered as a response envelope by
``ApiResponseService``: request validation failures become field error
envelopes and everything else becomes an error envelope whose exception
detail is only exposed in the environments allowed by configuration.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from src.api.dependencies import get_response_service
from src.core.error_context import sanitize_error_context
from src.core.exceptions import (
    EnvelopeError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)

# Domain errors and the envelope they render as
DOMAIN_ERROR_RESPONSES: dict[type[EnvelopeError], tuple[str, int]] = {
    NotFoundError: ("Resource not found", status.HTTP_404_NOT_FOUND),
    UnauthorizedError: ("Unauthenticated", status.HTTP_401_UNAUTHORIZED),
    ForbiddenError: ("Unauthorized", status.HTTP_403_FORBIDDEN),
}


def field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    """Group validation messages by dotted field path.

    The location prefix (``body``, ``query``, ``path``) is dropped, so
    ``("body", "email")`` groups under ``email``.
    """
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field_path = error.get("loc", ())
        field_name = ".".join(str(loc) for loc in field_path[1:] if loc != "__root__")
        errors.setdefault(field_name or "root", []).append(
            error.get("msg", "Invalid value")
        )
    return errors


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI RequestValidationError exceptions.

    Args:
        request: The FastAPI request that caused the exception
        exc: The RequestValidationError exception to handle

    Returns:
        Response: 422 envelope with field-level errors

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    errors = field_errors(exc)
    logger.warning(
        "Request validation failed",
        **sanitize_error_context(
            exc,
            {
                "path": str(request.url.path),
                "method": request.method,
                "validation_errors": errors,
            },
        ),
    )

    return get_response_service(request).validation_error_response(errors)


async def envelope_error_handler(request: Request, exc: Exception) -> Response:
    """Handle domain errors raised by endpoints.

    Args:
        request: The FastAPI request that caused the exception
        exc: The EnvelopeError exception to handle

    Returns:
        Response: Error envelope with the status mapped from the error type

    Raises:
        TypeError: If exc is not an EnvelopeError instance
    """
    if not isinstance(exc, EnvelopeError):
        raise TypeError(f"Expected EnvelopeError, got {type(exc).__name__}")

    message, status_code = "Server Error", status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in DOMAIN_ERROR_RESPONSES.items():
        if isinstance(exc, error_type):
            message, status_code = mapped
            break

    logger.warning(
        "Handling {exception_type}: {message}",
        exception_type=type(exc).__name__,
        message=exc.message,
        **sanitize_error_context(
            exc,
            {
                "request_method": request.method,
                "request_path": str(request.url.path),
                "error_code": exc.error_code,
            },
        ),
    )

    return get_response_service(request).error_response(message, status_code, error=exc)


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException.

    Unknown endpoints render as ``Endpoint not found``; other HTTP errors
    keep their status and detail.

    Args:
        request: The FastAPI request that caused the exception
        exc: The HTTPException to handle

    Returns:
        Response: Error envelope with the exception's status

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    logger.warning(
        "HTTP exception",
        **sanitize_error_context(
            exc,
            {
                "status": exc.status_code,
                "method": request.method,
                "path": str(request.url.path),
                "detail": exc.detail,
            },
        ),
    )

    if exc.status_code == status.HTTP_404_NOT_FOUND:
        message = "Endpoint not found"
    else:
        message = str(exc.detail) if exc.detail else "HTTP Exception"

    return get_response_service(request).error_response(
        message, exc.status_code, error=exc, headers=exc.headers
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unhandled exceptions as a ``Server Error`` envelope.

    Args:
        request: The FastAPI request that caused the exception
        exc: The unhandled exception

    Returns:
        Response: 500 error envelope
    """
    logger.exception(
        "Unhandled exception: {exception_type}",
        exception_type=type(exc).__name__,
        **sanitize_error_context(
            exc,
            {
                "request_method": request.method,
                "request_path": str(request.url.path),
            },
        ),
    )

    return get_response_service(request).error_response(
        "Server Error", status.HTTP_500_INTERNAL_SERVER_ERROR, error=exc
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(EnvelopeError, envelope_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
