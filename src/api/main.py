"""FastAPI application initialization and configuration module.

This module serves as the main entry point for the Envelope API application.
It handles:
- Application lifecycle logging (startup/shutdown)
- Redis client and response service wiring, stored on ``app.state``
- Exception handler and middleware registration
- Health check and API metadata endpoints
- OpenTelemetry instrumentation
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import Response
from loguru import logger

from src.api.constants import HEALTH_ROUTE, METADATA_ROUTE
from src.api.dependencies import ResponseService, build_response_service
from src.api.middleware.error_handler import register_exception_handlers
from src.api.middleware.request_context import RequestContextMiddleware
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.core.observability import instrument_app, setup_tracing
from src.infrastructure.redis_client import create_redis_client


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Log application lifespan events and release the Redis client.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    app_instance.state.redis.close()
    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().

    Returns:
        FastAPI: Configured FastAPI application instance.

    Raises:
        ConfigurationError: If the configured response structure is invalid.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)
    setup_tracing(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.redis = create_redis_client(settings.redis_config)
    application.state.response_service = build_response_service(
        settings, application, redis_client=application.state.redis
    )

    # Register exception handlers BEFORE middleware
    register_exception_handlers(application)

    # Proxy headers are only trusted behind the production load balancer
    application.add_middleware(
        RequestContextMiddleware,
        trust_proxy_headers=settings.environment == "production",
    )

    @application.get(HEALTH_ROUTE, name="health")
    async def health() -> dict[str, str]:
        """Health check endpoint for monitoring and container orchestration.

        Returns:
            dict[str, str]: Service status and version.
        """
        return {"status": "healthy", "version": settings.app_version}

    @application.get(METADATA_ROUTE, name="api.meta")
    async def api_metadata(responses: ResponseService) -> Response:
        """Describe the API version and its ``/api`` routes.

        Args:
            responses: Response service injected via dependency.

        Returns:
            Response: Metadata envelope.
        """
        return responses.metadata_response(
            {"app_name": settings.app_name, "environment": settings.environment}
        )

    # Instrument application for tracing (at the end)
    instrument_app(application, settings)

    return application


app = create_app()
