"""Construction and FastAPI dependency injection of the response service.

``build_response_service`` wires the envelope pipeline with the collaborators
from ``src.infrastructure``; rate-limit counters and cached responses live in
Redis so every worker shares them. The application factory stores the
result on ``app.state``; route handlers receive it through the
``ResponseService`` annotated dependency.

Example:
    @app.get("/api/users/{user_id}")
    async def get_user(user_id: int, responses: ResponseService) -> Response:
        return responses.success_response("User found", {"id": user_id})
"""

from typing import Annotated

from fastapi import Depends, FastAPI, Request
from redis import Redis

from src.api.envelope.contracts import RateLimiter, ResponseCache, Translator
from src.api.envelope.formatter import ResponseFormatter
from src.api.envelope.links import LinkGenerator
from src.api.envelope.service import ApiResponseService
from src.api.envelope.structure import StructureStore
from src.core.config import Settings
from src.infrastructure.cache import RedisResponseCache
from src.infrastructure.rate_limiter import RedisRateLimiter
from src.infrastructure.redis_client import create_redis_client
from src.infrastructure.routing import StarletteRouteTable
from src.infrastructure.translation import CatalogTranslator


def build_response_service(
    settings: Settings,
    app: FastAPI,
    *,
    redis_client: Redis | None = None,
    rate_limiter: RateLimiter | None = None,
    cache: ResponseCache | None = None,
    translator: Translator | None = None,
) -> ApiResponseService:
    """Wire an ``ApiResponseService`` for an application.

    Args:
        settings: Application settings.
        app: Application whose routes back links and metadata responses.
        redis_client: Client for the default limiter and cache. Created from
            ``settings.redis_config`` when omitted.
        rate_limiter: Rate limiter override. Defaults to Redis-backed.
        cache: Response cache override. Defaults to Redis-backed.
        translator: Translator override. Defaults to the configured catalog.

    Returns:
        ApiResponseService: The wired service.

    Raises:
        ConfigurationError: If the configured response structure is invalid.
    """
    config = settings.api_response
    structure = StructureStore(config.response_structure)
    routes = StarletteRouteTable(app)

    if rate_limiter is None or cache is None:
        client = redis_client or create_redis_client(settings.redis_config)
        key_prefix = settings.redis_config.key_prefix
        rate_limiter = rate_limiter or RedisRateLimiter(client, key_prefix)
        cache = cache or RedisResponseCache(client, key_prefix)

    return ApiResponseService(
        config=config,
        environment=settings.environment,
        structure=structure,
        formatter=ResponseFormatter(config, structure),
        link_generator=LinkGenerator(routes),
        translator=translator or CatalogTranslator(config.translations),
        rate_limiter=rate_limiter,
        cache=cache,
        routes=routes,
    )


def get_response_service(request: Request) -> ApiResponseService:
    """Provide the application's response service.

    Args:
        request: The current request.

    Returns:
        ApiResponseService: The service stored on ``app.state``.
    """
    service: ApiResponseService = request.app.state.response_service
    return service


ResponseService = Annotated[ApiResponseService, Depends(get_response_service)]
