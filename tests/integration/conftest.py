"""Shared fixtures for integration tests.

The application is created per test with a handful of example endpoints that
exercise every response shape, and driven in-process through httpx.
"""

from collections.abc import AsyncGenerator, Generator

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import Response
from httpx import ASGITransport, AsyncClient
from loguru import logger
from pydantic import BaseModel

from src.api.dependencies import ResponseService, build_response_service
from src.api.envelope.pagination import Page
from src.api.main import create_app
from src.core.config import get_settings
from src.core.context import RequestContext
from src.core.exceptions import NotFoundError
from src.core.logging import _state

from tests.fakes import FakeRateLimiter, FakeResponseCache

USERS = [{"id": i, "name": f"user{i}"} for i in range(1, 6)]


class UserIn(BaseModel):
    name: str
    email: str


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_request_context() -> Generator[None]:
    """Clear RequestContext before and after each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None]:
    """Keep logging marked as configured so app creation adds no handlers."""
    logger.remove()
    _state.configured = True
    yield
    logger.remove()


def add_example_routes(app: FastAPI) -> None:
    """Register endpoints that use each response shape.

    The response service is rewired with in-process stores so the tests run
    without a Redis server.
    """
    app.state.response_service = build_response_service(
        get_settings(), app, rate_limiter=FakeRateLimiter(), cache=FakeResponseCache()
    )

    @app.get("/api/users", name="users.index")
    async def list_users(request: Request, responses: ResponseService, page: int = 1) -> Response:
        path = str(request.url.remove_query_params("page"))
        return responses.paginated_response(
            Page.paginate(USERS, page=page, per_page=2, path=path), "Users"
        )

    @app.post("/api/users", name="users.store", status_code=201)
    async def create_user(user: UserIn, responses: ResponseService) -> Response:
        return responses.success_response(
            "User created",
            {"id": 6, **user.model_dump()},
            status_code=201,
            links={"self": {"route": "users.show", "params": {"user_id": 6}}},
        )

    @app.get("/api/users/{user_id}", name="users.show")
    async def show_user(user_id: int, responses: ResponseService) -> Response:
        for user in USERS:
            if user["id"] == user_id:
                return responses.conditional_response(
                    user, "User found", links={"collection": "users.index"}
                )
        raise NotFoundError(f"User {user_id} not found", context={"user_id": user_id})

    @app.get("/api/export", name="users.export")
    async def export_users(responses: ResponseService) -> Response:
        return responses.stream_response(lambda: iter(USERS), "Export")

    @app.get("/api/boom", name="boom")
    async def boom() -> Response:
        raise RuntimeError("database exploded")


@pytest.fixture
def app() -> FastAPI:
    application = create_app()
    add_example_routes(application)
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Async client bound to a fresh application instance."""
    # Unhandled errors are re-raised after the 500 envelope is sent
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def client_production(
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient]:
    """Async client bound to an application running with production settings."""
    monkeypatch.setenv("ENVIRONMENT", "production")
    application = create_app()
    add_example_routes(application)
    transport = ASGITransport(app=application, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
