"""Shared fixtures for unit tests."""

import os
from collections.abc import Callable, Generator, Mapping
from typing import Any

import pytest
from pytest_mock import MockerFixture, MockType

from src.api.envelope.contracts import RouteInfo
from src.api.envelope.formatter import ResponseFormatter
from src.api.envelope.links import LinkGenerator
from src.api.envelope.service import ApiResponseService
from src.api.envelope.structure import StructureStore
from src.core.config import (
    DEFAULT_RESPONSE_STRUCTURE,
    ApiResponseConfig,
    LogConfig,
    Settings,
    get_settings,
)
from src.core.context import RequestContext, RequestInfo
from src.core.error_context import _get_sensitive_fields
from src.infrastructure.translation import CatalogTranslator

from tests.fakes import FakeClock, FakeRateLimiter, FakeResponseCache

BASE_URL = "http://testserver"


class FakeRouteTable:
    """Route table over a static ``name -> (uri template, methods)`` map."""

    def __init__(self, routes: Mapping[str, tuple[str, list[str]]]) -> None:
        self.routes = dict(routes)

    def resolve_url(self, name: str, params: Mapping[str, Any]) -> str:
        uri, _ = self.routes[name]
        return BASE_URL + uri.format(**params)

    def methods_of(self, name: str) -> list[str]:
        if name not in self.routes:
            return []
        return self.routes[name][1]

    def list_routes(self) -> list[RouteInfo]:
        return [
            {"uri": uri, "methods": methods, "name": name}
            for name, (uri, methods) in self.routes.items()
        ]


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Provide a real Settings object built from test environment variables.

    Returns:
        Settings: Settings object with test defaults.
    """
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("APP_VERSION", "1.0.0")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("API_HOST", "127.0.0.1")
    monkeypatch.setenv("API_PORT", "3000")

    return Settings()


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Isolate environment variables for testing.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    monkeypatch.delenv("PORT", raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[pytest.MonkeyPatch]:
    """Backup and restore environment variables to prevent test interference.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    original_env = os.environ.copy()

    # Cloud variables stay: detection tests set and clear them explicitly
    env_prefixes = [
        "APP_",
        "API_",
        "ENVIRONMENT",
        "DEBUG",
        "LOG_CONFIG__",
        "OBSERVABILITY_CONFIG__",
        "REDIS_CONFIG__",
    ]
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield monkeypatch

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Clear request context before and after each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture
def mock_get_settings(mocker: MockerFixture) -> MockType:
    """Mock get_settings in error_context with custom sensitive fields.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock get_settings function.
    """
    mock_settings = mocker.Mock(spec=Settings)
    mock_log_config = mocker.Mock(spec=LogConfig)
    mock_log_config.sensitive_fields = ["custom_secret", "my_password", "api_token"]
    mock_settings.log_config = mock_log_config

    mock_get_settings_fn = mocker.patch("src.core.error_context.get_settings")
    mock_get_settings_fn.return_value = mock_settings

    _get_sensitive_fields.cache_clear()

    return mock_get_settings_fn


@pytest.fixture
def set_request() -> Callable[..., RequestInfo]:
    """Store a request snapshot in the context.

    Returns:
        Callable[..., RequestInfo]: Builder taking ``RequestInfo.build`` kwargs.
    """

    def _set(**kwargs: Any) -> RequestInfo:
        kwargs.setdefault("url", f"{BASE_URL}/api/items")
        kwargs.setdefault("base_url", f"{BASE_URL}/")
        kwargs.setdefault("client_ip", "10.0.0.1")
        request = RequestInfo.build(**kwargs)
        RequestContext.set_request(request)
        return request

    return _set


@pytest.fixture
def api_config() -> ApiResponseConfig:
    """Envelope configuration with compression disabled for readable bodies."""
    return ApiResponseConfig(enable_compression=False)


@pytest.fixture
def structure_store() -> StructureStore:
    """Store holding the default envelope key scheme."""
    return StructureStore(DEFAULT_RESPONSE_STRUCTURE)


@pytest.fixture
def response_logger(mocker: MockerFixture) -> MockType:
    """Mock response log sink."""
    return mocker.Mock(spec=["info", "error"])


@pytest.fixture
def formatter(
    api_config: ApiResponseConfig,
    structure_store: StructureStore,
    response_logger: MockType,
) -> ResponseFormatter:
    """Formatter wired to the default structure and a mock log sink."""
    return ResponseFormatter(api_config, structure_store, response_logger=response_logger)


@pytest.fixture
def route_table() -> FakeRouteTable:
    """Route table with a handful of named API routes."""
    return FakeRouteTable(
        {
            "users.index": ("/api/users", ["GET", "HEAD"]),
            "users.show": ("/api/users/{id}", ["GET", "HEAD"]),
            "users.store": ("/api/users", ["POST"]),
            "users.destroy": ("/api/users/{id}", ["DELETE"]),
            "health": ("/health", ["GET"]),
            "orphan": ("/api/orphan", []),
        }
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    """Manually advanced clock for time-based collaborators."""
    return FakeClock()


@pytest.fixture
def make_service(
    structure_store: StructureStore,
    formatter: ResponseFormatter,
    route_table: FakeRouteTable,
    response_logger: MockType,
) -> Callable[..., ApiResponseService]:
    """Build an ``ApiResponseService`` with per-test overrides.

    Returns:
        Callable[..., ApiResponseService]: Factory accepting ``config``,
            ``environment``, ``translator``, ``rate_limiter`` and ``cache``.
    """

    def _make(**overrides: Any) -> ApiResponseService:
        config = overrides.get("config") or ApiResponseConfig(enable_compression=False)
        service_formatter = formatter
        if "config" in overrides:
            service_formatter = ResponseFormatter(
                config, structure_store, response_logger=response_logger
            )
        return ApiResponseService(
            config=config,
            environment=overrides.get("environment", "testing"),
            structure=structure_store,
            formatter=service_formatter,
            link_generator=LinkGenerator(route_table),
            translator=overrides.get("translator") or CatalogTranslator(),
            rate_limiter=overrides.get("rate_limiter") or FakeRateLimiter(),
            cache=overrides["cache"] if "cache" in overrides else FakeResponseCache(),
            routes=route_table,
            response_logger=response_logger,
        )

    return _make
