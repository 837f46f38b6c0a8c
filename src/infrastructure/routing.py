"""Route lookup over a Starlette application's route table."""

from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from starlette.applications import Starlette
from starlette.routing import BaseRoute, NoMatchFound

from src.api.envelope.contracts import RouteInfo
from src.core.context import RequestContext


class StarletteRouteTable:
    """Resolve named routes of a Starlette (or FastAPI) application.

    Routes are read from the application on every call, so routes added after
    construction are visible. URLs are made absolute with the base URL of
    the current request when one is known.

    Args:
        app: Application whose routes are resolved.
    """

    def __init__(self, app: Starlette) -> None:
        self._app = app

    def _find(self, name: str) -> BaseRoute | None:
        for route in self._app.routes:
            if getattr(route, "name", None) == name:
                return route
        return None

    def resolve_url(self, name: str, params: Mapping[str, Any]) -> str:
        """Build the URL of a named route.

        Parameters that are not path parameters of the route are appended as
        a query string.

        Raises:
            NoMatchFound: If no route has this name or a path parameter is
                missing.
        """
        route = self._find(name)
        if route is None:
            raise NoMatchFound(name, dict(params))

        path_keys = set(getattr(route, "param_convertors", {}))
        path_params = {key: value for key, value in params.items() if key in path_keys}
        query = {key: value for key, value in params.items() if key not in path_keys}

        path = str(route.url_path_for(name, **path_params))
        base_url = RequestContext.get_request().base_url.rstrip("/")
        url = f"{base_url}{path}"
        if query:
            url = f"{url}?{urlencode(query, doseq=True)}"
        return url

    def methods_of(self, name: str) -> list[str]:
        """HTTP methods of a named route in sorted order; empty when unknown."""
        route = self._find(name)
        if route is None:
            return []
        return sorted(getattr(route, "methods", None) or ())

    def list_routes(self) -> list[RouteInfo]:
        """Every route that has a path, in registration order."""
        return [
            {
                "uri": route.path,
                "methods": sorted(getattr(route, "methods", None) or ()),
                "name": getattr(route, "name", None),
            }
            for route in self._app.routes
            if isinstance(getattr(route, "path", None), str)
        ]
