"""HATEOAS link generation through the application's route table."""

from collections.abc import Mapping
from typing import Any, TypedDict

from loguru import logger

from src.api.envelope.contracts import RouteTable

DEFAULT_METHOD = "GET"


class Link(TypedDict):
    """A hypermedia link to a related resource or action."""

    href: str
    rel: str
    method: str


# A link definition is either a bare route name or {"route": name, "params": {...}}
type LinkSpec = str | Mapping[str, Any]


class LinkGenerator:
    """Build ``{href, rel, method}`` link objects from named routes."""

    def __init__(self, routes: RouteTable) -> None:
        self._routes = routes

    def generate(
        self,
        route: str,
        params: Mapping[str, Any] | None = None,
        rel: str = "self",
    ) -> Link:
        """Generate a link for a named route.

        Args:
            route: Route name.
            params: Path parameters for the route.
            rel: Relationship of the link to the current resource.

        Returns:
            Link: The resolved link.
        """
        return {
            "href": self._routes.resolve_url(route, params or {}),
            "rel": rel,
            "method": self._route_method(route),
        }

    def generate_links(self, links: Mapping[str, LinkSpec]) -> dict[str, Link]:
        """Generate links keyed by relationship.

        Entries that are neither a route name nor a mapping with a string
        ``route`` are skipped.

        Args:
            links: Relationship to link definition.

        Returns:
            dict[str, Link]: Relationship to resolved link.
        """
        generated: dict[str, Link] = {}
        for rel, definition in links.items():
            if isinstance(definition, str):
                generated[rel] = self.generate(definition, {}, rel)
            elif isinstance(definition, Mapping) and isinstance(definition.get("route"), str):
                params = definition.get("params")
                generated[rel] = self.generate(
                    definition["route"], params if isinstance(params, Mapping) else {}, rel
                )
        return generated

    @staticmethod
    def from_url(href: str, rel: str) -> Link:
        """Wrap an already resolved URL, e.g. a pagination page URL."""
        return {"href": href, "rel": rel, "method": DEFAULT_METHOD}

    def _route_method(self, route: str) -> str:
        # Any lookup failure degrades to GET rather than failing the response
        try:
            methods = self._routes.methods_of(route)
        except Exception as e:  # noqa: BLE001
            logger.debug("Route method lookup failed for {}: {}", route, e)
            return DEFAULT_METHOD
        return methods[0] if methods else DEFAULT_METHOD
