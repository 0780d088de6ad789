"""Static route table assembled once at startup."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi import FastAPI
from starlette.convertors import Convertor
from starlette.routing import compile_path


@dataclass(frozen=True)
class Route:
    """A single ``(method, path pattern, handler)`` entry."""

    method: str
    path: str
    handler: Callable[..., Any]
    name: str
    regex: re.Pattern = field(init=False, repr=False, compare=False)
    convertors: Dict[str, Convertor] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        regex, _, convertors = compile_path(self.path)
        object.__setattr__(self, "regex", regex)
        object.__setattr__(self, "convertors", convertors)

    def match(self, method: str, path: str) -> Optional[Dict[str, Any]]:
        if method.upper() != self.method:
            return None
        found = self.regex.match(path)
        if found is None:
            return None
        return {
            key: self.convertors[key].convert(value)
            for key, value in found.groupdict().items()
        }


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    params: Dict[str, Any]

    @property
    def handler(self) -> Callable[..., Any]:
        return self.route.handler


class RouteTable:
    """Ordered registry of routes; the first registered match wins.

    Routes are registered during startup and the table is frozen when it is
    mounted on an application, so request handling only ever reads it.
    """

    def __init__(self) -> None:
        self._routes: List[Route] = []
        self._frozen = False

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        method: str,
        path: str,
        handler: Callable[..., Any],
        *,
        name: Optional[str] = None,
    ) -> Route:
        if self._frozen:
            raise RuntimeError("Routes cannot be registered after the table is mounted")
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")
        normalized_method = method.strip().upper()
        if not normalized_method:
            raise ValueError("Route method must not be empty")

        route = Route(
            method=normalized_method,
            path=path,
            handler=handler,
            name=name or handler.__name__,
        )
        self._routes.append(route)
        return route

    def get(self, path: str, handler: Callable[..., Any], *, name: Optional[str] = None) -> Route:
        return self.register("GET", path, handler, name=name)

    def post(self, path: str, handler: Callable[..., Any], *, name: Optional[str] = None) -> Route:
        return self.register("POST", path, handler, name=name)

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        """Return the handler and path parameters for a request, or ``None``.

        Mirrors the dispatch of the mounted application: Starlette tries routes
        in the order :meth:`mount` added them, using the same compiled patterns.
        """

        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def mount(self, app: FastAPI) -> None:
        """Register every route on ``app`` in table order and freeze the table."""

        for route in self._routes:
            app.add_api_route(
                route.path,
                route.handler,
                methods=[route.method],
                name=route.name,
            )
        self._frozen = True


__all__ = ["Route", "RouteMatch", "RouteTable"]
