"""Per-route CSRF classification.

A router (or a single endpoint) is marked by adding a marker dependency to
it. The dependencies a route runs with are ordered outermost router first,
so the marker nearest the endpoint is the last one in that list.

``walk_routes`` flattens a route table into the leaves a request can end
up at, with the dependencies each leaf effectively runs with. Older FastAPI
releases copy routes into the including router, newer ones keep included
routers as nodes and expose the effective view through
``fastapi.routing.iter_route_contexts``; both shapes are handled. Mounted
apps are walked too. FastAPI does not carry router dependencies across a
mount, so routes below a mount are classified by their own markers only.
"""
import enum
from collections.abc import Iterable
from collections.abc import Iterator
from typing import NamedTuple

from fastapi import APIRouter
from fastapi import Depends
from fastapi import routing as fastapi_routing
from fastapi.routing import APIRoute
from starlette.routing import BaseRoute
from starlette.routing import Host
from starlette.routing import Mount
from starlette.routing import Route
from starlette.routing import WebSocketRoute

from csrfgate.errors import CsrfConfigError

_iter_route_contexts = getattr(fastapi_routing, "iter_route_contexts", None)


class RouteClassification(str, enum.Enum):
    PROTECTED = "protected"
    EXEMPT = "exempt"
    UNMARKED = "unmarked"


class RouteLeaf(NamedTuple):
    route: BaseRoute
    classification: RouteClassification
    # False when the router dispatches to a copy of ``route``
    direct: bool = True


def csrf_protected_marker() -> RouteClassification:
    return RouteClassification.PROTECTED


def csrf_exempt_marker() -> RouteClassification:
    return RouteClassification.EXEMPT


_MARKERS = {
    csrf_protected_marker: RouteClassification.PROTECTED,
    csrf_exempt_marker: RouteClassification.EXEMPT,
}

CSRF_PROTECTED = Depends(csrf_protected_marker)
CSRF_EXEMPT = Depends(csrf_exempt_marker)


def _marker_of(depends) -> RouteClassification | None:
    return _MARKERS.get(getattr(depends, "dependency", None))


def _mark(router: APIRouter, marker) -> APIRouter:
    if not isinstance(router, APIRouter):
        raise CsrfConfigError(f"Expected an APIRouter, got {type(router).__name__}")
    if any(_marker_of(dep) is not None for dep in router.dependencies):
        raise CsrfConfigError("Router already carries a CSRF classification")

    router.dependencies.append(marker)
    # routes added before marking; route level markers stay nearer the endpoint
    for route in router.routes:
        if isinstance(route, APIRoute):
            route.dependencies.insert(0, marker)
    return router


def mark_protected(router: APIRouter) -> APIRouter:
    """Require CSRF validation for every route in ``router``."""
    return _mark(router, CSRF_PROTECTED)


def mark_exempt(router: APIRouter) -> APIRouter:
    """Skip CSRF validation for every route in ``router``, even when all routes are protected by default."""
    return _mark(router, CSRF_EXEMPT)


csrf_protection = mark_protected
no_csrf_protection = mark_exempt


def classify_dependencies(dependencies: Iterable) -> RouteClassification:
    classification = RouteClassification.UNMARKED
    for depends in dependencies:
        marker = _marker_of(depends)
        if marker is not None:
            classification = marker
    return classification


def classify(route: BaseRoute) -> RouteClassification:
    """Classify ``route`` by its own dependency list."""
    if not isinstance(route, APIRoute):
        return RouteClassification.UNMARKED
    return classify_dependencies(route.dependencies)


def _effective_routes(routes: Iterable[BaseRoute]) -> Iterator[tuple[BaseRoute, list, bool]]:
    if _iter_route_contexts is None:
        for route in routes:
            yield route, list(getattr(route, "dependencies", ())), True
        return

    for context in _iter_route_contexts(list(routes)):
        route = context.original_route
        if isinstance(route, APIRoute):
            direct = True
        else:
            handle = getattr(context, "handle", None)
            direct = getattr(handle, "__self__", None) is route
        yield route, list(getattr(context, "dependencies", ())), direct


def walk_routes(routes: Iterable[BaseRoute]) -> Iterator[RouteLeaf]:
    """Yield every leaf below ``routes`` with its effective classification.

    Raises ``CsrfConfigError`` for a route node of a type it does not know.
    """
    for route, dependencies, direct in _effective_routes(routes):
        if isinstance(route, (Mount, Host)) and route.routes:
            yield from walk_routes(route.routes)
        elif isinstance(route, (Route, WebSocketRoute, Mount, Host)):
            yield RouteLeaf(route, classify_dependencies(dependencies), direct)
        else:
            raise CsrfConfigError(
                f"Cannot classify {type(route).__name__} {route!r} for CSRF protection"
            )
