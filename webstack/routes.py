"""
Route planning for the REST entry point. Testable without Pulumi runtime.

Turns the ordered route descriptors into a plan the API component can walk:
the path-segment resources to create (parents before children) and the
(method, path) registrations per compute unit. All route invariants are
checked here, before any resource exists, so a bad route table aborts the
whole composition.
"""

from dataclasses import dataclass

from webstack.config import RouteSpec
from webstack.errors import ConfigurationError

HTTP_METHODS: tuple[str, ...] = (
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "ANY",
)


@dataclass(frozen=True)
class RoutePlan:
    """
    Attributes:
        resource_paths: Every non-root path prefix, parents before children
            (e.g. "/items", "/items/{id}").
        routes: Route descriptors in registration order, paths normalized.
    """

    resource_paths: tuple[str, ...]
    routes: tuple[RouteSpec, ...]

    def methods_on(self, path: str) -> list[str]:
        return [route.method for route in self.routes if route.path == path]

    @property
    def route_paths(self) -> list[str]:
        """Distinct routed paths, in first-registration order."""
        seen: list[str] = []
        for route in self.routes:
            if route.path not in seen:
                seen.append(route.path)
        return seen


def split_path(
    path: str,
) -> list[str]:
    """
    Split "/items/{id}" into ["items", "{id}"]; "/" yields [].
    """
    return [segment for segment in path.split("/") if segment]


def parent_path(
    path: str,
) -> str:
    """
    Return the parent prefix of a normalized path ("/items/{id}" -> "/items").
    """
    segments = split_path(path)
    return "/" + "/".join(segments[:-1])


def is_path_parameter(
    segment: str,
) -> bool:
    return segment.startswith("{") and segment.endswith("}") and len(segment) > 2


def normalize_path(
    path: str,
) -> str:
    """
    Validate a path template and return it without trailing or doubled slashes.

    Raises:
        ConfigurationError: Path not starting with "/", or with more than one
            path parameter segment, or with a malformed segment.
    """
    if not path.startswith("/"):
        raise ConfigurationError(f"Route path {path!r} must start with '/'")
    segments = split_path(path)
    params = [segment for segment in segments if is_path_parameter(segment)]
    if len(params) > 1:
        raise ConfigurationError(
            f"Route path {path!r} has {len(params)} path parameters; at most one is allowed"
        )
    for segment in segments:
        if not is_path_parameter(segment) and ("{" in segment or "}" in segment):
            raise ConfigurationError(f"Malformed path segment {segment!r} in {path!r}")
    return "/" + "/".join(segments)


def plan_routes(
    routes: tuple[RouteSpec, ...] | list[RouteSpec],
) -> RoutePlan:
    """
    Validate route descriptors and build the resource plan.

    An empty route list is valid and yields an empty plan.

    Raises:
        ConfigurationError: Unknown method, malformed path, duplicate route
            name (case-insensitive), or the same (method, path) registered twice.
    """
    names: set[str] = set()
    registered: set[tuple[str, str]] = set()
    resource_paths: list[str] = []
    planned: list[RouteSpec] = []

    for route in routes:
        if not route.name:
            raise ConfigurationError("Route name must be non-empty")
        # Function and resource names are derived from the lowercased name.
        if route.name.lower() in names:
            raise ConfigurationError(f"Duplicate route name {route.name!r}")
        names.add(route.name.lower())

        method = route.method.upper()
        if method not in HTTP_METHODS:
            raise ConfigurationError(
                f"Route {route.name!r} uses unsupported method {route.method!r}"
            )
        path = normalize_path(route.path)
        if (method, path) in registered:
            raise ConfigurationError(
                f"Route {route.name!r} registers {method} {path} which is already registered"
            )
        registered.add((method, path))

        segments = split_path(path)
        for depth in range(1, len(segments) + 1):
            prefix = "/" + "/".join(segments[:depth])
            if prefix not in resource_paths:
                resource_paths.append(prefix)

        planned.append(RouteSpec(name=route.name, method=method, path=path))

    return RoutePlan(resource_paths=tuple(resource_paths), routes=tuple(planned))
