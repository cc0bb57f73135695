"""
Route option variants for content routes.

Each read route is registered with exactly one of the variants below. They are
validated against the route pattern when the route is registered, so a route
whose upstream template references an unknown path parameter never reaches
request time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from string import Formatter
from typing import Dict, Mapping, Set, Tuple, Union

from starlette.routing import compile_path

from shared.errors import ConfigError


class ResourceType(str, Enum):
    """Resource types driving pipeline branching."""
    ITEM = "item"
    LIST = "list"
    MULTI = "multi"
    STATIC = "static"


def template_fields(template: str) -> Set[str]:
    """Return the replacement field names used by an upstream path template."""
    try:
        return {name for _, name, _, _ in Formatter().parse(template) if name}
    except ValueError as exc:
        raise ConfigError(
            f"Malformed upstream template '{template}'",
            details={"template": template, "error": str(exc)},
        ) from exc


def route_params(route: str) -> Set[str]:
    """Return the path parameter names declared by a route pattern."""
    _, _, convertors = compile_path(route)
    return set(convertors)


def _check_template(route: str, template: str) -> None:
    if not template or not template.strip():
        raise ConfigError("Upstream path is required", details={"route": route})
    missing = template_fields(template) - route_params(route)
    if missing:
        raise ConfigError(
            f"Upstream template references parameters not present in route '{route}'",
            details={"route": route, "template": template, "missing": sorted(missing)},
        )


@dataclass(frozen=True)
class ItemOptions:
    """A single upstream resource, e.g. ``node/{nid}``."""
    upstream: str
    query: Tuple[str, ...] = ()

    resource_type = ResourceType.ITEM

    def validate(self, route: str) -> None:
        _check_template(route, self.upstream)


@dataclass(frozen=True)
class ListOptions:
    """A collection (section) resource; ``page`` is content-identifying by default."""
    upstream: str
    query: Tuple[str, ...] = ("page",)

    resource_type = ResourceType.LIST

    def validate(self, route: str) -> None:
        _check_template(route, self.upstream)


@dataclass(frozen=True)
class MultiOptions:
    """An aggregate of several upstream resources keyed by name."""
    upstreams: Mapping[str, str] = field(default_factory=dict)
    query: Tuple[str, ...] = ()

    resource_type = ResourceType.MULTI

    def validate(self, route: str) -> None:
        if not self.upstreams:
            raise ConfigError("Multi routes need at least one upstream", details={"route": route})
        for name, template in self.upstreams.items():
            if not name:
                raise ConfigError("Multi upstream names must be non-empty", details={"route": route})
            _check_template(route, template)


@dataclass(frozen=True)
class StaticOptions:
    """A fixed resource rendered without cache or upstream involvement."""
    resource: str

    resource_type = ResourceType.STATIC

    def validate(self, route: str) -> None:
        if not self.resource or not self.resource.strip():
            raise ConfigError("Static routes need a resource path", details={"route": route})


RouteOptions = Union[ItemOptions, ListOptions, MultiOptions, StaticOptions]

OPTION_TYPES: Dict[ResourceType, type] = {
    ResourceType.ITEM: ItemOptions,
    ResourceType.LIST: ListOptions,
    ResourceType.MULTI: MultiOptions,
    ResourceType.STATIC: StaticOptions,
}


def validate_options(route: str, options: RouteOptions, expected: ResourceType) -> RouteOptions:
    """Check that ``options`` is the variant for ``expected`` and fits ``route``."""
    option_type = OPTION_TYPES[expected]
    if not isinstance(options, option_type):
        raise ConfigError(
            f"Route '{route}' expects {option_type.__name__}",
            details={"route": route, "got": type(options).__name__},
        )
    options.validate(route)
    return options
