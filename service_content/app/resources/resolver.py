"""
Resolve an inbound request plus its route options into a request descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from starlette.requests import Request

from shared.config import ContentConfig
from shared.errors import ConfigError
from .options import ResourceType, RouteOptions, StaticOptions


Pairs = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class OriginalRequest:
    """Framework-independent snapshot of the inbound request."""

    method: str
    path: str
    query: Pairs = ()
    body: Optional[bytes] = None
    path_params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Request, body: Optional[bytes] = None) -> "OriginalRequest":
        return cls(
            method=request.method,
            path=request.url.path,
            query=tuple(request.query_params.multi_items()),
            body=body,
            path_params=dict(request.path_params),
        )

    def context(self) -> Dict[str, Any]:
        """Template-facing view of the request."""
        return {
            "method": self.method,
            "path": self.path,
            "query": dict(self.query),
            "params": dict(self.path_params),
        }


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything later pipeline stages need to serve one request."""

    resource_type: ResourceType
    template_name: str
    upstream_path: str
    original_request: OriginalRequest
    renderer: Any = None
    upstream_parts: Pairs = ()
    query: Pairs = ()

    @property
    def upstream_paths(self) -> Dict[str, str]:
        """Name to path mapping of all upstream calls for this descriptor."""
        if self.resource_type is ResourceType.MULTI:
            return dict(self.upstream_parts)
        return {self.resource_type.value: self.upstream_path}


def _format(template: str, params: Mapping[str, Any]) -> str:
    try:
        return template.format_map({key: str(value) for key, value in params.items()}).lstrip("/")
    except (KeyError, IndexError) as exc:
        raise ConfigError(
            f"Missing path parameter for upstream template '{template}'",
            details={"template": template, "missing": str(exc).strip("'")},
        ) from exc


def _identity_query(request: OriginalRequest, names: Tuple[str, ...]) -> Pairs:
    wanted = set(names)
    return tuple(sorted((key, value) for key, value in request.query if key in wanted))


def resolve(
    options: Optional[RouteOptions],
    config: ContentConfig,
    request: OriginalRequest,
    template_name: Optional[str],
    renderer: Any,
) -> RequestDescriptor:
    """Build the request descriptor. Performs no I/O."""
    if options is None:
        raise ConfigError("Route has no resource options", details={"path": request.path})

    resource_type = options.resource_type

    if isinstance(options, StaticOptions):
        resource = config.api_base.rstrip("/") + "/" + options.resource.strip("/") + "/"
        return RequestDescriptor(
            resource_type=resource_type,
            template_name=template_name or "",
            upstream_path=resource,
            original_request=request,
            renderer=renderer,
        )

    query = _identity_query(request, tuple(options.query))

    if resource_type is ResourceType.MULTI:
        parts = tuple(
            sorted((name, _format(template, request.path_params)) for name, template in options.upstreams.items())
        )
        return RequestDescriptor(
            resource_type=resource_type,
            template_name=template_name or "",
            upstream_path="",
            original_request=request,
            renderer=renderer,
            upstream_parts=parts,
            query=query,
        )

    return RequestDescriptor(
        resource_type=resource_type,
        template_name=template_name or "",
        upstream_path=_format(options.upstream, request.path_params),
        original_request=request,
        renderer=renderer,
        query=query,
    )
