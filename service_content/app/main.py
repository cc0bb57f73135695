"""
Content service for the headless content gateway.

Sites register their routes on a ``ContentService`` and run it:

    service = ContentService()
    service.route_item("/node/{nid}", "node.html", ItemOptions(upstream="node/{nid}"))
    service.route_section("/articles", "articles.html", ListOptions(upstream="views/articles"))
    service.route_cache("/node/{nid}", ItemOptions(upstream="node/{nid}"))
    service.run()
"""

import json
import os
from typing import Any, Dict, List, Optional

from fastapi import Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware
from starlette.responses import HTMLResponse, JSONResponse, Response

from shared.base_service import BaseService
from shared.config import ContentConfig, get_config
from shared.errors import ConfigError, ContentLayerException, NotFoundError, ServiceError, ValidationError
from service_content.app.adapters.upstream_client import UpstreamClient
from service_content.app.caching.content_cache import ContentCache
from service_content.app.caching.store import CacheStore, MemoryCacheStore, RedisCacheStore
from service_content.app.domain.error_responder import ErrorResponder, accepts_html
from service_content.app.domain.invalidation import InvalidationRequest, RouteCacheInvalidator
from service_content.app.middleware import (
    CachedStaticFiles,
    SecurityHeadersMiddleware,
    TrailingSlashMiddleware,
)
from service_content.app.pipeline.orchestrator import CacheStatus, ContentPipeline, freshness_headers
from service_content.app.rendering.renderer import TemplateRenderer
from service_content.app.resources.options import (
    ItemOptions,
    ListOptions,
    MultiOptions,
    ResourceType,
    RouteOptions,
    StaticOptions,
    validate_options,
)
from service_content.app.resources.resolver import OriginalRequest, resolve


def build_store(config: ContentConfig) -> CacheStore:
    """Create the process-wide cache store selected by configuration."""
    backend = config.cache_backend.lower()
    if backend == "memory":
        return MemoryCacheStore()
    if backend == "redis":
        return RedisCacheStore(
            config.redis_host,
            config.redis_port,
            db=config.redis_db,
            password=config.redis_password,
            operation_timeout=config.redis_socket_timeout,
        )
    raise ConfigError(f"Unknown cache backend '{config.cache_backend}'", details={"backend": config.cache_backend})


class ContentService(BaseService):
    """Headless content service: cached, templated views over an upstream API."""

    def __init__(
        self,
        config: Optional[ContentConfig] = None,
        *,
        store: Optional[CacheStore] = None,
        upstream: Optional[UpstreamClient] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        super().__init__("content", config or get_config())

        self.store = store if store is not None else build_store(self.config)
        self.cache = ContentCache(
            self.store,
            default_ttl=self.config.cache_ttl_seconds,
            key_prefix=self.config.cache_key_prefix,
            metrics=self.metrics,
        )
        self.upstream = upstream if upstream is not None else UpstreamClient(
            self.config.api_base,
            timeout=self.config.upstream_timeout,
            metrics=self.metrics,
        )
        self.renderer = renderer if renderer is not None else TemplateRenderer([self.config.templates_dir])
        self.pipeline = ContentPipeline(self.config, self.cache, self.upstream, metrics=self.metrics)
        self.invalidator = RouteCacheInvalidator(
            self.cache,
            reseed_ttl=self.config.cache_ttl_seconds,
            metrics=self.metrics,
        )
        self.error_responder = ErrorResponder(self.renderer, self.config.error_template)

        self._setup_content_middleware()
        self._setup_error_handlers()
        self._mount_static()

        # Expose service instance via app state for introspection/testing
        self.app.state.content_service = self

    async def startup(self) -> None:
        await self.store.connect()
        self.logger.info(
            "Content service started",
            environment=self.config.env,
            port=self.config.port,
            api_base=self.config.api_base,
        )

    async def shutdown(self) -> None:
        await self.store.close()
        await self.upstream.close()
        self.logger.info("Content service stopped")

    def _setup_content_middleware(self) -> None:
        self.app.add_middleware(SecurityHeadersMiddleware)
        self.app.add_middleware(GZipMiddleware, minimum_size=500)
        self.app.add_middleware(TrailingSlashMiddleware)

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                error: ContentLayerException = NotFoundError(details={"path": request.url.path})
            else:
                error = ServiceError(str(exc.detail), status_code=exc.status_code)
            return await self.handle_error(request, error)

        # Runs in the outermost server-error layer, after the request id has
        # been cleared: these responses carry no request id.
        @self.app.exception_handler(Exception)
        async def unhandled_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return await self.handle_error(request, ServiceError("Internal server error"))

    def _mount_static(self) -> None:
        static_dir = self.config.static_dir
        if not static_dir or not os.path.isdir(static_dir):
            self.logger.info("Static directory not found; static assets disabled", static_dir=static_dir)
            return
        self.app.mount(
            self.config.static_prefix,
            CachedStaticFiles(directory=static_dir, max_age=self.config.static_max_age),
            name="static",
        )

    async def handle_error(self, request: Request, exc: ContentLayerException) -> Response:
        return await self.error_responder.respond(exc, accepts_html(request.headers.get("accept")))

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"cache_store": "ok" if await self.store.ping() else "error"}

    # Read routes

    def _route_get(self, route: str, template: str, options: RouteOptions, resource_type: ResourceType) -> RouteOptions:
        if not template:
            raise ConfigError(f"Route '{route}' needs a template", details={"route": route})
        validate_options(route, options, resource_type)

        async def content_handler(request: Request) -> Response:
            outcome = await self.pipeline.run(
                options,
                OriginalRequest.from_request(request),
                template,
                self.renderer,
            )
            if outcome.error is not None:
                raise outcome.error

            headers = {"X-Cache": outcome.cache_status.value}
            if outcome.cache_status is not CacheStatus.BYPASS:
                headers.update(freshness_headers(self.config.cache_max_age_seconds))
            return HTMLResponse(content=outcome.body, headers=headers)

        self.app.add_api_route(
            route,
            content_handler,
            methods=["GET"],
            include_in_schema=False,
            name=f"{resource_type.value}:{route}",
        )
        self.logger.debug("Registered content route", route=route, resource_type=resource_type.value, template=template)
        return options

    def route_item(self, route: str, template: str, options: ItemOptions) -> RouteOptions:
        """Route a single upstream item."""
        return self._route_get(route, template, options, ResourceType.ITEM)

    def route_section(self, route: str, template: str, options: ListOptions) -> RouteOptions:
        """Route a list (section) resource."""
        return self._route_get(route, template, options, ResourceType.LIST)

    route_list = route_section

    def route_multi(self, route: str, template: str, options: MultiOptions) -> RouteOptions:
        """Route an aggregate of several upstream resources."""
        return self._route_get(route, template, options, ResourceType.MULTI)

    def route_static(self, route: str, template: str, options: StaticOptions) -> RouteOptions:
        """Route a template rendered against a fixed resource path."""
        return self._route_get(route, template, options, ResourceType.STATIC)

    # Control plane

    def route_cache(self, route: str, *options: RouteOptions) -> None:
        """Register POST (evict and reseed) and DELETE (evict) for ``route``.

        The keys targeted are those the given read options resolve to for the
        inbound path, so pass the same options as the matching read route.
        """
        if not options:
            raise ConfigError(f"Cache route '{route}' needs at least one resource option", details={"route": route})
        for option in options:
            if isinstance(option, StaticOptions):
                raise ConfigError("Static routes are never cached", details={"route": route})
            validate_options(route, option, option.resource_type)

        def target_keys(request: Request) -> List[str]:
            original = OriginalRequest.from_request(request)
            return [self.cache.key_for(resolve(option, self.config, original, None, None)) for option in options]

        async def reseed_handler(request: Request) -> Response:
            body = await self._read_json(request)
            invalidation = InvalidationRequest.from_body(target_keys(request), body)
            await self.invalidator.evict_and_reseed(invalidation)
            return JSONResponse(status_code=200, content={"_status": 200})

        async def evict_handler(request: Request) -> Response:
            invalidation = InvalidationRequest.from_body(target_keys(request), None)
            await self.invalidator.evict_only(invalidation)
            return Response(status_code=204)

        self.app.add_api_route(route, reseed_handler, methods=["POST"], include_in_schema=False, name=f"cache:post:{route}")
        self.app.add_api_route(route, evict_handler, methods=["DELETE"], include_in_schema=False, name=f"cache:delete:{route}")

    async def _read_json(self, request: Request) -> Optional[Any]:
        raw = await request.body()
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise ValidationError("Invalidation body is not valid JSON") from exc


def create_app(config: Optional[ContentConfig] = None):
    """Create FastAPI application."""
    service = ContentService(config)
    return service.app


if __name__ == "__main__":
    service = ContentService()
    service.run()
