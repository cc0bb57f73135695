"""
Request pipeline orchestrator.

One pipeline run per inbound read request:

    Resolving -> CacheLookup -> (CacheHit | CacheMiss -> Fetching -> Caching)
              -> Shaping -> Rendering -> Responding

Any failing stage moves the run to ``Failed`` and nothing after it executes.
The run always returns a ``PipelineOutcome``; errors are values on the
outcome rather than exceptions escaping the pipeline.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from email.utils import formatdate
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.config import ContentConfig
from shared.errors import ContentLayerException, ServiceError
from shared.logging import get_logger
from ..adapters.upstream_client import UpstreamClient
from ..caching.content_cache import ContentCache
from ..rendering.renderer import render
from ..resources.options import ResourceType, RouteOptions
from ..resources.resolver import OriginalRequest, RequestDescriptor, resolve
from .shaper import shape

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class PipelineStage(str, Enum):
    """States of a single pipeline run."""
    RESOLVING = "resolving"
    CACHE_LOOKUP = "cache_lookup"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    FETCHING = "fetching"
    CACHING = "caching"
    SHAPING = "shaping"
    RENDERING = "rendering"
    RESPONDING = "responding"
    FAILED = "failed"


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"
    BYPASS = "BYPASS"


@dataclass
class PipelineOutcome:
    """Result of a pipeline run: a rendered body or a tagged error."""

    body: Optional[str] = None
    error: Optional[ContentLayerException] = None
    stages: List[PipelineStage] = field(default_factory=list)
    failed_stage: Optional[PipelineStage] = None
    cache_status: Optional[CacheStatus] = None
    cache_key: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.body is not None

    @property
    def status_code(self) -> int:
        if self.error is not None:
            return self.error.status_code or 500
        return 200

    @property
    def stage(self) -> Optional[PipelineStage]:
        return self.stages[-1] if self.stages else None

    def advance(self, stage: PipelineStage) -> None:
        self.stages.append(stage)

    def fail(self, error: ContentLayerException) -> None:
        self.failed_stage = self.stage
        self.error = error
        self.stages.append(PipelineStage.FAILED)


def freshness_headers(max_age: int, now: Optional[float] = None) -> Dict[str, str]:
    """Caching headers for a successful response with a fixed freshness window."""
    now = time.time() if now is None else now
    return {
        "Cache-Control": f"public, max-age={max_age}",
        "Expires": formatdate(now + max_age, usegmt=True),
    }


class ContentPipeline:
    """Composes resolve, cache-aside, fetch, shape and render for one request."""

    def __init__(
        self,
        config: ContentConfig,
        cache: ContentCache,
        upstream: UpstreamClient,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.cache = cache
        self.upstream = upstream
        self.metrics = metrics
        self.logger = get_logger("content.pipeline")

    async def run(
        self,
        options: Optional[RouteOptions],
        request: OriginalRequest,
        template_name: str,
        renderer: Any,
    ) -> PipelineOutcome:
        outcome = PipelineOutcome()
        try:
            outcome.advance(PipelineStage.RESOLVING)
            descriptor = resolve(options, self.config, request, template_name, renderer)

            if descriptor.resource_type is ResourceType.STATIC:
                outcome.cache_status = CacheStatus.BYPASS
                outcome.advance(PipelineStage.RENDERING)
                body = await descriptor.renderer.render_static(descriptor)
            else:
                payload = await self._read_through(descriptor, outcome)

                outcome.advance(PipelineStage.SHAPING)
                view_model = shape(descriptor.resource_type, payload)

                outcome.advance(PipelineStage.RENDERING)
                body = await render(
                    descriptor.template_name,
                    view_model,
                    descriptor.renderer,
                    request=descriptor.original_request.context(),
                )

            outcome.advance(PipelineStage.RESPONDING)
            outcome.body = body
        except ContentLayerException as exc:
            self._failed(outcome, exc, request)
        except Exception as exc:
            self.logger.error("Unexpected pipeline error", path=request.path, error=str(exc), exc_info=True)
            self._failed(outcome, ServiceError("Internal server error", details={"error": type(exc).__name__}), request)
        return outcome

    async def _read_through(self, descriptor: RequestDescriptor, outcome: PipelineOutcome) -> Any:
        """Serve the payload from cache, or fetch it and write it back."""
        outcome.advance(PipelineStage.CACHE_LOOKUP)
        outcome.cache_key = self.cache.key_for(descriptor)
        entry = await self.cache.get(descriptor)
        if entry is not None:
            outcome.advance(PipelineStage.CACHE_HIT)
            outcome.cache_status = CacheStatus.HIT
            return entry.value

        outcome.advance(PipelineStage.CACHE_MISS)
        outcome.cache_status = CacheStatus.MISS

        outcome.advance(PipelineStage.FETCHING)
        payload = await self.upstream.fetch(descriptor)

        # Reached only after a successful fetch.
        outcome.advance(PipelineStage.CACHING)
        await self.cache.set(descriptor, payload)
        return payload

    def _failed(self, outcome: PipelineOutcome, error: ContentLayerException, request: OriginalRequest) -> None:
        outcome.fail(error)
        self.logger.error(
            "Content pipeline failed",
            path=request.path,
            stage=outcome.failed_stage.value if outcome.failed_stage else None,
            code=error.code,
            status_code=outcome.status_code,
            message=error.message,
        )
        if self.metrics:
            self.metrics.increment_counter("pipeline_failures_total", code=error.code)
