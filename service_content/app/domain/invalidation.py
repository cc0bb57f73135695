"""
Route cache invalidation (control plane).

Two actions share one route pattern:

- evict-and-reseed (POST): delete the route's keys, then write every pair
  from the body's ``_keys`` mapping.
- evict-only (DELETE): delete the route's keys.

Delete-then-write is sequential and not transactional. Unlike the read path,
store failures here are surfaced as ``InvalidationError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, TYPE_CHECKING

from shared.errors import InvalidationError, StoreUnavailable, ValidationError
from shared.logging import get_logger
from ..caching.content_cache import ContentCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


RESEED_FIELD = "_keys"


@dataclass(frozen=True)
class InvalidationRequest:
    """Keys to evict and optional key/value pairs to write afterwards."""

    target_keys: Tuple[str, ...]
    reseed_pairs: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_body(cls, target_keys: Iterable[str], body: Optional[Any]) -> "InvalidationRequest":
        """Build a request from the parsed control-request body."""
        reseed: Dict[str, Any] = {}
        if body is not None:
            if not isinstance(body, dict):
                raise ValidationError("Invalidation body must be a JSON object")
            pairs = body.get(RESEED_FIELD)
            if pairs is not None:
                if not isinstance(pairs, dict):
                    raise ValidationError(
                        f"'{RESEED_FIELD}' must map cache keys to values",
                        details={"received": type(pairs).__name__},
                    )
                reseed = {str(key): value for key, value in pairs.items()}
        # De-duplicate while keeping order.
        return cls(target_keys=tuple(dict.fromkeys(target_keys)), reseed_pairs=reseed)


class RouteCacheInvalidator:
    """Clears and reseeds entries of the shared content cache."""

    def __init__(
        self,
        cache: ContentCache,
        *,
        reseed_ttl: Optional[int] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.reseed_ttl = reseed_ttl
        self.metrics = metrics
        self.logger = get_logger("content.invalidator")

    async def _evict(self, request: InvalidationRequest) -> int:
        try:
            deleted = await self.cache.delete(request.target_keys)
        except StoreUnavailable as exc:
            self.logger.error("Cache eviction failed", keys=list(request.target_keys), error=exc.reason)
            raise InvalidationError(
                "Cache store unavailable while deleting keys",
                details={"keys": list(request.target_keys)},
            ) from exc
        return deleted

    async def evict_only(self, request: InvalidationRequest) -> int:
        deleted = await self._evict(request)
        self.logger.info("Cache keys evicted", requested=len(request.target_keys), deleted=deleted)
        self._count("evict")
        return deleted

    async def evict_and_reseed(self, request: InvalidationRequest) -> int:
        deleted = await self._evict(request)
        for key, value in request.reseed_pairs.items():
            try:
                await self.cache.reseed(key, value, self.reseed_ttl)
            except StoreUnavailable as exc:
                self.logger.error("Cache reseed failed", key=key, error=exc.reason)
                raise InvalidationError(
                    "Cache store unavailable while reseeding keys",
                    details={"key": key},
                ) from exc
        self.logger.info(
            "Cache keys evicted and reseeded",
            requested=len(request.target_keys),
            deleted=deleted,
            reseeded=len(request.reseed_pairs),
        )
        self._count("evict_and_reseed")
        return deleted

    def _count(self, action: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("cache_invalidations_total", action=action)
