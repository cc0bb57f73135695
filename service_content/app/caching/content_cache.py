"""
Cache-aside policy layer over a shared cache store.
"""

from typing import Any, Iterable, Optional, TYPE_CHECKING

from shared.errors import StoreUnavailable
from shared.logging import get_logger
from ..resources.options import ResourceType
from ..resources.resolver import RequestDescriptor
from .keys import DEFAULT_PREFIX, fingerprint
from .store import CacheEntry, CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_CONTENT_TTL = 3600


class ContentCache:
    """Descriptor-addressed access to the shared store.

    Read-path failures (lookup and write-back) are logged and absorbed so a
    store outage degrades to always fetching upstream. Control-plane
    operations (delete, reseed) propagate ``StoreUnavailable``.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        default_ttl: int = DEFAULT_CONTENT_TTL,
        key_prefix: str = DEFAULT_PREFIX,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self.metrics = metrics
        self.logger = get_logger("content.cache")

    def key_for(self, descriptor: RequestDescriptor) -> str:
        return fingerprint(descriptor, self.key_prefix)

    def _count(self, metric: str, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric, result=result)

    async def get(self, descriptor: RequestDescriptor) -> Optional[CacheEntry]:
        """Look up a descriptor; None on a miss or when the store is unavailable."""
        if descriptor.resource_type is ResourceType.STATIC:
            return None

        key = self.key_for(descriptor)
        try:
            entry = await self.store.get(key)
        except StoreUnavailable as exc:
            self.logger.warning("Cache store unavailable, treating as miss", key=key, error=exc.reason)
            self._count("content_cache_lookups_total", "unavailable")
            return None

        if entry is None:
            self.logger.debug("Cache miss", key=key, path=descriptor.upstream_path)
            self._count("content_cache_lookups_total", "miss")
            return None

        self.logger.debug("Cache hit", key=key, path=descriptor.upstream_path)
        self._count("content_cache_lookups_total", "hit")
        return entry

    async def set(self, descriptor: RequestDescriptor, value: Any, ttl: Optional[int] = None) -> bool:
        """Best-effort write-back after a successful upstream fetch."""
        if descriptor.resource_type is ResourceType.STATIC:
            return False

        key = self.key_for(descriptor)
        try:
            await self.store.set(key, value, ttl or self.default_ttl)
        except StoreUnavailable as exc:
            self.logger.warning("Cache write failed", key=key, error=exc.reason)
            self._count("content_cache_writes_total", "failed")
            return False

        self._count("content_cache_writes_total", "ok")
        return True

    async def delete(self, keys: Iterable[str]) -> int:
        """Delete keys; raises StoreUnavailable."""
        return await self.store.delete(keys)

    async def reseed(self, key: str, value: Any, ttl: Optional[int] = None) -> CacheEntry:
        """Write a client-supplied value; raises StoreUnavailable."""
        return await self.store.set(key, value, ttl or self.default_ttl)
