"""
Content caching package.

Provides the cache-aside layer used by the read pipeline and the route cache
invalidator. One store instance is shared process-wide; every pipeline and
the invalidator see the same keys.
"""

from .content_cache import ContentCache
from .keys import fingerprint
from .store import CacheEntry, CacheStore, MemoryCacheStore, RedisCacheStore

__all__ = [
    "CacheEntry",
    "CacheStore",
    "ContentCache",
    "MemoryCacheStore",
    "RedisCacheStore",
    "fingerprint",
]
