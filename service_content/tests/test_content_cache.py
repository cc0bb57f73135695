"""
Unit tests for the cache-aside layer and the route cache invalidator.
"""

import pytest
from unittest.mock import AsyncMock, patch

from shared.errors import InvalidationError, StoreUnavailable, ValidationError
from service_content.app.caching.content_cache import ContentCache
from service_content.app.caching.store import MemoryCacheStore
from service_content.app.domain.invalidation import InvalidationRequest, RouteCacheInvalidator
from service_content.app.resources.options import ResourceType
from service_content.app.resources.resolver import OriginalRequest, RequestDescriptor


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))


def make_descriptor(resource_type=ResourceType.ITEM, path="node/1"):
    return RequestDescriptor(
        resource_type=resource_type,
        template_name="node.html",
        upstream_path=path,
        original_request=OriginalRequest(method="GET", path="/" + path),
    )


class TestContentCache:
    """Test cases for ContentCache."""

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def store(self):
        return MemoryCacheStore()

    @pytest.fixture
    def cache(self, store, metrics):
        return ContentCache(store, default_ttl=60, key_prefix="test", metrics=metrics)

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, cache, metrics):
        descriptor = make_descriptor()

        assert await cache.get(descriptor) is None
        assert await cache.set(descriptor, {"title": "Hello"}) is True

        entry = await cache.get(descriptor)
        assert entry.value == {"title": "Hello"}
        assert entry.ttl == 60
        assert ("content_cache_lookups_total", {"result": "miss"}) in metrics.counters
        assert ("content_cache_lookups_total", {"result": "hit"}) in metrics.counters

    @pytest.mark.asyncio
    async def test_static_never_cached(self, cache, store):
        descriptor = make_descriptor(ResourceType.STATIC, "http://cms/api/about/")

        assert await cache.set(descriptor, {"x": 1}) is False
        assert await cache.get(descriptor) is None
        assert store._data == {}

    @pytest.mark.asyncio
    async def test_lookup_failure_degrades_to_miss(self, cache, store, metrics):
        with patch.object(store, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = StoreUnavailable("get", "connection refused")

            assert await cache.get(make_descriptor()) is None

        assert ("content_cache_lookups_total", {"result": "unavailable"}) in metrics.counters

    @pytest.mark.asyncio
    async def test_write_failure_is_absorbed(self, cache, store, metrics):
        with patch.object(store, "set", new_callable=AsyncMock) as mock_set:
            mock_set.side_effect = StoreUnavailable("set", "timeout")

            assert await cache.set(make_descriptor(), {"x": 1}) is False

        assert ("content_cache_writes_total", {"result": "failed"}) in metrics.counters

    @pytest.mark.asyncio
    async def test_delete_propagates_store_failure(self, cache, store):
        with patch.object(store, "delete", new_callable=AsyncMock) as mock_delete:
            mock_delete.side_effect = StoreUnavailable("delete", "timeout")

            with pytest.raises(StoreUnavailable):
                await cache.delete(["test:item:abc"])


class TestInvalidationRequest:
    """Test cases for InvalidationRequest.from_body."""

    def test_no_body(self):
        request = InvalidationRequest.from_body(["a", "a", "b"], None)

        assert request.target_keys == ("a", "b")
        assert request.reseed_pairs == {}

    def test_reseed_pairs(self):
        request = InvalidationRequest.from_body(["a"], {"_keys": {"a": {"title": "New"}}})

        assert request.reseed_pairs == {"a": {"title": "New"}}

    def test_body_without_keys(self):
        assert InvalidationRequest.from_body(["a"], {"other": 1}).reseed_pairs == {}

    def test_body_must_be_object(self):
        with pytest.raises(ValidationError):
            InvalidationRequest.from_body(["a"], ["a"])

    def test_keys_must_be_mapping(self):
        with pytest.raises(ValidationError):
            InvalidationRequest.from_body(["a"], {"_keys": ["a"]})


class TestRouteCacheInvalidator:
    """Test cases for RouteCacheInvalidator."""

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def store(self):
        return MemoryCacheStore()

    @pytest.fixture
    def cache(self, store):
        return ContentCache(store, default_ttl=60)

    @pytest.fixture
    def invalidator(self, cache, metrics):
        return RouteCacheInvalidator(cache, reseed_ttl=30, metrics=metrics)

    @pytest.mark.asyncio
    async def test_evict_only(self, invalidator, store, metrics):
        await store.set("k1", "old", 60)

        deleted = await invalidator.evict_only(InvalidationRequest.from_body(["k1"], None))

        assert deleted == 1
        assert await store.get("k1") is None
        assert ("cache_invalidations_total", {"action": "evict"}) in metrics.counters

    @pytest.mark.asyncio
    async def test_evict_only_is_idempotent(self, invalidator, store):
        await store.set("k1", "old", 60)
        request = InvalidationRequest.from_body(["k1"], None)

        assert await invalidator.evict_only(request) == 1
        assert await invalidator.evict_only(request) == 0
        assert await store.get("k1") is None

    @pytest.mark.asyncio
    async def test_evict_and_reseed(self, invalidator, store, metrics):
        await store.set("k1", "old", 60)
        request = InvalidationRequest.from_body(["k1"], {"_keys": {"k1": "new", "k2": {"n": 2}}})

        await invalidator.evict_and_reseed(request)

        assert (await store.get("k1")).value == "new"
        assert (await store.get("k1")).ttl == 30
        assert (await store.get("k2")).value == {"n": 2}
        assert ("cache_invalidations_total", {"action": "evict_and_reseed"}) in metrics.counters

    @pytest.mark.asyncio
    async def test_evict_and_reseed_without_pairs(self, invalidator, store):
        await store.set("k1", "old", 60)

        await invalidator.evict_and_reseed(InvalidationRequest.from_body(["k1"], {}))

        assert await store.get("k1") is None

    @pytest.mark.asyncio
    async def test_delete_failure_surfaces(self, invalidator, store):
        with patch.object(store, "delete", new_callable=AsyncMock) as mock_delete:
            mock_delete.side_effect = StoreUnavailable("delete", "timeout")

            with pytest.raises(InvalidationError) as exc_info:
                await invalidator.evict_only(InvalidationRequest.from_body(["k1"], None))

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "INVALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_reseed_failure_surfaces(self, invalidator, store):
        with patch.object(store, "set", new_callable=AsyncMock) as mock_set:
            mock_set.side_effect = StoreUnavailable("set", "timeout")

            with pytest.raises(InvalidationError):
                await invalidator.evict_and_reseed(
                    InvalidationRequest.from_body(["k1"], {"_keys": {"k1": "new"}})
                )
