"""
Unit tests for the content request pipeline.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from shared.config import ContentConfig
from shared.errors import ConfigError, StoreUnavailable, UpstreamError
from service_content.app.caching.content_cache import ContentCache
from service_content.app.caching.store import MemoryCacheStore, RedisCacheStore
from service_content.app.pipeline.orchestrator import (
    CacheStatus,
    ContentPipeline,
    PipelineStage,
    freshness_headers,
)
from service_content.app.rendering.renderer import TemplateRenderer
from service_content.app.resources.options import ItemOptions, ListOptions, StaticOptions
from service_content.app.resources.resolver import OriginalRequest


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))


class TestContentPipeline:
    """Test cases for ContentPipeline."""

    @pytest.fixture
    def config(self):
        return ContentConfig(api_base="http://cms.local/api/", cache_backend="memory")

    @pytest.fixture
    def store(self):
        return MemoryCacheStore()

    @pytest.fixture
    def cache(self, store):
        return ContentCache(store, default_ttl=60)

    @pytest.fixture
    def upstream(self):
        upstream = AsyncMock()
        upstream.fetch.return_value = {"title": "Hello"}
        return upstream

    @pytest.fixture
    def renderer(self, tmp_path):
        (tmp_path / "node.html").write_text("<h1>{{ item.title }}</h1>")
        (tmp_path / "list.html").write_text("{{ count }}")
        (tmp_path / "about.html").write_text("{{ resource }}")
        return TemplateRenderer([tmp_path])

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def pipeline(self, config, cache, upstream, metrics):
        return ContentPipeline(config, cache, upstream, metrics=metrics)

    @pytest.fixture
    def item_request(self):
        return OriginalRequest(method="GET", path="/node/1", path_params={"nid": "1"})

    @pytest.fixture
    def options(self):
        return ItemOptions(upstream="node/{nid}")

    @pytest.mark.asyncio
    async def test_cache_miss_fetches_and_caches(self, pipeline, options, item_request, renderer, upstream, store):
        outcome = await pipeline.run(options, item_request, "node.html", renderer)

        assert outcome.ok
        assert outcome.body == "<h1>Hello</h1>"
        assert outcome.status_code == 200
        assert outcome.cache_status is CacheStatus.MISS
        assert outcome.stages == [
            PipelineStage.RESOLVING,
            PipelineStage.CACHE_LOOKUP,
            PipelineStage.CACHE_MISS,
            PipelineStage.FETCHING,
            PipelineStage.CACHING,
            PipelineStage.SHAPING,
            PipelineStage.RENDERING,
            PipelineStage.RESPONDING,
        ]
        upstream.fetch.assert_awaited_once()
        assert (await store.get(outcome.cache_key)).value == {"title": "Hello"}

    @pytest.mark.asyncio
    async def test_cache_hit_skips_upstream(self, pipeline, options, item_request, renderer, upstream):
        await pipeline.run(options, item_request, "node.html", renderer)
        upstream.fetch.reset_mock()

        outcome = await pipeline.run(options, item_request, "node.html", renderer)

        assert outcome.body == "<h1>Hello</h1>"
        assert outcome.cache_status is CacheStatus.HIT
        assert PipelineStage.CACHE_HIT in outcome.stages
        assert PipelineStage.FETCHING not in outcome.stages
        upstream.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_write_per_miss(self, pipeline, options, item_request, renderer, cache):
        with patch.object(cache, "set", new_callable=AsyncMock) as mock_set:
            await pipeline.run(options, item_request, "node.html", renderer)

        mock_set.assert_awaited_once()
        assert mock_set.call_args.args[1] == {"title": "Hello"}

    @pytest.mark.asyncio
    async def test_fetch_failure_writes_nothing(self, pipeline, options, item_request, renderer, upstream, cache, metrics):
        upstream.fetch.side_effect = UpstreamError(status=404, body="missing")

        with patch.object(cache, "set", new_callable=AsyncMock) as mock_set:
            outcome = await pipeline.run(options, item_request, "node.html", renderer)

        mock_set.assert_not_awaited()
        assert not outcome.ok
        assert outcome.status_code == 404
        assert outcome.failed_stage is PipelineStage.FETCHING
        assert outcome.stage is PipelineStage.FAILED
        assert ("pipeline_failures_total", {"code": "UPSTREAM_ERROR"}) in metrics.counters

    @pytest.mark.asyncio
    async def test_corrupt_redis_entry_is_refetched(self, config, upstream, options, item_request, renderer):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value=b"\xff\xfe garbage")
        redis_client.set = AsyncMock(return_value=True)
        store = RedisCacheStore(operation_timeout=1.0, client=redis_client)
        pipeline = ContentPipeline(config, ContentCache(store, default_ttl=60), upstream)

        outcome = await pipeline.run(options, item_request, "node.html", renderer)

        assert outcome.ok
        assert outcome.cache_status is CacheStatus.MISS
        assert outcome.body == "<h1>Hello</h1>"
        upstream.fetch.assert_awaited_once()
        redis_client.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_outage_still_serves(self, pipeline, options, item_request, renderer, store, upstream):
        with patch.object(store, "get", new_callable=AsyncMock) as mock_get, \
                patch.object(store, "set", new_callable=AsyncMock) as mock_set:
            mock_get.side_effect = StoreUnavailable("get", "down")
            mock_set.side_effect = StoreUnavailable("set", "down")

            outcome = await pipeline.run(options, item_request, "node.html", renderer)

        assert outcome.ok
        assert outcome.body == "<h1>Hello</h1>"
        upstream.fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shape_failure(self, pipeline, options, item_request, renderer, upstream):
        upstream.fetch.return_value = ["not", "an", "item"]

        outcome = await pipeline.run(options, item_request, "node.html", renderer)

        assert outcome.error.code == "SHAPE_ERROR"
        assert outcome.status_code == 500
        assert outcome.failed_stage is PipelineStage.SHAPING
        assert outcome.body is None

    @pytest.mark.asyncio
    async def test_render_failure(self, pipeline, options, item_request, renderer):
        outcome = await pipeline.run(options, item_request, "missing.html", renderer)

        assert outcome.error.code == "RENDER_ERROR"
        assert outcome.failed_stage is PipelineStage.RENDERING

    @pytest.mark.asyncio
    async def test_missing_options(self, pipeline, item_request, renderer, upstream):
        outcome = await pipeline.run(None, item_request, "node.html", renderer)

        assert isinstance(outcome.error, ConfigError)
        assert outcome.failed_stage is PipelineStage.RESOLVING
        upstream.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(self, pipeline, options, item_request, renderer, upstream):
        upstream.fetch.side_effect = RuntimeError("boom")

        outcome = await pipeline.run(options, item_request, "node.html", renderer)

        assert outcome.error.code == "SERVICE_ERROR"
        assert outcome.status_code == 500

    @pytest.mark.asyncio
    async def test_list_query_identity(self, pipeline, renderer, upstream):
        upstream.fetch.return_value = [1, 2, 3]
        options = ListOptions(upstream="views/articles")
        first = OriginalRequest(method="GET", path="/articles", query=(("page", "1"),))
        second = OriginalRequest(method="GET", path="/articles", query=(("page", "2"),))

        one = await pipeline.run(options, first, "list.html", renderer)
        two = await pipeline.run(options, second, "list.html", renderer)

        assert one.body == "3"
        assert one.cache_key != two.cache_key
        assert upstream.fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_static_bypasses_cache_and_upstream(self, pipeline, renderer, upstream, store):
        request = OriginalRequest(method="GET", path="/about")

        outcome = await pipeline.run(StaticOptions(resource="pages/about"), request, "about.html", renderer)

        assert outcome.body == "http://cms.local/api/pages/about/"
        assert outcome.cache_status is CacheStatus.BYPASS
        assert PipelineStage.CACHE_LOOKUP not in outcome.stages
        upstream.fetch.assert_not_awaited()
        assert store._data == {}


class TestFreshnessHeaders:
    """Test cases for freshness_headers()."""

    def test_headers(self):
        headers = freshness_headers(345600, now=0)

        assert headers["Cache-Control"] == "public, max-age=345600"
        assert headers["Expires"] == "Mon, 05 Jan 1970 00:00:00 GMT"
