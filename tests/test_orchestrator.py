"""Tests for cache-through per-comment analysis."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from comment_insights_mcp.cache import AnalysisCache
from comment_insights_mcp.errors import ErrorKind, InsightsError
from comment_insights_mcp.models.analysis import AnalysisContext
from comment_insights_mcp.orchestrator import AnalysisOrchestrator
from comment_insights_mcp.providers import MockProvider
from tests.conftest import make_comment, make_result

CTX = AnalysisContext(platform="youtube", title="Test Video")


@pytest.fixture()
def cache(store, clock):
    return AnalysisCache(store, 24, clock=clock)


class TestAnalysisOrchestrator:
    async def test_miss_calls_provider_and_caches(self, cache):
        provider = MockProvider()
        orch = AnalysisOrchestrator(cache, provider)

        outcome = await orch.analyze(make_comment("c1", "I love this"), CTX)
        assert outcome.cached is False
        assert outcome.result.sentiment == "positive"
        assert provider.calls == 1
        assert cache.get("I love this") == outcome.result

    async def test_second_identical_text_is_free(self, cache):
        provider = MockProvider()
        orch = AnalysisOrchestrator(cache, provider)

        first = await orch.analyze(make_comment("c1", "Great video!"), CTX)
        second = await orch.analyze(make_comment("c2", "Great video!", platform="reddit"), CTX)
        assert provider.calls == 1
        assert second.cached is True
        assert second.result == first.result

    async def test_cached_equals_uncached(self, store, clock):
        text = "This was terrible but the music was amazing"
        with_cache = AnalysisOrchestrator(AnalysisCache(store, clock=clock), MockProvider())
        no_cache = AnalysisOrchestrator(AnalysisCache(store, enabled=False, clock=clock), MockProvider())

        await with_cache.analyze_one(make_comment("c1", text), CTX)
        cached = await with_cache.analyze_one(make_comment("c1", text), CTX)
        fresh = await no_cache.analyze_one(make_comment("c1", text), CTX)
        assert cached == fresh

    async def test_provider_error_propagates_and_nothing_cached(self, cache):
        provider = MagicMock()
        provider.name = "broken"
        provider.analyze = AsyncMock(side_effect=InsightsError(ErrorKind.PROVIDER_MALFORMED, "bad json"))
        orch = AnalysisOrchestrator(cache, provider)

        with pytest.raises(InsightsError) as exc_info:
            await orch.analyze(make_comment("c1", "text"), CTX)
        assert exc_info.value.kind == ErrorKind.PROVIDER_MALFORMED
        assert cache.get("text") is None

    async def test_raw_exceptions_become_provider_errors(self, cache):
        provider = MagicMock()
        provider.analyze = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "", 0))
        orch = AnalysisOrchestrator(cache, provider)

        with pytest.raises(InsightsError) as exc_info:
            await orch.analyze(make_comment("c1", "text"), CTX)
        assert exc_info.value.kind == ErrorKind.PROVIDER_MALFORMED

    async def test_timeout_maps_to_transient(self, cache):
        provider = MagicMock()
        provider.analyze = AsyncMock(side_effect=TimeoutError("deadline exceeded"))
        orch = AnalysisOrchestrator(cache, provider)

        with pytest.raises(InsightsError) as exc_info:
            await orch.analyze(make_comment("c1", "text"), CTX)
        assert exc_info.value.kind == ErrorKind.PROVIDER_TRANSIENT
        assert exc_info.value.retryable

    async def test_disabled_cache_always_calls_provider(self, store, clock):
        provider = MockProvider()
        orch = AnalysisOrchestrator(AnalysisCache(store, enabled=False, clock=clock), provider)
        for _ in range(3):
            await orch.analyze(make_comment("c1", "same"), CTX)
        assert provider.calls == 3

    async def test_ttl_override_passed_to_cache(self, store, clock):
        cache = MagicMock()
        cache.get.return_value = None
        provider = MagicMock()
        provider.analyze = AsyncMock(return_value=make_result("neutral"))
        orch = AnalysisOrchestrator(cache, provider, ttl_hours=6)

        await orch.analyze(make_comment("c1", "hello"), CTX)
        cache.put.assert_called_once_with("hello", make_result("neutral"), "youtube", 6)
