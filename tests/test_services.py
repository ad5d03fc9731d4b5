"""Tests for service wiring and server assembly."""

from __future__ import annotations

from comment_insights_mcp.config import ServerConfig
from comment_insights_mcp.providers import MockProvider
from comment_insights_mcp.services import (
    build_services,
    close_services,
    get_services,
    policy_from_config,
    set_services,
)
from comment_insights_mcp.store import InsightsStore


class TestBuildServices:
    def test_components_share_store_and_cache(self):
        cfg = ServerConfig(mock_provider=True, db_path=":memory:", cache_ttl_hours=3)
        svc = build_services(cfg)
        assert isinstance(svc.provider, MockProvider)
        assert svc.orchestrator.cache is svc.cache
        assert svc.pipeline.orchestrator is svc.orchestrator
        assert svc.pipeline.limiter is svc.limiter
        assert svc.cache.ttl_hours == 3
        svc.store.close()

    def test_policy_mirrors_config(self):
        cfg = ServerConfig(batch_size=4, batch_concurrency=2, cost_per_comment_usd=0.005)
        policy = policy_from_config(cfg)
        assert (policy.batch_size, policy.concurrency, policy.cost_per_comment_usd) == (4, 2, 0.005)

    async def test_get_services_builds_once(self, clean_config, monkeypatch, tmp_path):
        monkeypatch.setenv("MOCK_AI_PROVIDER", "true")
        monkeypatch.setenv("COMMENT_INSIGHTS_DB", str(tmp_path / "svc.db"))
        set_services(None)
        try:
            assert get_services() is get_services()
        finally:
            assert await close_services() is True
        assert await close_services() is False

    async def test_reconfigure_without_provider_rebuild(self):
        store = InsightsStore(":memory:")
        provider = MockProvider()
        svc = build_services(ServerConfig(mock_provider=True), store=store, provider=provider)
        await svc.reconfigure(ServerConfig(mock_provider=True, cache_ttl_hours=2, batch_size=3))
        assert svc.provider is provider
        assert svc.orchestrator.ttl_hours == 2
        assert svc.pipeline.policy.batch_size == 3
        store.close()


class TestServer:
    def test_app_mounts_sub_servers(self):
        from comment_insights_mcp import server

        assert server.app.name == "comment-insights"
        assert callable(server.main)
