"""Process-wide wiring of store, cache, provider, and pipeline.

Components are built once from ``ServerConfig`` and handed to each other
explicitly. Tools reach them through ``get_services()``; tests install their
own bundle with ``set_services()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .aggregator import AggregationService
from .cache import AnalysisCache
from .config import ServerConfig, get_config
from .orchestrator import AnalysisOrchestrator
from .pipeline import BatchPolicy, CommentAnalysisPipeline
from .platforms import RedditClient, YouTubeClient
from .providers import AnalysisProvider, build_provider
from .store import InsightsStore
from .usage import UsageLimiter

logger = logging.getLogger(__name__)


def policy_from_config(cfg: ServerConfig) -> BatchPolicy:
    return BatchPolicy(
        batch_size=cfg.batch_size,
        concurrency=cfg.batch_concurrency,
        batch_delay_seconds=cfg.batch_delay_seconds,
        cost_per_comment_usd=cfg.cost_per_comment_usd,
        max_comments=cfg.max_comments_per_source,
        retry_max_attempts=cfg.retry_max_attempts,
        retry_base_delay=cfg.retry_base_delay,
        retry_max_delay=cfg.retry_max_delay,
    )


@dataclass
class Services:
    """Everything a tool call needs, built from one config snapshot."""

    store: InsightsStore
    cache: AnalysisCache
    orchestrator: AnalysisOrchestrator
    aggregation: AggregationService
    limiter: UsageLimiter
    pipeline: CommentAnalysisPipeline

    @property
    def provider(self) -> AnalysisProvider:
        return self.orchestrator.provider

    async def reconfigure(self, cfg: ServerConfig, *, rebuild_provider: bool = False) -> None:
        """Apply a changed config to the live components.

        Cache and quota settings are patched in place. The provider is only
        replaced (and the old one closed) when *rebuild_provider* is set.
        """
        self.cache.ttl_hours = cfg.cache_ttl_hours
        self.cache.enabled = cfg.cache_enabled
        self.orchestrator.ttl_hours = cfg.cache_ttl_hours
        self.limiter.max_per_day = cfg.analysis_max_per_user_per_day
        self.pipeline.policy = policy_from_config(cfg)
        if rebuild_provider:
            old = self.orchestrator.provider
            self.orchestrator.provider = build_provider(cfg)
            await old.close()
            logger.info("Switched analysis provider to %s", self.orchestrator.provider.name)

    async def close(self) -> None:
        await self.provider.close()
        self.store.close()


def build_services(
    cfg: ServerConfig,
    *,
    store: InsightsStore | None = None,
    provider: AnalysisProvider | None = None,
) -> Services:
    """Assemble the pipeline from *cfg*; *store* and *provider* override the defaults."""
    store = store or InsightsStore(cfg.db_path)
    provider = provider or build_provider(cfg)
    cache = AnalysisCache(store, cfg.cache_ttl_hours, enabled=cfg.cache_enabled)
    orchestrator = AnalysisOrchestrator(cache, provider, cfg.cache_ttl_hours)
    aggregation = AggregationService(store)
    limiter = UsageLimiter(store, cfg.analysis_max_per_user_per_day)
    pipeline = CommentAnalysisPipeline(
        store=store,
        orchestrator=orchestrator,
        aggregation=aggregation,
        limiter=limiter,
        youtube=YouTubeClient(cfg.youtube_api_key),
        reddit=RedditClient(cfg.reddit_user_agent),
        policy=policy_from_config(cfg),
    )
    logger.info(
        "Services ready (provider=%s, cache=%s, ttl=%dh, quota=%d/day)",
        provider.name, "on" if cfg.cache_enabled else "off",
        cfg.cache_ttl_hours, cfg.analysis_max_per_user_per_day,
    )
    return Services(store, cache, orchestrator, aggregation, limiter, pipeline)


_services: Services | None = None


def get_services() -> Services:
    """Return the shared bundle, building it from ``get_config()`` on first use."""
    global _services
    if _services is None:
        _services = build_services(get_config())
    return _services


def set_services(services: Services | None) -> None:
    global _services
    _services = services


async def close_services() -> bool:
    """Tear down the shared bundle if one was built. Returns True if closed."""
    global _services
    if _services is None:
        return False
    services, _services = _services, None
    await services.close()
    return True
