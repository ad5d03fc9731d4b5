"""Per-comment analysis: cache check, provider on miss, cache write."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from .cache import AnalysisCache
from .errors import as_provider_error
from .models.analysis import AnalysisContext, AnalysisResult
from .models.comments import Comment
from .providers.base import AnalysisProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    """A verdict plus where it came from."""

    result: AnalysisResult
    cached: bool
    elapsed_ms: int


class AnalysisOrchestrator:
    """Resolve one comment to an AnalysisResult, paying the provider only on a miss.

    A cached verdict may be up to ``ttl_hours`` old and may have been produced
    for the same text on a different video. Callers must not assume freshness.
    """

    def __init__(
        self,
        cache: AnalysisCache,
        provider: AnalysisProvider,
        ttl_hours: int | None = None,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.ttl_hours = ttl_hours

    async def analyze(self, comment: Comment, context: AnalysisContext) -> AnalysisOutcome:
        """Analyze *comment*, reporting whether the cache answered.

        Raises:
            InsightsError: Provider failure, with a provider kind.
        """
        started = time.monotonic()
        cached = self.cache.get(comment.content)
        if cached is not None:
            return AnalysisOutcome(cached, True, int((time.monotonic() - started) * 1000))

        try:
            result = await self.provider.analyze(comment.content, context)
        except Exception as exc:
            raise as_provider_error(exc) from exc

        self.cache.put(comment.content, result, comment.platform, self.ttl_hours)
        elapsed = int((time.monotonic() - started) * 1000)
        logger.debug("Analyzed %s:%s via %s in %dms", comment.platform, comment.id, self.provider.name, elapsed)
        return AnalysisOutcome(result, False, elapsed)

    async def analyze_one(self, comment: Comment, context: AnalysisContext) -> AnalysisResult:
        """Return the verdict for *comment*, cached or fresh."""
        return (await self.analyze(comment, context)).result
