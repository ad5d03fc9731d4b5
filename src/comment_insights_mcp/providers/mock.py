"""Mock provider for development and tests (no API calls).

Verdicts are derived from the comment text alone, so the same text always
gets the same result. That keeps cached and uncached runs comparable.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging

from ..models.analysis import AnalysisAggregation, AnalysisContext, AnalysisResult
from .base import AnalysisProvider

logger = logging.getLogger(__name__)

POSITIVE_WORDS = ("great", "love", "good", "amazing")
NEGATIVE_WORDS = ("bad", "worst", "hate", "terrible")
_ENGAGEMENTS = ("high", "medium", "low")


class MockProvider(AnalysisProvider):
    """Keyword-driven, hash-seeded stand-in for the LLM.

    Args:
        latency: Seconds to sleep per call, to mimic a network round trip.
    """

    name = "mock"
    model = "mock"

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.calls = 0

    async def analyze(self, text: str, context: AnalysisContext) -> AnalysisResult:
        self.calls += 1
        logger.debug("Mock analysis (%d chars, %s)", len(text), context.platform)
        if self.latency:
            await asyncio.sleep(self.latency)

        digest = hashlib.sha256(text.encode("utf-8")).digest()
        lowered = text.lower()
        has_pos = any(w in lowered for w in POSITIVE_WORDS)
        has_neg = any(w in lowered for w in NEGATIVE_WORDS)
        jitter = digest[0] / 255

        if has_pos and has_neg:
            sentiment, score = "mixed", jitter * 0.2 - 0.1
        elif has_pos:
            sentiment, score = "positive", 0.5 + jitter * 0.5
        elif has_neg:
            sentiment, score = "negative", -0.5 - jitter * 0.5
        else:
            sentiment, score = "neutral", 0.0

        keywords = POSITIVE_WORDS + NEGATIVE_WORDS
        return AnalysisResult(
            sentiment=sentiment,
            sentiment_score=round(score, 4),
            toxicity=round(digest[1] / 255 * 0.3, 4),
            topics=[k for k in keywords if k in lowered][:3],
            summary=f"Mock analysis: {text[:50]}...",
            key_phrases=[w for w in text.split() if len(w) > 4][:5],
            engagement=_ENGAGEMENTS[digest[2] % 3],
        )

    async def insights(self, aggregation: AnalysisAggregation, title: str) -> str:
        return (
            f"Mock insights: Analyzed {aggregation.total_analyzed} comments. "
            f"Average sentiment: {aggregation.average_sentiment:+.2f}. "
            "Recommend engaging with community."
        )
