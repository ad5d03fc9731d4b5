"""Gemini-backed comment classifier."""

from __future__ import annotations

import json
import logging

from ..client import GeminiClient
from ..errors import as_provider_error
from ..models.analysis import AnalysisAggregation, AnalysisContext, AnalysisResult
from ..prompts.comments import (
    COMMENT_ANALYSIS_SYSTEM,
    CREATOR_INSIGHTS,
    comment_prompt,
)
from .base import AnalysisProvider

logger = logging.getLogger(__name__)


class GeminiProvider(AnalysisProvider):
    """Structured-output classification through ``GeminiClient``."""

    name = "gemini"

    def __init__(self, client: GeminiClient) -> None:
        self._client = client

    @property
    def model(self) -> str:
        return self._client.model

    async def analyze(self, text: str, context: AnalysisContext) -> AnalysisResult:
        prompt = comment_prompt(text, context.platform, context.title)
        try:
            return await self._client.generate_structured(
                prompt,
                schema=AnalysisResult,
                system_instruction=COMMENT_ANALYSIS_SYSTEM,
            )
        except Exception as exc:
            err = as_provider_error(exc)
            logger.error(
                "Gemini analysis failed (%s) for comment %r", err.kind.value, text[:100],
            )
            raise err from exc

    async def insights(self, aggregation: AnalysisAggregation, title: str) -> str:
        prompt = CREATOR_INSIGHTS.format(
            title=title or "this content",
            total=aggregation.total_analyzed,
            distribution=json.dumps(aggregation.sentiment_counts),
            toxicity=f"{aggregation.average_toxicity:.2f}",
            topics=", ".join(aggregation.top_topics[:5]) or "none",
        )
        try:
            return await self._client.generate(prompt, temperature=0.7)
        except Exception as exc:
            raise as_provider_error(exc) from exc

    async def close(self) -> None:
        await self._client.close()
