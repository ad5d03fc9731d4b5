"""Base analysis provider interface.

Every per-comment classifier (real LLM or mock) implements this interface so
the orchestrator can be handed any of them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models.analysis import AnalysisAggregation, AnalysisContext, AnalysisResult


class AnalysisProvider(ABC):
    """Classifies one comment at a time."""

    name: str = "base"

    @abstractmethod
    async def analyze(self, text: str, context: AnalysisContext) -> AnalysisResult:
        """Classify *text*.

        Raises:
            InsightsError: With a provider kind (transient, malformed, quota).
        """

    @abstractmethod
    async def insights(self, aggregation: AnalysisAggregation, title: str) -> str:
        """Turn a rollup into a few actionable sentences for the creator."""

    async def close(self) -> None:
        """Release network resources, if any."""
