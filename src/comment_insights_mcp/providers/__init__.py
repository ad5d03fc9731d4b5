"""Analysis providers: the per-comment classifiers the orchestrator calls."""

from __future__ import annotations

from ..config import ServerConfig
from .base import AnalysisProvider
from .gemini import GeminiProvider
from .mock import MockProvider

__all__ = ["AnalysisProvider", "GeminiProvider", "MockProvider", "build_provider"]


def build_provider(cfg: ServerConfig) -> AnalysisProvider:
    """Return the mock provider when ``MOCK_AI_PROVIDER`` is set, else Gemini."""
    if cfg.mock_provider:
        return MockProvider()
    from ..client import GeminiClient

    client = GeminiClient(
        cfg.gemini_api_key,
        model=cfg.default_model,
        thinking_level=cfg.default_thinking_level,
        temperature=cfg.default_temperature,
    )
    return GeminiProvider(client)
