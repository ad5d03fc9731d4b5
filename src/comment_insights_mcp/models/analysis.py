"""Comment analysis models: structured output schema for Gemini plus rollups.

``AnalysisResult`` is the schema passed to ``GeminiClient.generate_structured()``
for every comment. The remaining models are produced locally by the store
and the aggregator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Sentiment = Literal["positive", "negative", "neutral", "mixed"]
Engagement = Literal["high", "medium", "low"]

SENTIMENTS: tuple[str, ...] = ("positive", "negative", "neutral", "mixed")
ENGAGEMENTS: tuple[str, ...] = ("high", "medium", "low")

MAX_ITEMS_PER_COMMENT = 5


class AnalysisResult(BaseModel):
    """Per-comment verdict. Never mutated once produced.

    Enum fields tolerate case and whitespace drift but reject unknown labels,
    so a malformed response fails validation rather than getting a made-up
    sentiment. Scores are clamped and lists truncated.
    """

    model_config = ConfigDict(frozen=True)

    sentiment: Sentiment = Field(description='One of "positive", "negative", "neutral", "mixed"')
    sentiment_score: float = Field(description="-1 (very negative) to 1 (very positive)")
    toxicity: float = Field(description="0 (not toxic) to 1 (highly toxic)")
    topics: list[str] = Field(default_factory=list, description="Main topics discussed (max 5)")
    summary: str = Field(default="", description="One-sentence summary of the comment")
    key_phrases: list[str] = Field(default_factory=list, description="Important phrases or keywords (max 5)")
    engagement: Engagement = Field(description='Discussion potential: "high", "medium", or "low"')

    @field_validator("sentiment", "engagement", mode="before")
    @classmethod
    def normalize_label(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("sentiment_score")
    @classmethod
    def clamp_score(cls, value: float) -> float:
        return max(-1.0, min(1.0, value))

    @field_validator("toxicity")
    @classmethod
    def clamp_toxicity(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @field_validator("topics", "key_phrases")
    @classmethod
    def truncate_items(cls, value: list[str]) -> list[str]:
        return [v for v in value if v][:MAX_ITEMS_PER_COMMENT]


class AnalysisContext(BaseModel):
    """What the provider is told about where a comment was posted."""

    platform: str = "social media"
    title: str | None = None


class StoredAnalysis(AnalysisResult):
    """An AnalysisResult as persisted against a comment and source."""

    id: int
    source_id: int
    comment_id: int
    user_id: str
    created_at: datetime
    cost_estimate: float = 0.0
    processing_ms: int = 0
    cached: bool = False


class CacheEntry(BaseModel):
    """One content-addressed cache row."""

    content_hash: str = Field(min_length=64, max_length=64)
    payload: str
    platform: str
    expires_at: datetime


class AnalysisAggregation(BaseModel):
    """Per-source rollup, recomputed from scratch on every run.

    ``average_sentiment`` is the coarse polarity ratio
    ``(positive - negative) / total_analyzed`` from bucket counts, not the mean
    of ``sentiment_score``; the mean is carried separately in
    ``mean_sentiment_score``.
    """

    source_id: int
    sentiment_counts: dict[str, int]
    engagement_counts: dict[str, int]
    average_sentiment: float
    mean_sentiment_score: float
    average_toxicity: float
    top_topics: list[str] = Field(default_factory=list)
    top_phrases: list[str] = Field(default_factory=list)
    total_analyzed: int
    last_updated: datetime


class TimelinePoint(BaseModel):
    """One UTC calendar day of the sentiment timeline."""

    date: str
    sentiment: float
    positive: int = 0
    negative: int = 0
    total: int = 0
