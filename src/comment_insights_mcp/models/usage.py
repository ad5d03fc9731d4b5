"""Usage accounting and batch reporting models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

BatchStatus = Literal["complete", "partial", "aborted", "cancelled"]


class UsageCounter(BaseModel):
    """Per-user counters. Only ever incremented (daily count reset externally)."""

    user_id: str
    total_analyses: int = 0
    analyses_this_day: int = 0
    total_comments_fetched: int = 0
    total_cost_usd: float = 0.0


class CommentFailure(BaseModel):
    """A comment whose analysis did not produce a stored result."""

    comment_id: str
    kind: str
    message: str


class BatchReport(BaseModel):
    """Outcome of analysing one source's comments.

    Reports partial completion counts instead of a single pass/fail flag.
    """

    source_id: int | None = None
    platform: str
    external_id: str
    title: str = ""
    comments_fetched: int = 0
    requested: int = 0
    analyzed: int = 0
    cache_hits: int = 0
    provider_calls: int = 0
    failed: int = 0
    skipped_quota: int = 0
    failures: list[CommentFailure] = Field(default_factory=list)
    aggregated: bool = False
    status: BatchStatus = "complete"
