"""Per-source rollups and the day-bucketed sentiment timeline.

Aggregation is a pure fold over the complete current set of analyses for a
source. Nothing is updated incrementally, so re-running after a partial
failure (or with more analyses) gives the same answer as starting from empty.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from .models.analysis import (
    ENGAGEMENTS,
    SENTIMENTS,
    AnalysisAggregation,
    AnalysisResult,
    StoredAnalysis,
    TimelinePoint,
)
from .store import InsightsStore

logger = logging.getLogger(__name__)

TOP_ITEMS_LIMIT = 10


def top_items(items: Iterable[str], limit: int = TOP_ITEMS_LIMIT) -> list[str]:
    """Rank *items* by descending frequency; ties keep first-seen order."""
    # Counter preserves insertion order and sorted() is stable.
    freq = Counter(items)
    ranked = sorted(freq.items(), key=lambda kv: -kv[1])
    return [item for item, _ in ranked[:limit]]


def aggregate(
    analyses: Sequence[AnalysisResult],
    *,
    source_id: int,
    now: datetime | None = None,
) -> AnalysisAggregation | None:
    """Fold per-comment verdicts into one rollup. Returns None when empty.

    ``average_sentiment`` is ``(positive - negative) / total``, a polarity
    ratio over bucket counts; ``mean_sentiment_score`` is the plain mean.
    """
    if not analyses:
        return None

    sentiment_counts = dict.fromkeys(SENTIMENTS, 0)
    engagement_counts = dict.fromkeys(ENGAGEMENTS, 0)
    topics: list[str] = []
    phrases: list[str] = []
    toxicity = 0.0
    score = 0.0

    for a in analyses:
        sentiment_counts[a.sentiment] += 1
        engagement_counts[a.engagement] += 1
        topics.extend(a.topics)
        phrases.extend(a.key_phrases)
        toxicity += a.toxicity
        score += a.sentiment_score

    total = len(analyses)
    return AnalysisAggregation(
        source_id=source_id,
        sentiment_counts=sentiment_counts,
        engagement_counts=engagement_counts,
        average_sentiment=(sentiment_counts["positive"] - sentiment_counts["negative"]) / total,
        mean_sentiment_score=score / total,
        average_toxicity=toxicity / total,
        top_topics=top_items(topics),
        top_phrases=top_items(phrases),
        total_analyzed=total,
        last_updated=now or datetime.now(timezone.utc),
    )


def sentiment_timeline(
    analyses: Iterable[StoredAnalysis],
    days: int = 7,
    now: datetime | None = None,
) -> list[TimelinePoint]:
    """Bucket analyses from the last *days* days by UTC date.

    Each bucket's sentiment is ``(pos - neg) / (pos + neg)``. A bucket with
    no positive or negative verdicts (only neutral/mixed) reports 0.0; its
    counts distinguish that from an evenly split day.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)
    buckets: dict[str, Counter] = {}

    for a in analyses:
        if a.created_at < cutoff:
            continue
        day = a.created_at.astimezone(timezone.utc).date().isoformat()
        bucket = buckets.setdefault(day, Counter())
        bucket[a.sentiment] += 1
        bucket["total"] += 1

    points = []
    for day, bucket in sorted(buckets.items()):
        pos, neg = bucket["positive"], bucket["negative"]
        points.append(TimelinePoint(
            date=day,
            sentiment=(pos - neg) / (pos + neg) if pos + neg else 0.0,
            positive=pos,
            negative=neg,
            total=bucket["total"],
        ))
    return points


class AggregationService:
    """Store-backed aggregation, serialised per source id.

    Concurrent refreshes of the same source queue behind one lock so a run
    working from stale input cannot overwrite a newer one; different sources
    proceed in parallel.
    """

    def __init__(self, store: InsightsStore) -> None:
        self._store = store
        # Entries drop out once no refresh holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, source_id: int) -> asyncio.Lock:
        lock = self._locks.get(source_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[source_id] = lock
        return lock

    async def refresh(self, source_id: int, now: datetime | None = None) -> AnalysisAggregation | None:
        """Recompute and persist the rollup for *source_id* from stored analyses."""
        lock = self._lock(source_id)
        async with lock:
            analyses = self._store.list_analyses(source_id)
            aggregation = aggregate(analyses, source_id=source_id, now=now)
            if aggregation is None:
                logger.warning("No analyses found for source %d", source_id)
                return None
            self._store.upsert_aggregation(aggregation)
        logger.info("Aggregated source %d (%d analyses)", source_id, aggregation.total_analyzed)
        return aggregation

    def get(self, source_id: int) -> AnalysisAggregation | None:
        return self._store.get_aggregation(source_id)

    def timeline(self, source_id: int, days: int = 7, now: datetime | None = None) -> list[TimelinePoint]:
        now = now or datetime.now(timezone.utc)
        analyses = self._store.list_analyses(source_id, since=now - timedelta(days=days))
        return sentiment_timeline(analyses, days=days, now=now)
