"""Batch driver: quota gate, fetch, bounded fan-out, store, aggregate, charge."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from .aggregator import AggregationService
from .cache import utcnow
from .errors import ErrorKind, InsightsError
from .models.analysis import AnalysisContext
from .models.comments import Comment, SourceMetadata
from .models.usage import BatchReport, CommentFailure
from .orchestrator import AnalysisOrchestrator
from .platforms import RedditClient, YouTubeClient, resolve_source
from .retry import with_retry
from .store import InsightsStore
from .usage import UsageLimiter

logger = logging.getLogger(__name__)

_STORE_ERRORS = (sqlite3.Error, OSError)


@dataclass(frozen=True)
class BatchPolicy:
    """Fan-out and retry knobs for one pipeline."""

    batch_size: int = 10
    concurrency: int = 5
    batch_delay_seconds: float = 0.5
    cost_per_comment_usd: float = 0.01
    max_comments: int = 500
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 60.0


class CommentAnalysisPipeline:
    """Analyse every comment of a video/post and refresh its rollup.

    Per-comment failures never abort aggregation of the comments that did
    succeed. Provider quota errors that survive retries stop the remaining
    chunks, since every later call would fail the same way.
    """

    def __init__(
        self,
        *,
        store: InsightsStore,
        orchestrator: AnalysisOrchestrator,
        aggregation: AggregationService,
        limiter: UsageLimiter,
        youtube: YouTubeClient | None = None,
        reddit: RedditClient | None = None,
        policy: BatchPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.aggregation = aggregation
        self.limiter = limiter
        self.youtube = youtube
        self.reddit = reddit
        self.policy = policy or BatchPolicy()
        self._clock = clock

    async def fetch(
        self, platform: str, external_id: str, max_comments: int,
    ) -> tuple[SourceMetadata, list[Comment]]:
        """Fetch source metadata and comments from the right platform."""
        if platform == "youtube":
            if self.youtube is None:
                raise InsightsError(ErrorKind.CONFIG_INVALID, "YouTube fetching is not configured")
            meta = await self.youtube.video_metadata(external_id)
            comments = await self.youtube.video_comments(external_id, max_comments)
            return meta, comments
        if self.reddit is None:
            raise InsightsError(ErrorKind.CONFIG_INVALID, "Reddit fetching is not configured")
        return await self.reddit.post_with_comments(external_id, max_comments)

    async def analyze_url(
        self, user_id: str, url: str, max_comments: int | None = None,
    ) -> BatchReport:
        """Resolve *url*, check quota, fetch, and analyse its comments.

        Raises:
            InsightsError: URL_INVALID, QUOTA_EXCEEDED (before any fetch or
                provider call), SOURCE_NOT_FOUND, or PLATFORM_API.
        """
        platform, external_id = resolve_source(url)
        budget = self.limiter.ensure_quota(user_id)
        limit = min(max_comments or self.policy.max_comments, self.policy.max_comments)
        meta, comments = await self.fetch(platform, external_id, limit)
        source_id = self.store.upsert_source(meta)
        logger.info(
            "Fetched %d %s comments for %s (source %d)",
            len(comments), platform, external_id, source_id,
        )
        return await self.analyze_comments(user_id, source_id, meta, comments, budget=budget)

    async def analyze_comments(
        self,
        user_id: str,
        source_id: int,
        meta: SourceMetadata,
        comments: Sequence[Comment],
        *,
        budget: int | None = None,
    ) -> BatchReport:
        """Analyse already-fetched *comments* for a stored source.

        Only the first *budget* comments (default: the user's remaining daily
        allowance) are analysed; the rest are reported as ``skipped_quota``.
        """
        if budget is None:
            budget = self.limiter.ensure_quota(user_id)
        selected = list(comments[:budget])
        report = BatchReport(
            source_id=source_id,
            platform=meta.platform,
            external_id=meta.external_id,
            title=meta.title,
            comments_fetched=len(comments),
            requested=len(selected),
            skipped_quota=len(comments) - len(selected),
        )
        context = AnalysisContext(platform=meta.platform, title=meta.title or None)
        semaphore = asyncio.Semaphore(self.policy.concurrency)
        size = self.policy.batch_size

        try:
            for start in range(0, len(selected), size):
                chunk = selected[start:start + size]
                errors = await asyncio.gather(*(
                    self._process(c, context, user_id, report, semaphore) for c in chunk
                ))
                quota_hit = False
                for comment, err in zip(chunk, errors):
                    if err is None:
                        continue
                    report.failed += 1
                    report.failures.append(CommentFailure(
                        comment_id=comment.id, kind=err.kind.value, message=err.message,
                    ))
                    quota_hit = quota_hit or err.kind == ErrorKind.PROVIDER_QUOTA
                if quota_hit:
                    logger.error(
                        "Provider quota exhausted; aborting source %d after %d comments",
                        source_id, start + len(chunk),
                    )
                    report.status = "aborted"
                    break
                if start + size < len(selected) and self.policy.batch_delay_seconds:
                    await asyncio.sleep(self.policy.batch_delay_seconds)
        except asyncio.CancelledError:
            report.status = "cancelled"
            logger.warning("Batch for source %d cancelled after %d analyses", source_id, report.analyzed)
            raise
        finally:
            self._charge(user_id, report)

        if report.analyzed:
            report.aggregated = await self.aggregation.refresh(source_id) is not None
        if report.status == "complete" and (report.failed or report.skipped_quota):
            report.status = "partial"
        logger.info(
            "Source %d: %d/%d analysed (%d cached, %d failed, %d over quota), status %s",
            source_id, report.analyzed, report.requested, report.cache_hits,
            report.failed, report.skipped_quota, report.status,
        )
        return report

    async def _process(
        self,
        comment: Comment,
        context: AnalysisContext,
        user_id: str,
        report: BatchReport,
        semaphore: asyncio.Semaphore,
    ) -> InsightsError | None:
        """Analyse and store one comment, tallying it on *report* once stored.

        Provider and store errors are returned, not raised, so one bad comment
        does not cancel its siblings in the same chunk. Provider cost is
        tallied even when the store write fails.
        """
        source_id = report.source_id
        async with semaphore:
            try:
                outcome = await with_retry(
                    lambda: self.orchestrator.analyze(comment, context),
                    max_attempts=self.policy.retry_max_attempts,
                    base_delay=self.policy.retry_base_delay,
                    max_delay=self.policy.retry_max_delay,
                )
            except InsightsError as exc:
                logger.warning("Comment %s failed: %s", comment.id, exc.kind.value)
                return exc
        if not outcome.cached:
            report.provider_calls += 1
        try:
            comment_row = self.store.upsert_comment(source_id, comment)
            self.store.upsert_analysis(
                source_id=source_id,
                comment_id=comment_row,
                user_id=user_id,
                result=outcome.result,
                created_at=self._clock(),
                cost_estimate=0.0 if outcome.cached else self.policy.cost_per_comment_usd,
                processing_ms=outcome.elapsed_ms,
                cached=outcome.cached,
            )
        except _STORE_ERRORS as exc:
            logger.warning("Comment %s analysed but not stored: %s", comment.id, exc)
            return InsightsError(
                ErrorKind.STORE_UNAVAILABLE, str(exc), {"comment_id": comment.id},
            )
        report.analyzed += 1
        if outcome.cached:
            report.cache_hits += 1
        return None

    def _charge(self, user_id: str, report: BatchReport) -> None:
        if not report.analyzed and not report.comments_fetched:
            return
        self.limiter.charge(
            user_id,
            analyzed=report.analyzed,
            fetched=report.comments_fetched,
            cost_usd=report.provider_calls * self.policy.cost_per_comment_usd,
        )
