"""Comment analysis tools: 3 tools on a FastMCP sub-server."""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..errors import ErrorKind, InsightsError, as_provider_error, make_tool_error
from ..services import get_services
from ..types import SourceId, SourceUrl, UserId

comments_server = FastMCP("comments")


def _require_aggregation(source_id: int):
    aggregation = get_services().aggregation.get(source_id)
    if aggregation is None:
        raise InsightsError(
            ErrorKind.NOT_FOUND,
            f"No aggregation stored for source {source_id}",
            {"source_id": source_id},
        )
    return aggregation


@comments_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
    )
)
async def comments_analyze(
    url: SourceUrl,
    user_id: UserId = "default",
    max_comments: Annotated[int | None, Field(
        ge=1, le=5000, description="Upper bound on comments fetched (capped by MAX_COMMENTS_PER_SOURCE)",
    )] = None,
) -> dict:
    """Fetch and analyse every comment of a YouTube video or Reddit post.

    Each comment is classified for sentiment, toxicity, topics, key phrases,
    and engagement. Previously seen comment text is answered from cache.
    The source rollup is recomputed once the batch finishes.

    Args:
        url: YouTube video URL/ID or Reddit post URL.
        user_id: Identity charged against the daily analysis quota.
        max_comments: Optional cap on how many comments to fetch.

    Returns:
        Batch report with analysed/cached/failed counts and the source id,
        or a tool error (QUOTA_EXCEEDED, URL_INVALID, SOURCE_NOT_FOUND, ...).
    """
    try:
        report = await get_services().pipeline.analyze_url(user_id, url, max_comments)
        return report.model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)


@comments_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def comments_analytics(
    source_id: SourceId,
    days: Annotated[int, Field(ge=1, le=365, description="Timeline window in days")] = 7,
) -> dict:
    """Return the stored rollup and day-by-day sentiment timeline for a source.

    Args:
        source_id: Id returned by comments_analyze.
        days: How many days back the timeline reaches.

    Returns:
        Dict with source metadata, aggregation, and timeline points.
    """
    try:
        svc = get_services()
        aggregation = _require_aggregation(source_id)
        source = svc.store.get_source(source_id)
        timeline = svc.aggregation.timeline(source_id, days=days)
        return {
            "source": source.model_dump(mode="json") if source else None,
            "aggregation": aggregation.model_dump(mode="json"),
            "timeline": [p.model_dump(mode="json") for p in timeline],
        }
    except Exception as exc:
        return make_tool_error(exc)


@comments_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
    )
)
async def comments_insights(source_id: SourceId) -> dict:
    """Turn a source's rollup into actionable advice for the creator.

    Args:
        source_id: Id returned by comments_analyze.

    Returns:
        Dict with the insight text and the rollup it was drawn from.
    """
    try:
        svc = get_services()
        aggregation = _require_aggregation(source_id)
        source = svc.store.get_source(source_id)
        title = source.title if source else ""
        try:
            text = await svc.provider.insights(aggregation, title)
        except Exception as exc:
            raise as_provider_error(exc) from exc
        return {
            "source_id": source_id,
            "title": title,
            "insights": text,
            "total_analyzed": aggregation.total_analyzed,
            "sentiment_counts": aggregation.sentiment_counts,
        }
    except Exception as exc:
        return make_tool_error(exc)
