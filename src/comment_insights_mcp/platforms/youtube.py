"""YouTube Data API v3 client: video metadata and comment threads.

Thin async-compatible wrapper using google-api-python-client (sync)
wrapped in asyncio.to_thread().
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from ..errors import ErrorKind, InsightsError
from ..models.comments import Comment, SourceMetadata

logger = logging.getLogger(__name__)

_PAGE_SIZE = 100


def _parse_published(value: str) -> datetime:
    """Parse YouTube's RFC 3339 ``publishedAt`` into an aware UTC datetime."""
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


def _parse_comment(item: dict, depth: int = 0) -> Comment:
    """Build a Comment from a ``comment`` resource (top-level or reply)."""
    snip = item.get("snippet", {})
    return Comment(
        id=item.get("id", ""),
        platform="youtube",
        content=snip.get("textDisplay", ""),
        author_id=(snip.get("authorChannelId") or {}).get("value", "unknown"),
        author_name=snip.get("authorDisplayName", ""),
        like_count=int(snip.get("likeCount", 0) or 0),
        reply_count=0,
        depth=depth,
        created_at=_parse_published(snip.get("publishedAt", "")),
    )


def _api_error(exc: Exception, video_id: str) -> InsightsError:
    """Translate a googleapiclient HttpError into an InsightsError."""
    status = getattr(getattr(exc, "resp", None), "status", None)
    if status == 404:
        return InsightsError(ErrorKind.SOURCE_NOT_FOUND, f"Video not found: {video_id}")
    if status == 403 and "commentsdisabled" in str(exc).lower().replace(" ", ""):
        return InsightsError(
            ErrorKind.PLATFORM_API,
            f"Comments are disabled for video {video_id}",
            {"status": 403},
        )
    return InsightsError(ErrorKind.PLATFORM_API, f"YouTube API error: {exc}", {"status": status})


class YouTubeClient:
    """YouTube Data API v3 access for one API key.

    Args:
        api_key: Key with YouTube Data API v3 enabled.
        service: Pre-built discovery service (tests inject a mock).
    """

    def __init__(self, api_key: str = "", service=None) -> None:
        self._api_key = api_key
        self._service = service

    def _get(self):
        """Get or create the YouTube API service."""
        if self._service is None:
            if not self._api_key:
                raise InsightsError(ErrorKind.CONFIG_INVALID, "YOUTUBE_API_KEY not configured")
            from googleapiclient.discovery import build

            self._service = build(
                "youtube", "v3", developerKey=self._api_key, cache_discovery=False,
            )
        return self._service

    async def video_metadata(self, video_id: str) -> SourceMetadata:
        """Fetch title, counts, and channel for *video_id*.

        Raises:
            InsightsError: SOURCE_NOT_FOUND when the API returns no items.
        """
        from googleapiclient.errors import HttpError

        def _fetch():
            return self._get().videos().list(
                part="snippet,statistics",
                id=video_id,
            ).execute()

        try:
            resp = await asyncio.to_thread(_fetch)
        except HttpError as exc:
            raise _api_error(exc, video_id) from exc

        items = resp.get("items", [])
        if not items:
            logger.warning("YouTube video not found: %s", video_id)
            raise InsightsError(ErrorKind.SOURCE_NOT_FOUND, f"Video not found: {video_id}")

        snippet = items[0].get("snippet", {})
        stats = items[0].get("statistics", {})
        return SourceMetadata(
            platform="youtube",
            external_id=video_id,
            title=snippet.get("title", ""),
            url=f"https://www.youtube.com/watch?v={video_id}",
            views=int(stats.get("viewCount", 0)),
            likes=int(stats.get("likeCount", 0)),
            comment_count=int(stats.get("commentCount", 0)),
            author_name=snippet.get("channelTitle", ""),
            author_id=snippet.get("channelId", ""),
        )

    async def video_comments(self, video_id: str, max_comments: int = 500) -> list[Comment]:
        """Fetch top-level comments and their inline replies, newest threads first.

        Args:
            video_id: YouTube video ID.
            max_comments: Stop once this many comments (threads + replies) are collected.

        Returns:
            Comments in API order, replies directly after their parent.
        """
        from googleapiclient.errors import HttpError

        def _fetch() -> list[Comment]:
            svc = self._get()
            comments: list[Comment] = []
            request = svc.commentThreads().list(
                part="snippet,replies",
                videoId=video_id,
                textFormat="plainText",
                maxResults=min(_PAGE_SIZE, max_comments),
            )
            while request is not None and len(comments) < max_comments:
                response = request.execute()
                for thread in response.get("items", []):
                    snip = thread.get("snippet", {})
                    top = _parse_comment(snip.get("topLevelComment", {}))
                    comments.append(top.model_copy(update={"reply_count": int(snip.get("totalReplyCount", 0))}))
                    for reply in (thread.get("replies") or {}).get("comments", []):
                        comments.append(_parse_comment(reply, depth=1))
                request = svc.commentThreads().list_next(request, response)
            return comments[:max_comments]

        try:
            comments = await asyncio.to_thread(_fetch)
        except HttpError as exc:
            raise _api_error(exc, video_id) from exc
        logger.info("Fetched %d YouTube comments for %s", len(comments), video_id)
        return comments
