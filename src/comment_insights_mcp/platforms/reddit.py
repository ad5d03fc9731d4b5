"""Reddit post and comment fetcher over the public JSON endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from ..errors import ErrorKind, InsightsError
from ..models.comments import Comment, SourceMetadata

logger = logging.getLogger(__name__)

REDDIT_BASE_URL = "https://www.reddit.com"


def _flatten(children: list[dict], out: list[Comment], limit: int, depth: int = 0) -> None:
    """Depth-first walk of a Reddit listing, skipping ``more`` stubs."""
    for child in children:
        if len(out) >= limit:
            return
        if child.get("kind") != "t1":
            continue
        data = child.get("data", {})
        replies = data.get("replies")
        reply_children = replies.get("data", {}).get("children", []) if isinstance(replies, dict) else []
        body = data.get("body", "")
        if body and body not in ("[deleted]", "[removed]"):
            out.append(Comment(
                id=data.get("id", ""),
                platform="reddit",
                content=body,
                author_id=data.get("author_fullname", "unknown"),
                author_name=data.get("author", "[deleted]"),
                like_count=max(0, int(data.get("ups", 0) or 0)),
                reply_count=sum(1 for c in reply_children if c.get("kind") == "t1"),
                depth=int(data.get("depth", depth) or 0),
                created_at=datetime.fromtimestamp(float(data.get("created_utc", 0)), tz=timezone.utc),
            ))
        _flatten(reply_children, out, limit, depth + 1)


class RedditClient:
    """Read-only Reddit access for one user agent.

    Args:
        user_agent: Sent on every request; Reddit throttles generic agents.
        http: Pre-built AsyncClient (tests inject one with a MockTransport).
    """

    def __init__(self, user_agent: str, http: httpx.AsyncClient | None = None) -> None:
        self._user_agent = user_agent
        self._http = http

    async def _listing(self, post_id: str, limit: int) -> list:
        url = f"{REDDIT_BASE_URL}/comments/{post_id}.json"
        params = {"limit": limit, "raw_json": 1}
        headers = {"User-Agent": self._user_agent}
        try:
            if self._http is not None:
                resp = await self._http.get(url, params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=10, follow_redirects=True) as client:
                    resp = await client.get(url, params=params, headers=headers)
            if resp.status_code == 404:
                raise InsightsError(ErrorKind.SOURCE_NOT_FOUND, f"Reddit post not found: {post_id}")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise InsightsError(
                ErrorKind.PLATFORM_API, f"Reddit API error: {exc}", {"post_id": post_id},
            ) from exc
        payload = resp.json()
        if not isinstance(payload, list) or len(payload) < 2:
            raise InsightsError(ErrorKind.PLATFORM_API, f"Unexpected Reddit response for {post_id}")
        return payload

    async def post_with_comments(
        self, post_id: str, max_comments: int = 500,
    ) -> tuple[SourceMetadata, list[Comment]]:
        """Fetch a post's metadata and its flattened comment tree in one request."""
        listing = await self._listing(post_id, max_comments)
        posts = listing[0].get("data", {}).get("children", [])
        if not posts:
            raise InsightsError(ErrorKind.SOURCE_NOT_FOUND, f"Reddit post not found: {post_id}")
        post = posts[0].get("data", {})
        meta = SourceMetadata(
            platform="reddit",
            external_id=post_id,
            title=post.get("title", ""),
            url=f"{REDDIT_BASE_URL}{post.get('permalink', '')}",
            views=0,
            likes=int(post.get("ups", 0) or 0),
            comment_count=int(post.get("num_comments", 0) or 0),
            author_name=post.get("author", "[deleted]"),
            author_id=post.get("author_fullname", "unknown"),
            subreddit=post.get("subreddit_name_prefixed", ""),
        )
        comments: list[Comment] = []
        _flatten(listing[1].get("data", {}).get("children", []), comments, max_comments)
        logger.info("Fetched %d Reddit comments for %s", len(comments), post_id)
        return meta, comments

