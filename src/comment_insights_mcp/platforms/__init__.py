"""Comment sources: URL resolution plus the YouTube and Reddit fetchers."""

from __future__ import annotations

from .reddit import RedditClient
from .urls import extract_reddit_id, extract_youtube_id, resolve_source
from .youtube import YouTubeClient

__all__ = [
    "RedditClient",
    "YouTubeClient",
    "extract_reddit_id",
    "extract_youtube_id",
    "resolve_source",
]
