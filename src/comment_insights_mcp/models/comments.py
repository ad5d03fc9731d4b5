"""Comment and source models: records produced by the platform fetchers.

Populated from YouTube Data API v3 and Reddit JSON responses (not Gemini),
so they are never used with structured output.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Platform = Literal["youtube", "reddit"]


class Comment(BaseModel):
    """A single fetched comment. Identity is ``(platform, id)``."""

    model_config = ConfigDict(frozen=True)

    id: str
    platform: Platform
    content: str
    author_id: str = "unknown"
    author_name: str = ""
    like_count: int = Field(default=0, ge=0)
    reply_count: int = Field(default=0, ge=0)
    depth: int = Field(default=0, ge=0, description="Nesting level; 0 for top-level comments")
    created_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.platform, self.id)


class SourceMetadata(BaseModel):
    """A YouTube video or Reddit post whose comments are analysed."""

    platform: Platform
    external_id: str
    title: str = ""
    url: str = ""
    views: int = 0
    likes: int = 0
    comment_count: int = 0
    author_name: str = ""
    author_id: str = ""
    subreddit: str = ""


class StoredSource(SourceMetadata):
    """A source row as persisted, carrying its internal record id."""

    id: int
