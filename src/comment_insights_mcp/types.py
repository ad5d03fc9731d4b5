"""Shared type aliases for tool parameters."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

ThinkingLevel = Literal["minimal", "low", "medium", "high"]
CacheAction = Literal["stats", "sweep", "clear"]
ModelPreset = Literal["quality", "budget"]

SourceUrl = Annotated[str, Field(
    min_length=1,
    description="YouTube video URL/ID or Reddit post URL (reddit.com/r/<sub>/comments/<id> or redd.it/<id>)",
)]
UserId = Annotated[str, Field(
    min_length=1,
    description="Caller identity charged against the daily analysis quota",
)]
SourceId = Annotated[int, Field(ge=1, description="Internal source id returned by comments_analyze")]
