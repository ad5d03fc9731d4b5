"""Shared test fixtures for comment-insights-mcp."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from comment_insights_mcp.models.analysis import AnalysisResult
from comment_insights_mcp.models.comments import Comment, SourceMetadata

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Patch tool modules so FunctionTool objects become directly callable."""
    import importlib
    import pkgutil

    import comment_insights_mcp.tools as tools_pkg

    modules = [
        importlib.import_module(info.name)
        for info in pkgutil.walk_packages(tools_pkg.__path__, tools_pkg.__name__ + ".")
    ]
    for mod in modules:
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, obj.fn)


@pytest.fixture(autouse=True)
def _set_dummy_api_key(monkeypatch):
    """Ensure tests never hit real Gemini or YouTube APIs."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")
    monkeypatch.delenv("YOUTUBE_API_KEY", raising=False)


@pytest.fixture()
def clean_config():
    """Reset the config singleton between tests."""
    import comment_insights_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


class FakeClock:
    """Settable clock for cache expiry and timeline tests."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    """Ephemeral in-memory store."""
    from comment_insights_mcp.store import InsightsStore

    s = InsightsStore(":memory:")
    yield s
    s.close()


@pytest.fixture()
def services(clean_config, monkeypatch, store):
    """Install a mock-provider service bundle backed by the in-memory store."""
    from comment_insights_mcp.config import get_config
    from comment_insights_mcp.services import build_services, set_services

    monkeypatch.setenv("MOCK_AI_PROVIDER", "true")
    monkeypatch.setenv("ANALYSIS_BATCH_DELAY", "0")
    monkeypatch.setenv("ANALYSIS_CONCURRENCY", "1")
    monkeypatch.setenv("RETRY_BASE_DELAY", "0.01")
    svc = build_services(get_config(), store=store)
    set_services(svc)
    yield svc
    set_services(None)


def make_comment(
    comment_id: str,
    content: str,
    *,
    platform: str = "youtube",
    created_at: datetime = NOW,
    depth: int = 0,
) -> Comment:
    return Comment(
        id=comment_id,
        platform=platform,
        content=content,
        author_id=f"author-{comment_id}",
        author_name=f"Author {comment_id}",
        like_count=3,
        reply_count=0,
        depth=depth,
        created_at=created_at,
    )


def make_result(sentiment: str = "neutral", **overrides: Any) -> AnalysisResult:
    data = {
        "sentiment": sentiment,
        "sentiment_score": {"positive": 0.8, "negative": -0.8}.get(sentiment, 0.0),
        "toxicity": 0.1,
        "topics": [],
        "summary": "",
        "key_phrases": [],
        "engagement": "medium",
    }
    data.update(overrides)
    return AnalysisResult(**data)


def make_meta(platform: str = "youtube", external_id: str = "dQw4w9WgXcQ", title: str = "Test Video") -> SourceMetadata:
    return SourceMetadata(
        platform=platform,
        external_id=external_id,
        title=title,
        url=f"https://example.com/{external_id}",
    )
