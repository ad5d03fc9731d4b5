"""Tests for retry logic with exponential backoff."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from comment_insights_mcp.errors import ErrorKind, InsightsError
from comment_insights_mcp.retry import _is_retryable, with_retry


class TestIsRetryable:
    """Tests for _is_retryable classification."""

    @pytest.mark.parametrize("msg", [
        "429 Too Many Requests",
        "Quota exceeded for this project",
        "RESOURCE_EXHAUSTED: rate limit",
        "Request timeout after 30s",
        "503 Service Temporarily Unavailable",
    ])
    def test_transient_patterns(self, msg: str):
        assert _is_retryable(Exception(msg)) is True

    @pytest.mark.parametrize("msg", [
        "Invalid input: missing required field",
        "Authentication failed",
        "400 Bad Request",
        "Not found",
    ])
    def test_non_transient_patterns(self, msg: str):
        assert _is_retryable(Exception(msg)) is False

    def test_tagged_errors_use_their_kind(self):
        assert _is_retryable(InsightsError(ErrorKind.PROVIDER_TRANSIENT, "x")) is True
        assert _is_retryable(InsightsError(ErrorKind.PROVIDER_MALFORMED, "x")) is False
        assert _is_retryable(InsightsError(ErrorKind.QUOTA_EXCEEDED, "x")) is False


class TestWithRetry:
    """Tests for with_retry exponential backoff behavior."""

    @patch("comment_insights_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_success_first_attempt(self, mock_sleep):
        factory = AsyncMock(return_value="ok")

        assert await with_retry(factory) == "ok"
        factory.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @patch("comment_insights_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_retries_then_succeeds(self, mock_sleep):
        factory = AsyncMock(side_effect=[
            InsightsError(ErrorKind.PROVIDER_TRANSIENT, "503"),
            InsightsError(ErrorKind.PROVIDER_TRANSIENT, "503"),
            "ok",
        ])

        assert await with_retry(factory, max_attempts=3, base_delay=1.0) == "ok"
        assert factory.await_count == 3
        assert mock_sleep.await_count == 2

    @patch("comment_insights_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_gives_up_after_max_attempts(self, mock_sleep):
        factory = AsyncMock(side_effect=InsightsError(ErrorKind.PROVIDER_QUOTA, "quota"))

        with pytest.raises(InsightsError) as exc_info:
            await with_retry(factory, max_attempts=3)
        assert exc_info.value.kind == ErrorKind.PROVIDER_QUOTA
        assert factory.await_count == 3
        assert mock_sleep.await_count == 2

    @patch("comment_insights_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_non_retryable_raises_immediately(self, mock_sleep):
        factory = AsyncMock(side_effect=InsightsError(ErrorKind.PROVIDER_MALFORMED, "bad json"))

        with pytest.raises(InsightsError):
            await with_retry(factory, max_attempts=5)
        factory.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @patch("comment_insights_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_delay_capped_at_max(self, mock_sleep):
        factory = AsyncMock(side_effect=[TimeoutError("timed out")] * 4 + ["ok"])

        await with_retry(factory, max_attempts=5, base_delay=10.0, max_delay=15.0)
        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert all(d <= 15.0 for d in delays)
        assert delays[0] >= 10.0
