"""Tests for error categorisation and tool error payloads."""

from __future__ import annotations

import json
import sqlite3

import httpx
import pytest
from pydantic import ValidationError

from comment_insights_mcp.errors import (
    ErrorKind,
    InsightsError,
    as_provider_error,
    categorize_error,
    make_tool_error,
    status_for,
)
from comment_insights_mcp.models.analysis import AnalysisResult


def _validation_error() -> ValidationError:
    try:
        AnalysisResult(sentiment="ecstatic", sentiment_score=0, toxicity=0, engagement="low")
    except ValidationError as exc:
        return exc
    raise AssertionError("expected ValidationError")


class TestCategorizeError:
    def test_tagged_error_keeps_kind(self):
        assert categorize_error(InsightsError(ErrorKind.URL_INVALID, "x")) == ErrorKind.URL_INVALID

    def test_timeout(self):
        assert categorize_error(TimeoutError()) == ErrorKind.PROVIDER_TRANSIENT
        assert categorize_error(httpx.ReadTimeout("slow")) == ErrorKind.PROVIDER_TRANSIENT

    def test_malformed_json_and_schema(self):
        assert categorize_error(json.JSONDecodeError("Expecting value", "", 0)) == ErrorKind.PROVIDER_MALFORMED
        assert categorize_error(_validation_error()) == ErrorKind.PROVIDER_MALFORMED

    def test_sqlite_error(self):
        assert categorize_error(sqlite3.OperationalError("locked")) == ErrorKind.STORE_UNAVAILABLE

    def test_http_error(self):
        assert categorize_error(httpx.ConnectError("refused")) == ErrorKind.PLATFORM_API

    @pytest.mark.parametrize("msg,kind", [
        ("429 RESOURCE_EXHAUSTED: quota exceeded", ErrorKind.PROVIDER_QUOTA),
        ("rate limit hit", ErrorKind.PROVIDER_TRANSIENT),
        ("503 Service Unavailable", ErrorKind.PROVIDER_TRANSIENT),
        ("404 model not found", ErrorKind.SOURCE_NOT_FOUND),
        ("API key not valid", ErrorKind.CONFIG_INVALID),
        ("something odd", ErrorKind.UNKNOWN),
    ])
    def test_message_patterns(self, msg, kind):
        assert categorize_error(Exception(msg)) == kind


class TestAsProviderError:
    def test_platform_errors_become_transient(self):
        err = as_provider_error(httpx.ConnectError("refused"))
        assert err.kind == ErrorKind.PROVIDER_TRANSIENT
        assert err.is_provider_error

    def test_existing_tagged_error_passes_through(self):
        original = InsightsError(ErrorKind.PROVIDER_QUOTA, "quota")
        assert as_provider_error(original) is original

    def test_model_not_found_is_a_provider_error(self):
        err = as_provider_error(Exception("404 NOT_FOUND. models/gemini-x is not found"))
        assert err.is_provider_error
        assert err.kind == ErrorKind.PROVIDER_MALFORMED
        assert not err.retryable
        assert err.details == {"original_kind": "SOURCE_NOT_FOUND"}

    def test_unknown_errors_become_transient(self):
        err = as_provider_error(RuntimeError("socket closed"))
        assert err.kind == ErrorKind.PROVIDER_TRANSIENT
        assert err.details["original_kind"] == "UNKNOWN"

    def test_tagged_non_provider_error_is_remapped(self):
        original = InsightsError(ErrorKind.CONFIG_INVALID, "GEMINI_API_KEY not set", {"field": "key"})
        err = as_provider_error(original)
        assert err.kind == ErrorKind.PROVIDER_MALFORMED
        assert err.message == "GEMINI_API_KEY not set"
        assert err.details == {"field": "key", "original_kind": "CONFIG_INVALID"}

    def test_empty_message_uses_type_name(self):
        assert as_provider_error(TimeoutError()).message == "TimeoutError"


class TestStatusMapping:
    @pytest.mark.parametrize("kind,status", [
        (ErrorKind.PROVIDER_TRANSIENT, 503),
        (ErrorKind.PROVIDER_MALFORMED, 502),
        (ErrorKind.PROVIDER_QUOTA, 429),
        (ErrorKind.QUOTA_EXCEEDED, 429),
        (ErrorKind.URL_INVALID, 400),
        (ErrorKind.NOT_FOUND, 404),
    ])
    def test_status_for(self, kind, status):
        assert status_for(kind) == status

    def test_every_kind_has_a_status(self):
        for kind in ErrorKind:
            assert status_for(kind) >= 400


class TestMakeToolError:
    def test_quota_exceeded_payload(self):
        err = InsightsError(ErrorKind.QUOTA_EXCEEDED, "Daily analysis limit reached", {"user_id": "u1"})
        out = make_tool_error(err)
        assert out["category"] == "QUOTA_EXCEEDED"
        assert out["status"] == 429
        assert out["retryable"] is False
        assert out["retry_after_seconds"] == 60
        assert out["details"] == {"user_id": "u1"}
        assert "daily" in out["hint"].lower()

    def test_unknown_error_uses_message_as_hint(self):
        out = make_tool_error(RuntimeError("boom"))
        assert out["category"] == "UNKNOWN"
        assert out["hint"] == "boom"
        assert out["details"] is None

    def test_transient_is_retryable(self):
        out = make_tool_error(TimeoutError("deadline"))
        assert out["retryable"] is True
        assert out["status"] == 503
