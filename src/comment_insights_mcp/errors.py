"""Structured error handling: error kinds, status mapping, and tool error model."""

from __future__ import annotations

import json
import sqlite3
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError


class ErrorKind(str, Enum):
    """Kinds of failure the pipeline distinguishes."""

    PROVIDER_TRANSIENT = "PROVIDER_TRANSIENT"
    PROVIDER_MALFORMED = "PROVIDER_MALFORMED"
    PROVIDER_QUOTA = "PROVIDER_QUOTA"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    URL_INVALID = "URL_INVALID"
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    PLATFORM_API = "PLATFORM_API"
    NOT_FOUND = "NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    UNKNOWN = "UNKNOWN"


PROVIDER_KINDS = frozenset({
    ErrorKind.PROVIDER_TRANSIENT,
    ErrorKind.PROVIDER_MALFORMED,
    ErrorKind.PROVIDER_QUOTA,
})

_RETRYABLE_KINDS = frozenset({
    ErrorKind.PROVIDER_TRANSIENT,
    ErrorKind.PROVIDER_QUOTA,
    ErrorKind.PLATFORM_API,
})

_CLIENT_SIDE_KINDS = frozenset({
    ErrorKind.URL_INVALID,
    ErrorKind.SOURCE_NOT_FOUND,
    ErrorKind.NOT_FOUND,
    ErrorKind.CONFIG_INVALID,
})

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.PROVIDER_TRANSIENT: 503,
    ErrorKind.PROVIDER_MALFORMED: 502,
    ErrorKind.PROVIDER_QUOTA: 429,
    ErrorKind.CACHE_UNAVAILABLE: 503,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.URL_INVALID: 400,
    ErrorKind.SOURCE_NOT_FOUND: 404,
    ErrorKind.PLATFORM_API: 502,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFIG_INVALID: 500,
    ErrorKind.UNKNOWN: 500,
}

_HINTS: dict[ErrorKind, str] = {
    ErrorKind.PROVIDER_TRANSIENT: "LLM provider timed out or is rate limiting; retry with backoff",
    ErrorKind.PROVIDER_MALFORMED: "LLM response did not match the analysis schema; comment skipped",
    ErrorKind.PROVIDER_QUOTA: "LLM provider quota exhausted; wait, or switch models with infra_configure(preset='budget')",
    ErrorKind.CACHE_UNAVAILABLE: "Analysis cache unavailable; continuing without cache",
    ErrorKind.STORE_UNAVAILABLE: "Analysis store write failed; re-run comments_analyze to fill in the missing comments",
    ErrorKind.QUOTA_EXCEEDED: "Daily analysis limit reached; try again after the daily reset",
    ErrorKind.URL_INVALID: "Expected a YouTube video URL/ID or a reddit.com/r/<sub>/comments/<id> URL",
    ErrorKind.SOURCE_NOT_FOUND: "Video or post not found; deleted, private, or wrong ID",
    ErrorKind.PLATFORM_API: "YouTube/Reddit API request failed; check API key and network",
    ErrorKind.NOT_FOUND: "No stored record; run comments_analyze first",
    ErrorKind.CONFIG_INVALID: "Server configuration is incomplete; check environment variables",
    ErrorKind.UNKNOWN: "Unexpected error",
}


class InsightsError(Exception):
    """Tagged error: one type, discriminated by ``kind``.

    Args:
        kind: What failed.
        message: Human-readable description.
        details: Optional structured fields (comment id, upstream status, ...).
    """

    def __init__(self, kind: ErrorKind, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS

    @property
    def retry_after_seconds(self) -> int | None:
        if self.kind in (ErrorKind.PROVIDER_QUOTA, ErrorKind.QUOTA_EXCEEDED):
            return 60
        return None

    @property
    def is_provider_error(self) -> bool:
        return self.kind in PROVIDER_KINDS

    def __repr__(self) -> str:
        return f"InsightsError({self.kind.value}, {self.message!r})"


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    status: int = 500
    retryable: bool = False
    retry_after_seconds: int | None = None
    details: dict[str, Any] | None = None


def status_for(kind: ErrorKind) -> int:
    """Map an error kind to its transport-level (HTTP-style) status code."""
    return _STATUS_BY_KIND[kind]


def categorize_error(error: Exception) -> ErrorKind:
    """Map an arbitrary exception to an ErrorKind."""
    if isinstance(error, InsightsError):
        return error.kind
    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return ErrorKind.PROVIDER_TRANSIENT
    if isinstance(error, (ValidationError, json.JSONDecodeError)):
        return ErrorKind.PROVIDER_MALFORMED
    if isinstance(error, sqlite3.Error):
        return ErrorKind.STORE_UNAVAILABLE
    if isinstance(error, httpx.HTTPError):
        return ErrorKind.PLATFORM_API

    s = str(error).lower()
    if "quota" in s or "resource_exhausted" in s:
        return ErrorKind.PROVIDER_QUOTA
    if "429" in s or "rate limit" in s:
        return ErrorKind.PROVIDER_TRANSIENT
    if "timeout" in s or "timed out" in s or "503" in s or "service unavailable" in s:
        return ErrorKind.PROVIDER_TRANSIENT
    if "404" in s or "not found" in s:
        return ErrorKind.SOURCE_NOT_FOUND
    if "api key" in s:
        return ErrorKind.CONFIG_INVALID
    return ErrorKind.UNKNOWN


def as_provider_error(error: Exception) -> InsightsError:
    """Coerce an exception raised during a provider call into a provider-kind InsightsError.

    Non-provider kinds are remapped: client-side failures (bad model name,
    missing key) become PROVIDER_MALFORMED and are not retried, everything
    else becomes PROVIDER_TRANSIENT. The categorised kind is kept in
    ``details["original_kind"]``.
    """
    kind = categorize_error(error)
    if kind in PROVIDER_KINDS:
        if isinstance(error, InsightsError):
            return error
        return InsightsError(kind, str(error) or type(error).__name__)
    mapped = ErrorKind.PROVIDER_MALFORMED if kind in _CLIENT_SIDE_KINDS else ErrorKind.PROVIDER_TRANSIENT
    details = dict(error.details) if isinstance(error, InsightsError) else {}
    details["original_kind"] = kind.value
    message = error.message if isinstance(error, InsightsError) else str(error) or type(error).__name__
    return InsightsError(mapped, message, details)


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    kind = categorize_error(error)
    err = error if isinstance(error, InsightsError) else InsightsError(kind, str(error))
    hint = _HINTS[kind] if kind != ErrorKind.UNKNOWN else str(error)
    return ToolError(
        error=str(error),
        category=kind.value,
        hint=hint,
        status=status_for(kind),
        retryable=err.retryable,
        retry_after_seconds=err.retry_after_seconds,
        details=err.details or None,
    ).model_dump(mode="json")
