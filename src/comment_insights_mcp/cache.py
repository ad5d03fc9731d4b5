"""Content-addressed analysis cache with TTL, backed by the SQLite store.

Keys are SHA-256 fingerprints of the exact comment text. No whitespace or
case normalisation is applied: two comments differing by one character are
separate cache subjects. Identical text posted on different videos shares one
cached verdict.

The cache is an optimisation only. Storage failures are logged and degrade
to "miss" on read and "no-op" on write so the pipeline keeps running.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from .models.analysis import AnalysisResult
from .store import InsightsStore

logger = logging.getLogger(__name__)

_STORE_ERRORS = (sqlite3.Error, OSError)


def content_hash(content: str) -> str:
    """Return the 64-char hex SHA-256 of *content*'s UTF-8 bytes."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisCache:
    """Fingerprint to AnalysisResult map with refresh-on-hit and lazy expiry.

    Args:
        store: Persistence backend holding the ``cache_entries`` table.
        ttl_hours: Lifetime granted on every write and every hit.
        enabled: When False, ``get`` always misses and ``put`` does nothing.
        clock: Returns the current aware datetime (patched in tests).
    """

    def __init__(
        self,
        store: InsightsStore,
        ttl_hours: int = 24,
        *,
        enabled: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self.ttl_hours = ttl_hours
        self.enabled = enabled
        self._clock = clock

    def _expiry(self, ttl_hours: int | None = None) -> datetime:
        hours = self.ttl_hours if ttl_hours is None else ttl_hours
        return self._clock() + timedelta(hours=hours)

    def get(self, content: str) -> AnalysisResult | None:
        """Return the cached verdict for *content*, or None on miss/expiry."""
        if not self.enabled:
            return None
        key = content_hash(content)
        try:
            entry = self._store.get_cache_entry(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                self._store.delete_cache_entry(key)
                logger.debug("Cache expired: %s", key[:8])
                return None
            try:
                result = AnalysisResult.model_validate_json(entry.payload)
            except ValidationError as exc:
                logger.warning("Cache payload undecodable for %s, dropping: %s", key[:8], exc)
                self._store.delete_cache_entry(key)
                return None
            self._store.touch_cache_entry(key, self._expiry())
        except _STORE_ERRORS as exc:
            logger.warning("Cache read error (CACHE_UNAVAILABLE): %s", exc)
            return None
        logger.info("Cache hit: %s", key[:8])
        return result

    def put(
        self,
        content: str,
        result: AnalysisResult,
        platform: str,
        ttl_hours: int | None = None,
    ) -> bool:
        """Upsert the verdict for *content*. Returns True when written."""
        if not self.enabled:
            return False
        key = content_hash(content)
        try:
            self._store.upsert_cache_entry(
                key, result.model_dump_json(), platform, self._expiry(ttl_hours),
            )
        except _STORE_ERRORS as exc:
            logger.warning("Cache write error (CACHE_UNAVAILABLE): %s", exc)
            return False
        logger.info("Cached analysis: %s", key[:8])
        return True

    def sweep(self) -> int:
        """Delete every entry already past its expiry. Returns count removed."""
        try:
            removed = self._store.delete_expired_cache_entries(self._clock())
        except _STORE_ERRORS as exc:
            logger.warning("Cache sweep error (CACHE_UNAVAILABLE): %s", exc)
            return 0
        logger.info("Cleared expired cache: %d entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    def clear(self) -> int:
        """Remove every cache entry regardless of expiry."""
        return self._store.clear_cache()

    def stats(self) -> dict:
        """Return cache statistics."""
        counts = self._store.cache_counts(self._clock())
        return {
            "enabled": self.enabled,
            "ttl_hours": self.ttl_hours,
            **counts,
        }
