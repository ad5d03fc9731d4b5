"""SQLite-backed persistence for cache entries, analyses, rollups, and usage."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .models.analysis import AnalysisAggregation, AnalysisResult, CacheEntry, StoredAnalysis
from .models.comments import Comment, SourceMetadata, StoredSource
from .models.usage import UsageCounter

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    content_hash TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    platform TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries (expires_at);

CREATE TABLE IF NOT EXISTS sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    platform TEXT NOT NULL,
    external_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL DEFAULT '',
    views INTEGER NOT NULL DEFAULT 0,
    likes INTEGER NOT NULL DEFAULT 0,
    comment_count INTEGER NOT NULL DEFAULT 0,
    author_name TEXT NOT NULL DEFAULT '',
    author_id TEXT NOT NULL DEFAULT '',
    subreddit TEXT NOT NULL DEFAULT '',
    UNIQUE (platform, external_id)
);

CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL REFERENCES sources (id),
    platform TEXT NOT NULL,
    external_id TEXT NOT NULL,
    author_id TEXT NOT NULL DEFAULT 'unknown',
    author_name TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL,
    like_count INTEGER NOT NULL DEFAULT 0,
    reply_count INTEGER NOT NULL DEFAULT 0,
    depth INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE (platform, external_id)
);

CREATE TABLE IF NOT EXISTS analyses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL REFERENCES sources (id),
    comment_id INTEGER NOT NULL REFERENCES comments (id),
    user_id TEXT NOT NULL,
    sentiment TEXT NOT NULL,
    sentiment_score REAL NOT NULL,
    toxicity REAL NOT NULL,
    topics TEXT NOT NULL DEFAULT '[]',
    summary TEXT NOT NULL DEFAULT '',
    key_phrases TEXT NOT NULL DEFAULT '[]',
    engagement TEXT NOT NULL,
    cost_estimate REAL NOT NULL DEFAULT 0,
    processing_ms INTEGER NOT NULL DEFAULT 0,
    cached INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE (comment_id)
);
CREATE INDEX IF NOT EXISTS idx_analyses_source ON analyses (source_id, created_at);

CREATE TABLE IF NOT EXISTS aggregations (
    source_id INTEGER PRIMARY KEY REFERENCES sources (id),
    data TEXT NOT NULL,
    last_updated TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS usage (
    user_id TEXT PRIMARY KEY,
    total_analyses INTEGER NOT NULL DEFAULT 0,
    analyses_this_day INTEGER NOT NULL DEFAULT 0,
    total_comments_fetched INTEGER NOT NULL DEFAULT 0,
    total_cost_usd REAL NOT NULL DEFAULT 0
);
"""

_ANALYSIS_COLUMNS = (
    "id, source_id, comment_id, user_id, sentiment, sentiment_score, toxicity, "
    "topics, summary, key_phrases, engagement, cost_estimate, processing_ms, "
    "cached, created_at"
)


def _ts(value: datetime) -> str:
    """Serialise a datetime as a UTC ISO string (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # Fixed width keeps lexicographic order == chronological order in SQL.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class InsightsStore:
    """Synchronous SQLite persistence for the analysis pipeline.

    Uses WAL mode for concurrent reads and fast writes. Pass ``":memory:"``
    for an ephemeral store (tests, mock runs). Every write commits
    immediately, so each upsert is a single atomic statement.
    """

    def __init__(self, db_path: str) -> None:
        if db_path == ":memory:":
            self._conn = sqlite3.connect(":memory:")
        else:
            path = Path(db_path).expanduser().resolve()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)

    # ── Cache entries ───────────────────────────────────────────────────────

    def get_cache_entry(self, content_hash: str) -> CacheEntry | None:
        row = self._conn.execute(
            "SELECT content_hash, payload, platform, expires_at "
            "FROM cache_entries WHERE content_hash = ?",
            (content_hash,),
        ).fetchone()
        if row is None:
            return None
        return CacheEntry(
            content_hash=row[0],
            payload=row[1],
            platform=row[2],
            expires_at=_parse_ts(row[3]),
        )

    def upsert_cache_entry(
        self, content_hash: str, payload: str, platform: str, expires_at: datetime,
    ) -> None:
        self._conn.execute(
            """INSERT INTO cache_entries (content_hash, payload, platform, expires_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT (content_hash) DO UPDATE SET
                   payload = excluded.payload,
                   platform = excluded.platform,
                   expires_at = excluded.expires_at""",
            (content_hash, payload, platform, _ts(expires_at)),
        )
        self._conn.commit()

    def touch_cache_entry(self, content_hash: str, expires_at: datetime) -> None:
        """Move an entry's expiry without rewriting its payload."""
        self._conn.execute(
            "UPDATE cache_entries SET expires_at = ? WHERE content_hash = ?",
            (_ts(expires_at), content_hash),
        )
        self._conn.commit()

    def delete_cache_entry(self, content_hash: str) -> bool:
        """Delete one entry. Returns True if a row was removed."""
        cursor = self._conn.execute(
            "DELETE FROM cache_entries WHERE content_hash = ?",
            (content_hash,),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def delete_expired_cache_entries(self, now: datetime) -> int:
        cursor = self._conn.execute(
            "DELETE FROM cache_entries WHERE expires_at < ?",
            (_ts(now),),
        )
        self._conn.commit()
        return cursor.rowcount

    def clear_cache(self) -> int:
        cursor = self._conn.execute("DELETE FROM cache_entries")
        self._conn.commit()
        return cursor.rowcount

    def cache_counts(self, now: datetime) -> dict:
        """Return total/expired entry counts and a per-platform breakdown."""
        total, expired = self._conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(CASE WHEN expires_at < ? THEN 1 ELSE 0 END), 0) "
            "FROM cache_entries",
            (_ts(now),),
        ).fetchone()
        by_platform = dict(self._conn.execute(
            "SELECT platform, COUNT(*) FROM cache_entries GROUP BY platform"
        ).fetchall())
        return {"total_entries": total, "expired_entries": expired, "by_platform": by_platform}

    # ── Sources and comments ────────────────────────────────────────────────

    def upsert_source(self, meta: SourceMetadata) -> int:
        """Insert or refresh a video/post. Returns its internal record id."""
        self._conn.execute(
            """INSERT INTO sources
               (platform, external_id, title, url, views, likes, comment_count,
                author_name, author_id, subreddit)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (platform, external_id) DO UPDATE SET
                   title = excluded.title,
                   views = excluded.views,
                   likes = excluded.likes,
                   comment_count = excluded.comment_count""",
            (
                meta.platform,
                meta.external_id,
                meta.title,
                meta.url,
                meta.views,
                meta.likes,
                meta.comment_count,
                meta.author_name,
                meta.author_id,
                meta.subreddit,
            ),
        )
        self._conn.commit()
        row = self._conn.execute(
            "SELECT id FROM sources WHERE platform = ? AND external_id = ?",
            (meta.platform, meta.external_id),
        ).fetchone()
        return row[0]

    def get_source(self, source_id: int) -> StoredSource | None:
        row = self._conn.execute(
            "SELECT id, platform, external_id, title, url, views, likes, comment_count, "
            "author_name, author_id, subreddit FROM sources WHERE id = ?",
            (source_id,),
        ).fetchone()
        if row is None:
            return None
        return StoredSource(
            id=row[0],
            platform=row[1],
            external_id=row[2],
            title=row[3],
            url=row[4],
            views=row[5],
            likes=row[6],
            comment_count=row[7],
            author_name=row[8],
            author_id=row[9],
            subreddit=row[10],
        )

    def upsert_comment(self, source_id: int, comment: Comment) -> int:
        """Insert a comment or refresh its counters. Returns the internal id."""
        self._conn.execute(
            """INSERT INTO comments
               (source_id, platform, external_id, author_id, author_name, content,
                like_count, reply_count, depth, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (platform, external_id) DO UPDATE SET
                   like_count = excluded.like_count,
                   reply_count = excluded.reply_count""",
            (
                source_id,
                comment.platform,
                comment.id,
                comment.author_id,
                comment.author_name,
                comment.content,
                comment.like_count,
                comment.reply_count,
                comment.depth,
                _ts(comment.created_at),
            ),
        )
        self._conn.commit()
        row = self._conn.execute(
            "SELECT id FROM comments WHERE platform = ? AND external_id = ?",
            (comment.platform, comment.id),
        ).fetchone()
        return row[0]

    # ── Analyses ────────────────────────────────────────────────────────────

    def upsert_analysis(
        self,
        *,
        source_id: int,
        comment_id: int,
        user_id: str,
        result: AnalysisResult,
        created_at: datetime,
        cost_estimate: float = 0.0,
        processing_ms: int = 0,
        cached: bool = False,
    ) -> StoredAnalysis:
        """Store the analysis of one comment, replacing any earlier one."""
        self._conn.execute(
            """INSERT INTO analyses
               (source_id, comment_id, user_id, sentiment, sentiment_score, toxicity,
                topics, summary, key_phrases, engagement, cost_estimate,
                processing_ms, cached, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (comment_id) DO UPDATE SET
                   source_id = excluded.source_id,
                   user_id = excluded.user_id,
                   sentiment = excluded.sentiment,
                   sentiment_score = excluded.sentiment_score,
                   toxicity = excluded.toxicity,
                   topics = excluded.topics,
                   summary = excluded.summary,
                   key_phrases = excluded.key_phrases,
                   engagement = excluded.engagement,
                   cost_estimate = excluded.cost_estimate,
                   processing_ms = excluded.processing_ms,
                   cached = excluded.cached,
                   created_at = excluded.created_at""",
            (
                source_id,
                comment_id,
                user_id,
                result.sentiment,
                result.sentiment_score,
                result.toxicity,
                json.dumps(result.topics),
                result.summary,
                json.dumps(result.key_phrases),
                result.engagement,
                cost_estimate,
                processing_ms,
                int(cached),
                _ts(created_at),
            ),
        )
        self._conn.commit()
        row = self._conn.execute(
            "SELECT id FROM analyses WHERE comment_id = ?",
            (comment_id,),
        ).fetchone()
        return StoredAnalysis(
            id=row[0],
            source_id=source_id,
            comment_id=comment_id,
            user_id=user_id,
            created_at=_parse_ts(_ts(created_at)),
            cost_estimate=cost_estimate,
            processing_ms=processing_ms,
            cached=cached,
            **result.model_dump(),
        )

    def list_analyses(self, source_id: int, since: datetime | None = None) -> list[StoredAnalysis]:
        """Return every analysis for a source in insertion order."""
        sql = f"SELECT {_ANALYSIS_COLUMNS} FROM analyses WHERE source_id = ?"
        params: tuple = (source_id,)
        if since is not None:
            sql += " AND created_at >= ?"
            params = (source_id, _ts(since))
        rows = self._conn.execute(sql + " ORDER BY id", params).fetchall()
        return [_row_to_analysis(r) for r in rows]

    # ── Aggregations ────────────────────────────────────────────────────────

    def upsert_aggregation(self, aggregation: AnalysisAggregation) -> None:
        """Full replace of the rollup for ``aggregation.source_id``."""
        self._conn.execute(
            """INSERT INTO aggregations (source_id, data, last_updated)
               VALUES (?, ?, ?)
               ON CONFLICT (source_id) DO UPDATE SET
                   data = excluded.data,
                   last_updated = excluded.last_updated""",
            (
                aggregation.source_id,
                aggregation.model_dump_json(),
                _ts(aggregation.last_updated),
            ),
        )
        self._conn.commit()

    def get_aggregation(self, source_id: int) -> AnalysisAggregation | None:
        row = self._conn.execute(
            "SELECT data FROM aggregations WHERE source_id = ?",
            (source_id,),
        ).fetchone()
        if row is None:
            return None
        return AnalysisAggregation.model_validate_json(row[0])

    # ── Usage ───────────────────────────────────────────────────────────────

    def get_usage(self, user_id: str) -> UsageCounter:
        """Return a user's counters; unknown users read as all-zero."""
        row = self._conn.execute(
            "SELECT total_analyses, analyses_this_day, total_comments_fetched, total_cost_usd "
            "FROM usage WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return UsageCounter(user_id=user_id)
        return UsageCounter(
            user_id=user_id,
            total_analyses=row[0],
            analyses_this_day=row[1],
            total_comments_fetched=row[2],
            total_cost_usd=row[3],
        )

    def increment_usage(
        self,
        user_id: str,
        *,
        analyses: int = 0,
        comments_fetched: int = 0,
        cost_usd: float = 0.0,
    ) -> UsageCounter:
        """Add deltas to a user's counters in a single upsert."""
        if analyses < 0 or comments_fetched < 0 or cost_usd < 0:
            raise ValueError("Usage counters are increment-only")
        self._conn.execute(
            """INSERT INTO usage
               (user_id, total_analyses, analyses_this_day, total_comments_fetched, total_cost_usd)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT (user_id) DO UPDATE SET
                   total_analyses = total_analyses + excluded.total_analyses,
                   analyses_this_day = analyses_this_day + excluded.analyses_this_day,
                   total_comments_fetched = total_comments_fetched + excluded.total_comments_fetched,
                   total_cost_usd = total_cost_usd + excluded.total_cost_usd""",
            (user_id, analyses, analyses, comments_fetched, cost_usd),
        )
        self._conn.commit()
        return self.get_usage(user_id)

    def reset_daily_usage(self) -> int:
        """Zero every user's daily counter (run by the external day-rollover job)."""
        cursor = self._conn.execute(
            "UPDATE usage SET analyses_this_day = 0 WHERE analyses_this_day != 0"
        )
        self._conn.commit()
        logger.info("Reset daily usage for %d user(s)", cursor.rowcount)
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def _row_to_analysis(row: tuple) -> StoredAnalysis:
    return StoredAnalysis(
        id=row[0],
        source_id=row[1],
        comment_id=row[2],
        user_id=row[3],
        sentiment=row[4],
        sentiment_score=row[5],
        toxicity=row[6],
        topics=json.loads(row[7]),
        summary=row[8],
        key_phrases=json.loads(row[9]),
        engagement=row[10],
        cost_estimate=row[11],
        processing_ms=row[12],
        cached=bool(row[13]),
        created_at=_parse_ts(row[14]),
    )
