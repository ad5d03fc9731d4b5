"""Tests for the SQLite persistence layer."""

from __future__ import annotations

from datetime import timedelta

import pytest

from comment_insights_mcp.aggregator import aggregate
from comment_insights_mcp.models.analysis import AnalysisResult
from comment_insights_mcp.store import InsightsStore
from tests.conftest import NOW, make_comment, make_meta, make_result


class TestSources:
    def test_upsert_source_is_idempotent(self, store):
        first = store.upsert_source(make_meta(title="v1"))
        second = store.upsert_source(make_meta(title="v2"))
        assert first == second
        assert store.get_source(first).title == "v2"

    def test_same_external_id_on_other_platform_is_separate(self, store):
        a = store.upsert_source(make_meta("youtube", "abcdefghijk"))
        b = store.upsert_source(make_meta("reddit", "abcdefghijk"))
        assert a != b

    def test_get_source_missing(self, store):
        assert store.get_source(999) is None


class TestComments:
    def test_upsert_comment_refreshes_counters(self, store):
        sid = store.upsert_source(make_meta())
        c = make_comment("c1", "hello")
        first = store.upsert_comment(sid, c)
        second = store.upsert_comment(sid, c.model_copy(update={"like_count": 40}))
        assert first == second
        row = store._conn.execute("SELECT like_count FROM comments WHERE id = ?", (first,)).fetchone()
        assert row[0] == 40


class TestAnalyses:
    def test_upsert_and_list_in_order(self, store):
        sid = store.upsert_source(make_meta())
        for i, sentiment in enumerate(("positive", "negative", "neutral")):
            cid = store.upsert_comment(sid, make_comment(f"c{i}", sentiment))
            store.upsert_analysis(
                source_id=sid, comment_id=cid, user_id="u1",
                result=make_result(sentiment, topics=["t"]), created_at=NOW,
            )
        rows = store.list_analyses(sid)
        assert [r.sentiment for r in rows] == ["positive", "negative", "neutral"]
        assert rows[0].topics == ["t"]
        assert rows[0].created_at == NOW

    def test_list_since_filters_old_rows(self, store):
        sid = store.upsert_source(make_meta())
        old = store.upsert_comment(sid, make_comment("c1", "hello"))
        new = store.upsert_comment(sid, make_comment("c2", "again"))
        store.upsert_analysis(source_id=sid, comment_id=old, user_id="u", result=make_result(),
                              created_at=NOW - timedelta(days=10))
        store.upsert_analysis(source_id=sid, comment_id=new, user_id="u", result=make_result(),
                              created_at=NOW)
        assert len(store.list_analyses(sid, since=NOW - timedelta(days=7))) == 1

    def test_reanalysis_replaces_row(self, store):
        sid = store.upsert_source(make_meta())
        cid = store.upsert_comment(sid, make_comment("c1", "hello"))
        first = store.upsert_analysis(
            source_id=sid, comment_id=cid, user_id="u", result=make_result("negative"),
            created_at=NOW - timedelta(days=1), cost_estimate=0.01,
        )
        second = store.upsert_analysis(
            source_id=sid, comment_id=cid, user_id="u", result=make_result("positive"),
            created_at=NOW, cached=True,
        )
        rows = store.list_analyses(sid)
        assert len(rows) == 1
        assert first.id == second.id == rows[0].id
        assert rows[0].sentiment == "positive"
        assert rows[0].cached is True
        assert rows[0].cost_estimate == 0.0
        assert rows[0].created_at == NOW

    def test_stored_analysis_carries_result_fields(self, store):
        sid = store.upsert_source(make_meta())
        cid = store.upsert_comment(sid, make_comment("c1", "hello"))
        result = make_result("mixed", key_phrases=["hi"])
        stored = store.upsert_analysis(
            source_id=sid, comment_id=cid, user_id="u", result=result,
            created_at=NOW, cost_estimate=0.01, cached=True,
        )
        assert stored.cached is True
        assert stored == store.list_analyses(sid)[0]
        assert AnalysisResult.model_validate(stored.model_dump(include=set(AnalysisResult.model_fields))) == result


class TestAggregations:
    def test_upsert_keeps_one_row_per_source(self, store):
        sid = store.upsert_source(make_meta())
        store.upsert_aggregation(aggregate([make_result("positive")], source_id=sid, now=NOW))
        store.upsert_aggregation(aggregate(
            [make_result("positive"), make_result("negative")], source_id=sid, now=NOW,
        ))
        count = store._conn.execute("SELECT COUNT(*) FROM aggregations").fetchone()[0]
        assert count == 1
        assert store.get_aggregation(sid).total_analyzed == 2

    def test_missing_aggregation(self, store):
        assert store.get_aggregation(1) is None


class TestUsage:
    def test_unknown_user_reads_zero(self, store):
        u = store.get_usage("nobody")
        assert u.analyses_this_day == 0
        assert u.total_cost_usd == 0.0

    def test_increment_accumulates(self, store):
        store.increment_usage("u1", analyses=3, comments_fetched=10, cost_usd=0.03)
        u = store.increment_usage("u1", analyses=2, comments_fetched=5, cost_usd=0.02)
        assert u.total_analyses == 5
        assert u.analyses_this_day == 5
        assert u.total_comments_fetched == 15
        assert u.total_cost_usd == pytest.approx(0.05)

    def test_negative_increment_rejected(self, store):
        with pytest.raises(ValueError, match="increment-only"):
            store.increment_usage("u1", analyses=-1)

    def test_reset_daily_keeps_totals(self, store):
        store.increment_usage("u1", analyses=4)
        store.increment_usage("u2", analyses=1)
        assert store.reset_daily_usage() == 2
        u = store.get_usage("u1")
        assert u.analyses_this_day == 0
        assert u.total_analyses == 4


class TestFileBacked:
    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "nested" / "insights.db")
        s = InsightsStore(path)
        s.increment_usage("u1", analyses=2)
        s.close()

        reopened = InsightsStore(path)
        assert reopened.get_usage("u1").analyses_this_day == 2
        reopened.close()
