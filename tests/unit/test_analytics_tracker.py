"""Tests unitaires pour services/rag/analytics_tracker.py"""
import json

import pytest

from api.exceptions import ValidationException
from services.rag.analytics_tracker import AnalyticsTracker, categorize_error

NOW = 1_700_000_000.0  # 2023-11-14 22:13:20 UTC


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(tmp_path, clock):
    return AnalyticsTracker(tmp_path / "analytics" / "queries.jsonl", clock=clock)


def record(query, apis, success=True, cache_hit=False, ms=100.0, confidence=0.8, error=None):
    return {
        "original_query": query,
        "normalized_query": query.lower(),
        "selected_apis": apis,
        "chart_type": "line",
        "confidence": confidence,
        "processing_time_ms": ms,
        "cache_hit": cache_hit,
        "success": success,
        "error_message": error,
    }


@pytest.fixture
def populated(tracker):
    tracker.log_query(record("DEX volume", ["dex-volume"], cache_hit=True, ms=100, confidence=0.8))
    tracker.log_query(record("dex volume", ["dex-traders"], ms=300, confidence=0.6))
    tracker.log_query(record("tps", [], success=False, ms=200, confidence=0.0, error="OpenAI quota exceeded"))
    return tracker


@pytest.mark.parametrize("message,expected", [
    ("OpenAI quota exceeded", "quota_exceeded"),
    ("OpenAI API Error: status 500", "api_error"),
    ("Failed to parse response", "parsing_error"),
    ("cache corrupted", "cache_error"),
    ("embedding store missing", "vector_error"),
    ("boom", "unknown_error"),
])
def test_categorize_error(message, expected):
    assert categorize_error(message) == expected


class TestJournal:
    def test_log_query_appends_line(self, tracker):
        query_id = tracker.log_query(record("dex volume", ["dex-volume"]))
        assert len(query_id) == 16
        lines = tracker.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["id"] == query_id
        assert json.loads(lines[0])["timestamp"] == NOW

    def test_malformed_lines_skipped(self, tracker):
        tracker.log_query(record("a", []))
        with open(tracker.path, "a", encoding="utf-8") as f:
            f.write("not json\n")
        assert tracker.get_system_metrics()["total_queries"] == 1

    def test_feedback(self, tracker):
        query_id = tracker.log_query(record("a", []))
        assert tracker.update_query_feedback(query_id, "negative") is True
        assert tracker.update_query_feedback("missing", "negative") is False
        stored = json.loads(tracker.path.read_text(encoding="utf-8").splitlines()[0])
        assert stored["user_feedback"] == "negative"

    def test_invalid_feedback(self, tracker):
        with pytest.raises(ValidationException):
            tracker.update_query_feedback("any", "meh")

    def test_cleanup_old_logs(self, tracker, clock):
        clock.now = NOW - 40 * 86400
        tracker.log_query(record("old", []))
        clock.now = NOW
        tracker.log_query(record("new", []))
        assert tracker.cleanup_old_logs(days_to_keep=30) == 1
        assert tracker.get_system_metrics()["total_queries"] == 1


class TestAggregates:
    def test_empty(self, tracker):
        metrics = tracker.get_system_metrics()
        assert metrics["total_queries"] == 0
        assert metrics["popular_domains"] == {}
        assert tracker.get_api_usage_stats() == []
        assert tracker.get_popular_queries() == []
        assert tracker.get_improvement_suggestions() == []

    def test_system_metrics(self, populated):
        metrics = populated.get_system_metrics()
        assert metrics["total_queries"] == 3
        assert metrics["unique_queries"] == 2
        assert metrics["cache_hit_rate"] == pytest.approx(0.3333)
        assert metrics["avg_processing_time"] == 200.0
        assert metrics["success_rate"] == pytest.approx(0.6667)
        assert metrics["popular_domains"] == {"dex": 2}
        assert metrics["error_types"] == {"quota_exceeded": 1}
        assert metrics["time_distribution"] == {"22:00": 3}

    def test_api_usage(self, populated):
        stats = populated.get_api_usage_stats()
        assert {s["api_id"] for s in stats} == {"dex-volume", "dex-traders"}
        volume = next(s for s in stats if s["api_id"] == "dex-volume")
        assert volume["usage_count"] == 1
        assert volume["success_rate"] == 1.0
        assert volume["avg_confidence"] == 0.8
        assert volume["last_used"].startswith("2023-11-14T22:13:20")

    def test_popular_queries(self, populated):
        popular = populated.get_popular_queries(limit=1)
        assert len(popular) == 1
        assert popular[0]["normalized_query"] == "dex volume"
        assert popular[0]["query"] == "DEX volume"
        assert popular[0]["count"] == 2
        assert popular[0]["avg_confidence"] == 0.7

    def test_suggestions(self, populated):
        suggestions = populated.get_improvement_suggestions()
        assert any("Success rate below 90%" in s for s in suggestions)
        assert any("Frequent quota_exceeded errors" in s for s in suggestions)
        assert not any("cache hit rate" in s for s in suggestions)

    def test_report_window(self, populated, clock):
        clock.now = NOW - 10 * 86400
        populated.log_query(record("ancient", ["network-tps"]))
        clock.now = NOW

        report = populated.generate_report(days=7)
        assert report["summary"]["total_queries"] == 3
        assert report["time_range"]["days"] == 7
        assert "network-tps" not in {a["api_id"] for a in report["top_apis"]}
        assert report["popular_queries"][0]["count"] == 2
