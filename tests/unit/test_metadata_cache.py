"""Tests unitaires pour services/rag/metadata_cache.py"""
import json

import pytest

from api.exceptions import ValidationException
from services.rag.metadata_cache import MetadataCache, cache_key, normalize_query

SPEC = {"title": "DEX Volume", "primary_api": "dex-volume", "chart_type": "area"}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock):
    return MetadataCache(tmp_path / "cache.json", ttl_hours=1, max_entries=10, clock=clock)


# ── 1. Normalisation ──

class TestNormalization:
    def test_normalize_query(self):
        assert normalize_query("Show me DEX trading volume over time") == "me dex volume time_series"

    def test_equivalent_queries_share_key(self):
        assert cache_key("show dex volume over time") == cache_key("Plot the DEX volumes over time")

    def test_compare_synonyms(self):
        assert normalize_query("orca versus raydium") == normalize_query("orca vs raydium")


# ── 2. get / set ──

class TestGetSet:
    def test_miss(self, cache):
        assert cache.get("anything") is None

    def test_hit_increments_counter(self, cache, clock):
        key = cache.set("dex volume", SPEC, ["dex-volume"], confidence=0.9)
        clock.advance(10)
        entry = cache.get("DEX volume")
        assert entry["id"] == key
        assert entry["chart_spec"] == SPEC
        assert entry["hit_count"] == 1
        assert entry["last_accessed"] == clock.now
        assert cache.get("dex volume")["hit_count"] == 2

    def test_expired_entry_dropped(self, cache, clock):
        cache.set("dex volume", SPEC, ["dex-volume"])
        clock.advance(3601)
        assert cache.get("dex volume") is None
        assert cache.size() == 0

    def test_persisted_and_reloaded(self, tmp_path, cache, clock):
        cache.set("dex volume", SPEC, ["dex-volume"])
        reloaded = MetadataCache(tmp_path / "cache.json", ttl_hours=1, clock=clock)
        assert reloaded.get("dex volume")["selected_apis"] == ["dex-volume"]

    def test_reload_skips_expired(self, tmp_path, cache, clock):
        cache.set("dex volume", SPEC, ["dex-volume"])
        clock.advance(7200)
        reloaded = MetadataCache(tmp_path / "cache.json", ttl_hours=1, clock=clock)
        assert reloaded.size() == 0

    def test_corrupt_file_starts_empty(self, tmp_path, clock):
        path = tmp_path / "cache.json"
        path.write_text("{broken", encoding="utf-8")
        assert MetadataCache(path, clock=clock).size() == 0

    def test_lru_eviction(self, cache, clock):
        for i in range(11):
            cache.set(f"query number {i}", SPEC, ["dex-volume"])
            clock.advance(1)
        assert cache.size() == 10
        assert cache.get("query number 0") is None
        assert cache.get("query number 10") is not None


# ── 3. Feedback, nettoyage, stats ──

class TestMaintenance:
    def test_feedback(self, tmp_path, cache):
        key = cache.set("dex volume", SPEC, ["dex-volume"])
        assert cache.update_feedback(key, "positive") is True
        assert cache.update_feedback("unknown", "positive") is False
        on_disk = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
        assert on_disk[key]["user_feedback"] == "positive"

    def test_invalid_feedback(self, cache):
        with pytest.raises(ValidationException):
            cache.update_feedback("any", "great")

    def test_cleanup_and_save_if_dirty(self, cache, clock):
        cache.set("first", SPEC, [])
        clock.advance(3000)
        cache.set("second", SPEC, [])
        clock.advance(1000)
        assert cache.save_if_dirty() is False
        assert cache.cleanup() == 1
        assert cache.size() == 1
        assert cache.save_if_dirty() is True
        assert cache.save_if_dirty() is False

    def test_clear(self, cache):
        cache.set("dex volume", SPEC, [])
        cache.clear()
        assert cache.size() == 0

    def test_stats(self, cache):
        cache.set("dex volume", SPEC, ["dex-volume"], confidence=0.8)
        cache.set("traders", SPEC, ["dex-volume", "dex-traders"], confidence=0.6)
        cache.get("dex volume")
        cache.get("dex volume")

        stats = cache.get_stats()
        assert stats["total_entries"] == 2
        assert stats["total_hits"] == 2
        assert stats["hit_rate"] == 0.5
        assert stats["avg_confidence"] == 0.7
        assert stats["popular_queries"] == [{"query": "dex volume", "hits": 2}]
        assert stats["api_usage_frequency"] == {"dex-volume": 4, "dex-traders": 1}

    def test_empty_stats(self, cache):
        stats = cache.get_stats()
        assert stats["hit_rate"] == 0.0
        assert stats["popular_queries"] == []
