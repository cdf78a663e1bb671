"""Tests unitaires pour api/utils/cache.py"""
import time

from api.utils.cache import cache_clear_expired, cache_get, cache_set, make_cache_key


class TestMakeCacheKey:
    def test_joins_parts(self):
        assert make_cache_key("GET", "https://x.io", None) == "GET:https://x.io:"

    def test_distinct_methods(self):
        assert make_cache_key("GET", "u", None) != make_cache_key("POST", "u", [])


class TestCacheGetSet:
    def test_set_then_get(self):
        cache = {}
        cache_set(cache, "k", {"rows": [1]})
        assert cache_get(cache, "k", ttl=60) == {"rows": [1]}

    def test_expired(self):
        cache = {"k": ("v", time.time() - 120)}
        assert cache_get(cache, "k", ttl=60) is None

    def test_missing(self):
        assert cache_get({}, "k", ttl=60) is None


class TestClearExpired:
    def test_mixed(self):
        now = time.time()
        cache = {"old": ("a", now - 500), "new": ("b", now)}
        assert cache_clear_expired(cache, ttl=300) == 1
        assert list(cache) == ["new"]
