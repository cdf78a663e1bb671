"""
Cache utilities for API endpoints.

Caches are plain dicts of key -> (value, timestamp), registered in
services.cache_manager for stats and clearing.
"""
from typing import Any, Dict, Hashable, Optional
import time


def make_cache_key(*parts: Any) -> str:
    """Build a stable string key (None parts become empty)"""
    return ":".join("" if p is None else str(p) for p in parts)


def cache_get(cache: Dict, key: Hashable, ttl: int) -> Optional[Any]:
    """Get value from cache if not expired"""
    entry = cache.get(key)
    if entry is None:
        return None
    val, ts = entry
    if time.time() - ts < ttl:
        return val
    return None


def cache_set(cache: Dict, key: Hashable, val: Any) -> None:
    """Set value in cache with timestamp"""
    cache[key] = (val, time.time())


def cache_clear_expired(cache: Dict, ttl: int) -> int:
    """Remove expired entries, return how many were removed"""
    now = time.time()
    expired_keys = [k for k, (_, ts) in list(cache.items()) if now - ts >= ttl]
    for k in expired_keys:
        cache.pop(k, None)
    return len(expired_keys)
