"""
Cache requête -> chart spec, persisté en JSON.

Clé = md5 de la requête normalisée (synonymes et mots vides retirés), TTL par
entrée, éviction LRU de 10% au-delà de max_entries.
"""
from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from api.exceptions import ValidationException
from shared.json_store import atomic_json_dump, read_json

logger = logging.getLogger(__name__)

FEEDBACK_VALUES = ("positive", "negative", "neutral")
EVICTION_RATIO = 0.1

# Appliquées dans l'ordre ("vs time" avant "vs")
_NORMALIZATION_RULES = [
    (re.compile(r"\b(show|display|chart|graph|plot)\b"), ""),
    (re.compile(r"\b(over time|across time|by time|vs time)\b"), "time_series"),
    (re.compile(r"\b(compare|comparison|vs|versus)\b"), "compare"),
    (re.compile(r"\b(volumes|volume|trading volume|trade volume)\b"), "volume"),
    (re.compile(r"\b(price|pricing|cost)\b"), "price"),
    (re.compile(r"\b(the|and|or|but|in|on|at|to|for|of|with|by)\b"), ""),
]
_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    text = _WHITESPACE.sub(" ", (query or "").lower().strip())
    for pattern, replacement in _NORMALIZATION_RULES:
        text = pattern.sub(replacement, text)
    return _WHITESPACE.sub(" ", text).strip()


def cache_key(query: str) -> str:
    return hashlib.md5(normalize_query(query).encode("utf-8")).hexdigest()


class MetadataCache:
    def __init__(
        self,
        path: Path,
        ttl_hours: float = 24,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.ttl_sec = ttl_hours * 3600
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._dirty = False
        self.load()

    def _is_valid(self, entry: Dict[str, Any]) -> bool:
        return self._clock() - entry.get("timestamp", 0) < entry.get("ttl", self.ttl_sec)

    def load(self):
        if not self.path.exists():
            return
        try:
            raw = read_json(self.path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Metadata cache {self.path} unreadable, starting empty: {e}")
            self._entries = {}
            return
        if not isinstance(raw, dict):
            logger.error(f"Metadata cache {self.path} has unexpected format, starting empty")
            return
        self._entries = {k: v for k, v in raw.items() if isinstance(v, dict) and self._is_valid(v)}
        logger.info(f"Loaded {len(self._entries)} valid metadata cache entries")

    def save(self):
        atomic_json_dump(self._entries, self.path)
        self._dirty = False

    def save_if_dirty(self) -> bool:
        if not self._dirty:
            return False
        self.save()
        return True

    def get(self, query: str) -> Optional[Dict[str, Any]]:
        key = cache_key(query)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._is_valid(entry):
            del self._entries[key]
            self._dirty = True
            return None

        entry["hit_count"] = entry.get("hit_count", 0) + 1
        entry["last_accessed"] = self._clock()
        self._dirty = True
        return entry

    def set(self, query: str, chart_spec: Dict[str, Any], selected_apis: List[str], confidence: float = 0.8) -> str:
        key = cache_key(query)
        now = self._clock()
        self._entries[key] = {
            "id": key,
            "normalized_query": normalize_query(query),
            "original_query": query,
            "chart_spec": chart_spec,
            "selected_apis": list(selected_apis),
            "confidence": confidence,
            "timestamp": now,
            "ttl": self.ttl_sec,
            "hit_count": 0,
            "last_accessed": now,
        }
        if len(self._entries) > self.max_entries:
            self._evict()
        self.save()
        return key

    def _evict(self):
        n_remove = max(1, int(self.max_entries * EVICTION_RATIO))
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].get("last_accessed", 0))[:n_remove]
        for key, _ in oldest:
            del self._entries[key]
        logger.debug(f"Metadata cache evicted {len(oldest)} entries")

    def update_feedback(self, cache_id: str, feedback: str) -> bool:
        if feedback not in FEEDBACK_VALUES:
            raise ValidationException("feedback", f"must be one of {', '.join(FEEDBACK_VALUES)}", feedback)
        entry = self._entries.get(cache_id)
        if entry is None:
            return False
        entry["user_feedback"] = feedback
        self.save()
        return True

    def cleanup(self) -> int:
        expired = [k for k, v in self._entries.items() if not self._is_valid(v)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._dirty = True
        return len(expired)

    def clear(self):
        self._entries = {}
        self.save()

    def size(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        entries = list(self._entries.values())
        total_hits = sum(e.get("hit_count", 0) for e in entries)
        total = len(entries)

        api_usage: Dict[str, int] = {}
        for entry in entries:
            for api_id in entry.get("selected_apis", []):
                api_usage[api_id] = api_usage.get(api_id, 0) + 1 + entry.get("hit_count", 0)

        popular = sorted((e for e in entries if e.get("hit_count", 0) > 0), key=lambda e: e["hit_count"], reverse=True)
        return {
            "total_entries": total,
            "total_hits": total_hits,
            "hit_rate": round(total_hits / (total_hits + total), 4) if total else 0.0,
            "avg_confidence": round(sum(e.get("confidence", 0) for e in entries) / total, 4) if total else 0.0,
            "popular_queries": [{"query": e["original_query"], "hits": e["hit_count"]} for e in popular[:10]],
            "api_usage_frequency": api_usage,
        }
