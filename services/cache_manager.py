"""
Unified Cache Management Service

Centralise les caches mémoire de l'application (données de métriques,
proxy TopLedger): statistiques et vidage depuis les endpoints d'admin.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from api.utils.cache import cache_clear_expired
from config.ttl_config import CacheTTL

logger = logging.getLogger(__name__)


class CacheManager:
    """Registre des caches `key -> (value, timestamp)`"""

    def __init__(self):
        self._cache_registry: Dict[str, Dict] = {}
        self._cache_metadata: Dict[str, Dict[str, Any]] = {}
        self._register_known_caches()

    def _register_known_caches(self):
        from services.metrics.service import _metrics_cache
        from api.proxy_router import _proxy_cache

        self.register_cache("metrics", _metrics_cache, ttl=CacheTTL.METRIC_DATA, description="TopLedger metric rows")
        self.register_cache("proxy", _proxy_cache, ttl=CacheTTL.PROXY, description="TopLedger proxy responses")
        logger.info(f"✅ Cache manager initialized with {len(self._cache_registry)} registered caches")

    def register_cache(self, name: str, cache_dict: Dict, ttl: int = 3600, description: str = ""):
        self._cache_registry[name] = cache_dict
        self._cache_metadata[name] = {
            "ttl": ttl,
            "description": description or f"{name.replace('_', ' ').title()} Cache",
            "type": "in_memory"
        }
        logger.debug(f"Registered cache: {name} (TTL: {ttl}s)")

    def get_cache_stats(self, cache_name: Optional[str] = None) -> Dict[str, Any]:
        """Stats d'un cache ou de tous"""
        if cache_name:
            return self._get_single_cache_stats(cache_name)

        stats = {
            "total_caches": len(self._cache_registry),
            "caches": {},
            "total_entries": 0,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        for name in self._cache_registry:
            cache_stats = self._get_single_cache_stats(name)
            stats["caches"][name] = cache_stats
            stats["total_entries"] += cache_stats.get("entries", 0)
        return stats

    def _get_single_cache_stats(self, cache_name: str) -> Dict[str, Any]:
        if cache_name not in self._cache_registry:
            return {
                "name": cache_name,
                "error": "Cache not found or not registered",
                "available_caches": self.get_available_caches()
            }

        cache = self._cache_registry[cache_name]
        metadata = self._cache_metadata.get(cache_name, {})
        ttl = metadata.get("ttl", 3600)
        now = time.time()

        expired_entries = sum(1 for _, ts in cache.values() if now - ts >= ttl)
        return {
            "name": cache_name,
            "entries": len(cache),
            "valid_entries": len(cache) - expired_entries,
            "expired_entries": expired_entries,
            "ttl": ttl,
            "type": metadata.get("type", "in_memory"),
            "description": metadata.get("description", "")
        }

    def clear_cache(self, cache_name: str) -> Dict[str, Any]:
        """Vide un cache ("all" = tous)"""
        if cache_name == "all":
            results = []
            for name, cache in self._cache_registry.items():
                results.append({"cache": name, "cleared_entries": len(cache)})
                cache.clear()
            total = sum(r["cleared_entries"] for r in results)
            logger.info(f"✅ All caches cleared ({total} total entries)")
            return {
                "ok": True,
                "cache": "all",
                "total_cleared": total,
                "details": results,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        if cache_name not in self._cache_registry:
            logger.warning(f"❌ Cache '{cache_name}' not found")
            return {
                "ok": False,
                "cache": cache_name,
                "error": "Cache not found",
                "available_caches": self.get_available_caches()
            }

        cache = self._cache_registry[cache_name]
        entries_before = len(cache)
        cache.clear()
        logger.info(f"✅ Cache '{cache_name}' cleared ({entries_before} entries)")
        return {
            "ok": True,
            "cache": cache_name,
            "cleared_entries": entries_before,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    def clear_expired_caches(self) -> Dict[str, Any]:
        """Supprime les entrées expirées de tous les caches"""
        details = [
            {"cache": name, "cleared_entries": cache_clear_expired(cache, self._cache_metadata[name]["ttl"])}
            for name, cache in self._cache_registry.items()
        ]
        return {
            "ok": True,
            "total_cleared": sum(d["cleared_entries"] for d in details),
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    def get_available_caches(self) -> List[str]:
        return list(self._cache_registry.keys())


# Global cache manager instance
cache_manager = CacheManager()
