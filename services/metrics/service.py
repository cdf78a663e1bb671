"""
Service de métriques: exécute les requêtes du registre via TopLedgerClient,
normalise les lignes et les garde en cache mémoire (TTL).
"""
from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List, Optional, Tuple

from api.exceptions import DataException, ResearchException, ValidationException
from api.utils.cache import cache_get, cache_set, make_cache_key
from config.ttl_config import CacheTTL
from connectors.topledger import TopLedgerClient
from services.metrics import normalizers
from services.metrics.registry import QUERIES, MetricQuery
from shared.circuit_breaker import CircuitOpenError

logger = logging.getLogger(__name__)

# key -> ((rows, meta), timestamp)
_metrics_cache: Dict[str, Tuple[Any, float]] = {}

# Périodes longues: résultats stables, TTL plus long
LONG_PERIODS = ("Q", "Y", "ALL")

# Métriques avec données de repli (API amont en échec ou réponse vide)
FALLBACKS = {
    "volume_by_program": normalizers.PRELOADED_VOLUME_BY_PROGRAM,
}


def _as_dict(item: Any) -> Dict[str, Any]:
    return asdict(item) if is_dataclass(item) else dict(item)


class MetricsService:
    """Accès typé aux métriques TopLedger."""

    def __init__(self, client: TopLedgerClient, cache: Optional[Dict] = None, ttl: int = CacheTTL.METRIC_DATA):
        self.client = client
        self.cache = _metrics_cache if cache is None else cache
        self.ttl = ttl

    def list_metrics(self) -> List[Dict[str, Any]]:
        return [q.describe() for q in QUERIES.values()]

    def get_query(self, name: str) -> MetricQuery:
        query = QUERIES.get(name)
        if query is None:
            raise DataException("metrics", f"Unknown metric '{name}'", {"available": sorted(QUERIES)})
        return query

    async def get_metric(
        self,
        name: str,
        period: Optional[str] = None,
        currency: Optional[str] = None,
        refresh: bool = False,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """
        Retourne (rows, meta) pour une métrique.

        meta: metric, query_id, period, cached, fallback, count.
        """
        query = self.get_query(name)
        if period is not None:
            if not query.period_param:
                raise ValidationException("period", f"metric '{name}' takes no period", period)
            if period not in query.periods:
                raise ValidationException("period", f"must be one of {', '.join(query.periods)}", period)
        if currency is not None and query.currency_param and currency.upper() not in ("USD", "SOL"):
            raise ValidationException("currency", "must be USD or SOL", currency)

        params = query.build_parameters(period, currency)
        effective_period = params.get(query.period_param) if params and query.period_param else None
        key = make_cache_key(name, effective_period, params.get(query.currency_param) if params and query.currency_param else None)

        if not refresh:
            ttl = CacheTTL.METRIC_HISTORY if effective_period in LONG_PERIODS else self.ttl
            cached = cache_get(self.cache, key, ttl)
            if cached is not None:
                rows, meta = cached
                return rows, {**meta, "cached": True}

        try:
            raw_rows = await self.client.fetch_rows(
                query.query_id,
                parameters=params,
                max_age=query.max_age,
                base=query.base,
            )
        except (ResearchException, CircuitOpenError) as e:
            if name not in FALLBACKS:
                raise
            logger.warning(f"Metric {name}: upstream unavailable, serving preloaded data ({e})")
            return self._fallback(query, effective_period)

        rows = [_as_dict(item) for item in query.normalizer(raw_rows)]
        if not rows and name in FALLBACKS:
            logger.warning(f"Metric {name}: empty upstream response, serving preloaded data")
            return self._fallback(query, effective_period)
        meta = self._meta(query, effective_period, len(rows))
        cache_set(self.cache, key, (rows, meta))
        logger.info(f"Metric {name} refreshed: {len(rows)} rows (period={effective_period})")
        return rows, {**meta, "cached": False}

    def _fallback(self, query: MetricQuery, period: Optional[str]) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        rows = [_as_dict(item) for item in FALLBACKS[query.name]]
        return rows, self._meta(query, period, len(rows), fallback=True)

    @staticmethod
    def _meta(query: MetricQuery, period: Optional[str], count: int, fallback: bool = False) -> Dict[str, Any]:
        return {
            "metric": query.name,
            "query_id": query.query_id,
            "period": period,
            "date_field": query.date_field,
            "count": count,
            "fallback": fallback,
            "cached": False,
        }
