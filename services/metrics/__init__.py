"""
Métriques TopLedger: registre des requêtes, normaliseurs typés et service avec cache.
"""

from .registry import QUERIES, MetricQuery
from .service import MetricsService

__all__ = ["QUERIES", "MetricQuery", "MetricsService"]
