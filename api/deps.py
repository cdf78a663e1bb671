"""
Dépendances FastAPI réutilisables.

Singletons paresseux (clients HTTP, catalogue, pipeline NLP, stores);
surchargeables dans les tests via `app.dependency_overrides`.
"""
from __future__ import annotations

import logging
from typing import Optional

from config import get_settings
from connectors.topledger import TopLedgerClient
from services.dashboards import DashboardStore
from services.metrics import MetricsService
from services.rag.analytics_tracker import AnalyticsTracker
from services.rag.api_search import ApiSearchService
from services.rag.catalog import ApiCatalog
from services.rag.llm_client import OpenAIChatClient
from services.rag.metadata_cache import MetadataCache
from services.rag.pipeline import NLPChartPipeline

logger = logging.getLogger(__name__)

_topledger_client: Optional[TopLedgerClient] = None
_llm_client: Optional[OpenAIChatClient] = None
_metrics_service: Optional[MetricsService] = None
_catalog: Optional[ApiCatalog] = None
_search_service: Optional[ApiSearchService] = None
_metadata_cache: Optional[MetadataCache] = None
_analytics_tracker: Optional[AnalyticsTracker] = None
_pipeline: Optional[NLPChartPipeline] = None
_dashboard_store: Optional[DashboardStore] = None


def get_topledger_client() -> TopLedgerClient:
    global _topledger_client
    if _topledger_client is None:
        _topledger_client = TopLedgerClient(get_settings().topledger)
    return _topledger_client


def get_llm_client() -> OpenAIChatClient:
    global _llm_client
    if _llm_client is None:
        _llm_client = OpenAIChatClient(get_settings().llm)
    return _llm_client


def get_metrics_service() -> MetricsService:
    global _metrics_service
    if _metrics_service is None:
        _metrics_service = MetricsService(get_topledger_client())
    return _metrics_service


def get_catalog() -> ApiCatalog:
    global _catalog
    if _catalog is None:
        _catalog = ApiCatalog.load(get_settings().rag.catalog_path)
    return _catalog


def get_search_service() -> ApiSearchService:
    global _search_service
    if _search_service is None:
        settings = get_settings()
        llm = get_llm_client()
        _search_service = ApiSearchService(get_catalog(), settings.rag, settings.llm, embed=llm.embed)
    return _search_service


def get_metadata_cache() -> MetadataCache:
    global _metadata_cache
    if _metadata_cache is None:
        rag = get_settings().rag
        _metadata_cache = MetadataCache(rag.cache_path, ttl_hours=rag.cache_ttl_hours, max_entries=rag.cache_max_entries)
    return _metadata_cache


def get_analytics_tracker() -> AnalyticsTracker:
    global _analytics_tracker
    if _analytics_tracker is None:
        _analytics_tracker = AnalyticsTracker(get_settings().rag.analytics_path)
    return _analytics_tracker


def get_pipeline() -> NLPChartPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = NLPChartPipeline(
            search=get_search_service(),
            llm=get_llm_client(),
            cache=get_metadata_cache(),
            tracker=get_analytics_tracker(),
        )
    return _pipeline


def get_dashboard_store() -> DashboardStore:
    global _dashboard_store
    if _dashboard_store is None:
        _dashboard_store = DashboardStore(get_settings().storage.dashboards_path)
    return _dashboard_store


async def close_clients():
    """Ferme les clients HTTP et persiste le cache de métadonnées."""
    if _metadata_cache is not None:
        _metadata_cache.save_if_dirty()
    if _topledger_client is not None:
        await _topledger_client.aclose()
    if _llm_client is not None:
        await _llm_client.aclose()
    reset_dependencies()


def reset_dependencies():
    global _topledger_client, _llm_client, _metrics_service, _catalog, _search_service
    global _metadata_cache, _analytics_tracker, _pipeline, _dashboard_store
    _topledger_client = _llm_client = _metrics_service = None
    _catalog = _search_service = _metadata_cache = _analytics_tracker = None
    _pipeline = _dashboard_store = None
