"""
Endpoints d'administration du pipeline RAG: recherche directe dans le
catalogue, analytics des requêtes, caches.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_analytics_tracker, get_metadata_cache, get_search_service
from api.exceptions import DataException, ValidationException
from api.utils import success_response
from services.cache_manager import cache_manager
from services.rag.analytics_tracker import AnalyticsTracker
from services.rag.api_search import ApiSearchService
from services.rag.metadata_cache import MetadataCache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rag-admin"])


@router.get("/api/rag/search")
async def search_apis(
    q: str = Query(..., min_length=1, description="Requête en langage naturel"),
    top_k: int = Query(5, ge=1, le=20),
    domain: Optional[str] = Query(None),
    complexity: Optional[str] = Query(None),
    keyword_only: bool = Query(False),
    search: ApiSearchService = Depends(get_search_service),
):
    result = await search.search(q, top_k=top_k, domain_filter=domain, complexity=complexity, keyword_only=keyword_only)
    return success_response(result.model_dump(), meta={"total_results": result.total_results})


@router.get("/api/rag/catalog")
async def list_catalog(
    domain: Optional[str] = Query(None),
    search: ApiSearchService = Depends(get_search_service),
):
    entries = search.get_apis_by_domain(domain) if domain else list(search.catalog)
    return success_response(
        [entry.summary() for entry in entries],
        meta={"count": len(entries), "version": search.catalog.version, "stats": search.get_stats()},
    )


@router.get("/api/rag/catalog/{api_id}")
async def get_catalog_entry(api_id: str, search: ApiSearchService = Depends(get_search_service)):
    entry = search.get_api_by_id(api_id)
    if entry is None:
        raise DataException("catalog", f"API '{api_id}' not found")
    return success_response(entry.model_dump())


@router.get("/api/rag/analytics/metrics")
async def analytics_metrics(tracker: AnalyticsTracker = Depends(get_analytics_tracker)):
    return success_response(tracker.get_system_metrics())


@router.get("/api/rag/analytics/report")
async def analytics_report(
    days: int = Query(7, ge=1, le=365),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    return success_response(tracker.generate_report(days=days))


@router.get("/api/rag/analytics/popular")
async def analytics_popular(
    limit: int = Query(20, ge=1, le=100),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    return success_response(tracker.get_popular_queries(limit=limit))


@router.get("/api/rag/cache/stats")
async def metadata_cache_stats(cache: MetadataCache = Depends(get_metadata_cache)):
    return success_response(cache.get_stats())


@router.delete("/api/rag/cache")
async def clear_metadata_cache(cache: MetadataCache = Depends(get_metadata_cache)):
    cleared = cache.size()
    cache.clear()
    logger.info(f"🗑️ Metadata cache cleared ({cleared} entries)")
    return success_response({"cleared_entries": cleared})


@router.get("/api/cache/stats")
async def cache_stats(name: Optional[str] = Query(None)):
    return success_response(cache_manager.get_cache_stats(name))


@router.delete("/api/cache/{name}")
async def clear_cache(name: str):
    if name == "expired":
        return success_response(cache_manager.clear_expired_caches())
    result = cache_manager.clear_cache(name)
    if not result["ok"]:
        raise ValidationException("name", f"unknown cache, available: {', '.join(result['available_caches'])}", name)
    return success_response(result)
