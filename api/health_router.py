"""
Health Router - Health Check Endpoints
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.deps import get_metadata_cache, get_search_service
from api.utils import success_response
from config import get_settings
from services.cache_manager import cache_manager
from services.rag.api_search import ApiSearchService
from services.rag.metadata_cache import MetadataCache
from shared.circuit_breaker import get_all_circuit_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Simple health check endpoint for containers"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": get_settings().environment,
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes-style health probe"""
    return success_response({})


@router.get("/health/detailed")
async def health_detailed(
    search: ApiSearchService = Depends(get_search_service),
    cache: MetadataCache = Depends(get_metadata_cache),
):
    """Santé détaillée: circuit breakers, catalogue, caches"""
    circuits = get_all_circuit_status()
    degraded = [c["name"] for c in circuits if c["state"] != "closed"]
    return success_response({
        "status": "degraded" if degraded else "healthy",
        "circuits": circuits,
        "catalog": search.get_stats(),
        "metadata_cache": {"entries": cache.size()},
        "caches": cache_manager.get_cache_stats(),
    })
