"""
NLP -> chart endpoints (/api/nlp-chart)

La réponse POST garde le format legacy du chart creator (configuration,
matchingApis, ragMetadata) plutôt que l'enveloppe success_response.
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.deps import get_analytics_tracker, get_metadata_cache, get_pipeline
from api.exceptions import ValidationException
from api.utils import success_response
from services.rag.analytics_tracker import AnalyticsTracker
from services.rag.metadata_cache import MetadataCache
from services.rag.pipeline import NLPChartPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/nlp-chart", tags=["nlp-chart"])


class NLPChartRequest(BaseModel):
    query: Optional[str] = None
    sessionId: Optional[str] = None

    model_config = {"extra": "ignore"}


class FeedbackRequest(BaseModel):
    feedback: str
    cacheId: Optional[str] = None
    queryId: Optional[str] = None


@router.post("")
async def create_chart_from_query(
    payload: NLPChartRequest,
    request: Request,
    pipeline: NLPChartPipeline = Depends(get_pipeline),
    cache: MetadataCache = Depends(get_metadata_cache),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    query = (payload.query or "").strip()
    if not query:
        return JSONResponse(status_code=400, content={"error": "Query is required"})

    started = time.perf_counter()
    user_agent = request.headers.get("user-agent")
    try:
        return await pipeline.process(query, session_id=payload.sessionId, user_agent=user_agent)
    except Exception as e:
        logger.error(f"❌ NLP chart processing failed for '{query}': {e}", exc_info=True)
        tracker.log_query({
            "original_query": query,
            "normalized_query": query.lower(),
            "selected_apis": [],
            "chart_type": None,
            "confidence": 0.0,
            "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "cache_hit": False,
            "success": False,
            "error_message": str(e),
            "session_id": payload.sessionId,
            "user_agent": user_agent,
        })
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process natural language query"},
        )
    finally:
        cache.save_if_dirty()


@router.get("")
async def nlp_chart_status(
    pipeline: NLPChartPipeline = Depends(get_pipeline),
    cache: MetadataCache = Depends(get_metadata_cache),
):
    return {
        "status": "ready",
        "cache_size": cache.size(),
        "rag": pipeline.search.get_stats(),
        "llm_available": pipeline.llm.available,
        "endpoints": {
            "POST /api/nlp-chart": "Process a natural language query into a chart configuration",
            "POST /api/nlp-chart/feedback": "Record feedback for a cached chart or a logged query",
            "GET /api/nlp-chart": "Pipeline status",
        },
    }


@router.post("/feedback")
async def submit_feedback(
    payload: FeedbackRequest,
    cache: MetadataCache = Depends(get_metadata_cache),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    if not payload.cacheId and not payload.queryId:
        raise ValidationException("cacheId", "cacheId or queryId is required")

    cache_updated = cache.update_feedback(payload.cacheId, payload.feedback) if payload.cacheId else False
    query_updated = tracker.update_query_feedback(payload.queryId, payload.feedback) if payload.queryId else False
    logger.info(f"Feedback '{payload.feedback}' recorded (cache={cache_updated}, query={query_updated})")
    return success_response({"cache_updated": cache_updated, "query_updated": query_updated})
