"""
Pipeline NLP -> chart.

    requête -> cache (requête normalisée) -> [hit] re-recherche des APIs
                                          -> [miss] LLM + outils (2 tours max)
                                                    -> repli: recherche lexicale + heuristiques
            -> mise en cache -> télémétrie -> format legacy
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from api.exceptions import ResearchException
from services.rag.analytics_tracker import AnalyticsTracker
from services.rag.api_search import ApiSearchService, SearchResponse
from services.rag.chart_spec import ChartSpec, ChartSpecBuilder, ChartSpecError
from services.rag.llm_client import LLMError, OpenAIChatClient
from services.rag.llm_functions import CHART_FUNCTIONS, SYSTEM_PROMPT, FunctionCallProcessor, user_message
from services.rag.metadata_cache import MetadataCache
from services.rag.vector_store import EmbeddingError

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 2
CACHE_HIT_TOP_K = 5
FALLBACK_TOP_K = 3
DEFAULT_CONFIDENCE = 0.8
NO_MATCH_MESSAGE = "No matching APIs found"


_TIME_HINTS = ("date", "time")
_SERIES_HINTS = ("volume", "price", "value", "revenue", "fee", "supply")
_DEFAULT_Y_HINTS = _SERIES_HINTS + ("holders",)
# Motifs par type de colonne cible; les autres types retombent sur la correspondance partielle du nom
_KIND_HINTS = {
    "volume": ("vol",),
    "price": ("price", "usd"),
    "value": ("value", "amount"),
}


def _is_time_column(column: str) -> bool:
    lower = column.lower()
    return column == "partition_0" or any(hint in lower for hint in _TIME_HINTS)


def _has_hint(column: str, hints: Tuple[str, ...]) -> bool:
    lower = column.lower()
    return any(hint in lower for hint in hints)


def _series_kind(column: str) -> str:
    lower = column.lower()
    for kind in ("volume", "price", "value"):
        if kind in lower:
            return kind
    return "metric"


def find_best_column(target: Optional[str], kind: str, columns: List[str]) -> Optional[str]:
    """Colonne de l'API la plus proche de `target`: identique, sinon du même type, sinon nom partiel."""
    if not target:
        return None
    if target in columns:
        return target
    lower_target = target.lower()
    for column in columns:
        if kind == "time":
            matched = _is_time_column(column)
        elif kind in _KIND_HINTS:
            matched = _has_hint(column, _KIND_HINTS[kind])
        else:
            lower = column.lower()
            matched = lower in lower_target or lower_target in lower
        if matched:
            return column
    return None


def suggest_columns(columns: List[str], spec: Optional[ChartSpec]) -> Dict[str, Any]:
    """xColumn / yColumns de cette API pour le spec (colonnes temps/métriques par défaut)."""
    x_column = None
    if spec is not None and spec.x_axis is not None:
        x_column = find_best_column(spec.x_axis.column, "time", columns)

    y_columns: List[str] = []
    if spec is not None:
        for series in spec.series:
            column = find_best_column(series.column, _series_kind(series.column), columns)
            if column is None:
                column = next((c for c in columns if _has_hint(c, _SERIES_HINTS)), None)
            if column is not None:
                y_columns.append(column)

    if x_column is None:
        x_column = next((c for c in columns if _is_time_column(c)), None)
    if not y_columns:
        y_columns = [c for c in columns if _has_hint(c, _DEFAULT_Y_HINTS)][:2]
    return {"xColumn": x_column, "yColumns": y_columns, "groupBy": ""}


def _legacy_api(api: Dict[str, Any], spec: Optional[ChartSpec]) -> Dict[str, Any]:
    columns = list(api.get("columns") or (api.get("response_schema") or {}).keys())
    return {
        "id": api["id"],
        "name": api.get("title"),
        "chartTitle": api.get("title"),
        "endpoint": api.get("url"),
        "method": api.get("method", "GET"),
        "columns": columns,
        "page": api.get("domain"),
        # Jamais de clé API dans la réponse
        "apiKey": "",
        "additionalOptions": {},
        "suggestedColumns": suggest_columns(columns, spec),
    }


def to_legacy_format(
    spec: Optional[Union[ChartSpec, Dict[str, Any]]],
    search: SearchResponse,
    query: str = "",
    fallback_used: bool = False,
) -> Dict[str, Any]:
    """Réponse au format attendu par le chart creator (configuration, matchingApis, ragMetadata)."""
    if isinstance(spec, dict):
        spec = ChartSpec.model_validate(spec)

    if spec is not None:
        description = spec.metadata.description
        configuration = {
            "name": spec.title or f"Chart: {query}",
            "description": description or f'Generated from: "{query}"',
            "type": spec.chart_type or "bar",
            "chartType": "simple",
            "xColumn": spec.x_axis.column if spec.x_axis else "date",
            "yColumns": [s.column for s in spec.series] or ["value"],
            "groupBy": "",
            "suggestedApis": [a for a in (spec.primary_api, spec.secondary_api) if a],
            "suggestedColumns": spec.metadata.suggested_columns,
            "reasoning": description or (
                f"{'Pattern matching' if fallback_used else 'AI analysis'} suggests this "
                f'configuration based on your query "{query}".'
            ),
        }
        confidence = spec.metadata.confidence_score
    else:
        configuration = {
            "name": f"Chart: {query}",
            "description": f'Generated from: "{query}"',
            "type": "bar",
            "chartType": "simple",
            "xColumn": "date",
            "yColumns": ["value"],
            "groupBy": "",
            "suggestedApis": [],
            "suggestedColumns": [],
            "reasoning": NO_MATCH_MESSAGE,
        }
        confidence = None

    matching = [_legacy_api(api, spec) for api in search.apis]

    return {
        "configuration": configuration,
        "matchingApis": matching,
        "originalQuery": query,
        "ragMetadata": {
            "searchExecutionTime": search.execution_time_ms,
            "totalResults": search.total_results,
            "confidence": confidence,
            "fallbackUsed": fallback_used,
        },
    }


class NLPChartPipeline:

    def __init__(
        self,
        search: ApiSearchService,
        llm: OpenAIChatClient,
        cache: MetadataCache,
        tracker: AnalyticsTracker,
        builder: Optional[ChartSpecBuilder] = None,
    ):
        self.search = search
        self.llm = llm
        self.cache = cache
        self.tracker = tracker
        self.builder = builder or ChartSpecBuilder(search.catalog)

    async def process(
        self,
        query: str,
        *,
        session_id: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        started = time.perf_counter()

        cached = self.cache.get(query)
        if cached is not None:
            return await self._from_cache(query, cached, started, session_id, user_agent)

        fallback_used = False
        error_message = None
        spec: Optional[ChartSpec] = None
        search: Optional[SearchResponse] = None
        try:
            spec, search = await self._run_llm(query)
        except (LLMError, EmbeddingError, ChartSpecError) as e:
            logger.warning(f"LLM path failed ({e.__class__.__name__}: {e.message}), using pattern matching")
            error_message = e.message

        if spec is None:
            spec, search = await self._fallback(query)
            fallback_used = True

        success = spec is not None
        result = to_legacy_format(spec, search, query, fallback_used)
        selected = search.api_ids()
        confidence = spec.metadata.confidence_score if spec is not None else 0.0

        if spec is not None:
            self.cache.set(query, spec.model_dump(), selected, confidence or DEFAULT_CONFIDENCE)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        query_id = self.tracker.log_query({
            "original_query": query,
            "normalized_query": query.lower().strip(),
            "selected_apis": selected,
            "chart_type": spec.chart_type if spec is not None else None,
            "confidence": confidence,
            "processing_time_ms": elapsed_ms,
            "cache_hit": False,
            "success": success,
            "error_message": None if success else (error_message or NO_MATCH_MESSAGE),
            "session_id": session_id,
            "user_agent": user_agent,
        })

        logger.info(f"NLP query processed: {len(result['matchingApis'])} APIs, "
                    f"fallback={fallback_used}, {elapsed_ms}ms")
        result.update({
            "success": success,
            "cached": False,
            "processingTimeMs": elapsed_ms,
            "queryId": query_id,
        })
        if not success:
            result["message"] = NO_MATCH_MESSAGE
        return result

    async def _from_cache(
        self,
        query: str,
        cached: Dict[str, Any],
        started: float,
        session_id: Optional[str],
        user_agent: Optional[str],
    ) -> Dict[str, Any]:
        logger.info(f"💾 Metadata cache hit for query '{query}'")
        search = await self.search.search(query, top_k=CACHE_HIT_TOP_K)
        spec = ChartSpec.model_validate(cached["chart_spec"])

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        query_id = self.tracker.log_query({
            "original_query": query,
            "normalized_query": query.lower().strip(),
            "selected_apis": cached.get("selected_apis", []),
            "chart_type": spec.chart_type,
            "confidence": cached.get("confidence", DEFAULT_CONFIDENCE),
            "processing_time_ms": elapsed_ms,
            "cache_hit": True,
            "success": True,
            "session_id": session_id,
            "user_agent": user_agent,
        })

        result = to_legacy_format(spec, search, query)
        result.update({
            "success": True,
            "cached": True,
            "cacheId": cached["id"],
            "processingTimeMs": elapsed_ms,
            "queryId": query_id,
        })
        return result

    async def _run_llm(self, query: str) -> Tuple[Optional[ChartSpec], SearchResponse]:
        if not self.llm.available:
            raise LLMError("no_api_key", "OpenAI API key not configured")

        processor = FunctionCallProcessor(self.search, self.builder)
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_message(query)},
        ]
        spec: Optional[ChartSpec] = None

        for _ in range(MAX_TOOL_ROUNDS):
            message = await self.llm.create(messages, tools=CHART_FUNCTIONS)
            tool_calls = message.get("tool_calls") or []
            if not tool_calls:
                break
            messages.append(message)

            for call in tool_calls:
                function = call.get("function") or {}
                name = function.get("name")
                context = processor.last_search.apis if processor.last_search is not None else None
                outcome = await processor.process(name, function.get("arguments"), apis_context=context)
                if name == "create_chart_spec" and outcome.get("success"):
                    spec = ChartSpec.model_validate(outcome["chart_spec"])
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.get("id"),
                    "content": json.dumps(outcome, default=str),
                })
            if spec is not None:
                break

        search = processor.last_search or SearchResponse(query=query)
        if spec is None and search.apis:
            spec = self.builder.create_chart_spec_from_search_results(search.apis, query)
        return spec, search

    async def _fallback(self, query: str) -> Tuple[Optional[ChartSpec], SearchResponse]:
        try:
            search = await self.search.search(query, top_k=FALLBACK_TOP_K, keyword_only=True)
        except ResearchException as e:
            logger.error(f"Fallback search failed: {e.message}")
            return None, SearchResponse(query=query)
        if not search.apis:
            return None, search
        return self.builder.create_chart_spec_from_search_results(search.apis, query), search
