"""
Recherche dans le catalogue d'APIs (embeddings si disponibles, sinon mots-clés).
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from api.exceptions import ValidationException
from config.settings import LLMConfig, RAGConfig
from services.rag.catalog import ApiCatalog, ApiCatalogEntry
from services.rag.vector_store import (
    EmbedFn,
    EmbeddingError,
    EmbeddingVectorStore,
    KeywordVectorStore,
    ScoredEntry,
    create_vector_store,
)

logger = logging.getLogger(__name__)

COMPLEXITY_LEVELS = ("simple", "moderate", "complex")


def complexity_of(entry: ApiCatalogEntry) -> str:
    n_columns = len(entry.response_schema)
    if n_columns <= 3:
        return "simple"
    if n_columns <= 6:
        return "moderate"
    return "complex"


class SearchResponse(BaseModel):
    query: str
    apis: List[Dict[str, Any]] = Field(default_factory=list)
    total_results: int = 0
    execution_time_ms: float = 0.0
    store_type: str = "keyword"
    intelligence_summary: Dict[str, Any] = Field(default_factory=dict)

    def api_ids(self) -> List[str]:
        return [api["id"] for api in self.apis]


class ApiSearchService:
    """Service de recherche; initialisation paresseuse et idempotente."""

    def __init__(
        self,
        catalog: ApiCatalog,
        rag_config: RAGConfig,
        llm_config: LLMConfig,
        embed: Optional[EmbedFn] = None,
    ):
        self.catalog = catalog
        self.rag_config = rag_config
        self.llm_config = llm_config
        self.embed = embed
        self.store = None
        self._keyword_store: Optional[KeywordVectorStore] = None
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self.store is not None

    @property
    def keyword_store(self) -> KeywordVectorStore:
        if self._keyword_store is None:
            self._keyword_store = KeywordVectorStore(list(self.catalog))
        return self._keyword_store

    async def initialize(self):
        if self.store is not None:
            return
        async with self._lock:
            if self.store is not None:
                return
            store = create_vector_store(self.catalog, self.llm_config, self.rag_config, embed=self.embed)
            if isinstance(store, KeywordVectorStore):
                self._keyword_store = store
            self.store = store
            logger.info(f"🎯 API search initialized: {len(self.catalog)} APIs, store={store.store_type}")

    async def search(
        self,
        query: str,
        top_k: int = 5,
        domain_filter: Optional[str] = None,
        quality_threshold: Optional[float] = None,
        complexity: Optional[str] = None,
        keyword_only: bool = False,
    ) -> SearchResponse:
        if not query or not query.strip():
            raise ValidationException("query", "must not be empty", query)
        if complexity is not None and complexity not in COMPLEXITY_LEVELS:
            raise ValidationException("complexity", f"must be one of {', '.join(COMPLEXITY_LEVELS)}", complexity)
        top_k = max(1, int(top_k))

        await self.initialize()
        started = time.perf_counter()
        threshold = self.rag_config.quality_threshold if quality_threshold is None else quality_threshold

        store_type = "keyword"
        if not keyword_only and isinstance(self.store, EmbeddingVectorStore):
            try:
                raw = await self.store.search(query, top_k * 2, domain_filter)
                store_type = "embedding"
            except EmbeddingError as e:
                logger.warning(f"Embedding search failed, falling back to keywords: {e.message}")
                raw = self.keyword_store.search(query, top_k * 2, domain_filter)
        else:
            raw = self.keyword_store.search(query, top_k * 2, domain_filter)

        # Seuil sur la qualité des données de l'API, pas sur le score de similarité
        results = [r for r in raw if r.entry.data_quality.completeness >= threshold]
        if complexity:
            results = [r for r in results if complexity_of(r.entry) == complexity]
        results = results[:top_k]

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        return SearchResponse(
            query=query,
            apis=[r.to_dict() for r in results],
            total_results=len(raw),
            execution_time_ms=elapsed_ms,
            store_type=store_type,
            intelligence_summary=self._intelligence_summary(results, store_type),
        )

    @staticmethod
    def _intelligence_summary(results: List[ScoredEntry], store_type: str) -> Dict[str, Any]:
        if not results:
            return {"store_type": store_type, "top_score": 0.0, "avg_score": 0.0, "domains": []}
        domains: List[str] = []
        for r in results:
            if r.entry.domain not in domains:
                domains.append(r.entry.domain)
        return {
            "store_type": store_type,
            "top_score": round(results[0].score, 4),
            "avg_score": round(sum(r.score for r in results) / len(results), 4),
            "domains": domains,
        }

    def get_api_by_id(self, api_id: str) -> Optional[ApiCatalogEntry]:
        return self.catalog.get(api_id)

    def get_apis_by_domain(self, domain: str) -> List[ApiCatalogEntry]:
        return self.catalog.by_domain(domain)

    def get_stats(self) -> Dict[str, Any]:
        domains: Dict[str, int] = {}
        for entry in self.catalog:
            domains[entry.domain] = domains.get(entry.domain, 0) + 1
        return {
            "total_apis": len(self.catalog),
            "domains": domains,
            "initialized": self.initialized,
            "store_type": self.store.store_type if self.store is not None else None,
        }
