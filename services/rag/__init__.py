"""
Pipeline RAG NLP -> chart

- catalog / catalog_builder: catalogue d'APIs TopLedger et typage des colonnes
- vector_store / api_search: recherche lexicale ou par embeddings
- chart_spec / llm_functions / llm_client: génération du chart spec (LLM + heuristiques)
- metadata_cache / analytics_tracker: cache requête -> spec et télémétrie
"""

from .api_search import ApiSearchService, SearchResponse
from .catalog import ApiCatalog, ApiCatalogEntry
from .chart_spec import ChartSpec, ChartSpecBuilder, ChartSpecError
from .pipeline import NLPChartPipeline

__all__ = [
    "ApiSearchService",
    "SearchResponse",
    "ApiCatalog",
    "ApiCatalogEntry",
    "ChartSpec",
    "ChartSpecBuilder",
    "ChartSpecError",
    "NLPChartPipeline",
]
