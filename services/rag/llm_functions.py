"""
Outils (function calling) exposés au LLM et leur exécution côté serveur.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from api.exceptions import ResearchException
from services.rag.api_search import ApiSearchService
from services.rag.catalog import API_DOMAINS, CHART_TYPES
from services.rag.chart_spec import ChartSpecBuilder
from services.rag.llm_client import LLMError, parse_tool_arguments

logger = logging.getLogger(__name__)

MAX_TOP_K = 10

CHART_FUNCTIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "search_api_catalog",
            "description": (
                "Search the API catalog to find relevant data endpoints based on a natural "
                "language query. Returns the most relevant APIs for the user's request."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": (
                            "Natural language description of the data you're looking for "
                            "(e.g. 'DEX trading volume over time', 'stablecoin supply metrics')"
                        ),
                    },
                    "top_k": {
                        "type": "integer",
                        "description": "Number of most relevant APIs to return (default: 5, max: 10)",
                        "default": 5,
                        "minimum": 1,
                        "maximum": MAX_TOP_K,
                    },
                    "domain_filter": {
                        "type": "string",
                        "description": "Optional domain filter to limit search scope",
                        "enum": API_DOMAINS,
                    },
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "create_chart_spec",
            "description": (
                "Create a JSON chart specification from API search results and user intent: "
                "chart type, axes, series and metadata."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Title for the chart"},
                    "primary_api": {
                        "type": "string",
                        "description": "ID of the primary API to use for the chart data (from search results)",
                    },
                    "secondary_api": {
                        "type": "string",
                        "description": "Optional ID of a secondary API for comparison charts",
                    },
                    "transform": {
                        "type": "string",
                        "description": "Optional transformation when combining APIs (e.g. 'JOIN ON date column')",
                    },
                    "chart_type": {
                        "type": "string",
                        "description": "Type of chart based on data patterns and user intent",
                        "enum": CHART_TYPES,
                    },
                    "user_intent": {
                        "type": "string",
                        "description": "Original user query",
                    },
                },
                "required": ["title", "primary_api", "chart_type"],
            },
        },
    },
]

SYSTEM_PROMPT = """You are a Solana analytics assistant that helps users create charts from blockchain data.

You have access to a catalog of TopLedger APIs covering the Solana ecosystem:
- DEX trading (volume, TVL, traders, aggregators)
- Stablecoins (supply, transfers, liquidity, mint/burn)
- MEV (extraction, arbitrage, sandwich attacks)
- Protocol revenue (fees, earnings across protocols)
- Compute units (pricing, allocation, consumption)
- Wrapped BTC (holders, transfers, TVL)
- Specific protocols (Raydium, Orca, Metaplex, Helium)

## Workflow

1. Call search_api_catalog to find relevant data endpoints. Be specific and use
   domain filters when appropriate.
2. Call create_chart_spec with the best API id from the search results.
   Include a secondary API for comparison charts.

## Chart types

- line: time series, trends, price movements
- area: volume over time
- bar: categorical comparisons
- scatter: correlations
- stacked_bar: composition

Always search for APIs before creating a chart spec and use descriptive chart titles."""


def user_message(query: str) -> str:
    return f'Help me create a chart for: "{query}"'


def simplify_api(api: Dict[str, Any]) -> Dict[str, Any]:
    """Version compacte d'un résultat de recherche pour le contexte du LLM"""
    return {
        "id": api["id"],
        "title": api.get("title"),
        "domain": api.get("domain"),
        "description": api.get("description"),
        "score": api.get("score"),
        "columns": list((api.get("response_schema") or {}).keys()),
        "chart_types": api.get("chart_types") or [],
    }


class FunctionCallProcessor:
    """Exécute les tool calls du LLM; ne lève jamais, renvoie {success: False, error} en cas d'échec."""

    def __init__(self, search: ApiSearchService, builder: ChartSpecBuilder):
        self.search = search
        self.builder = builder
        self.last_search = None

    async def process(self, name: str, arguments: Any, apis_context: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        logger.debug(f"🔧 Processing function call: {name}")
        try:
            args = parse_tool_arguments(arguments)
        except LLMError as e:
            return {"success": False, "error": e.message}

        if name == "search_api_catalog":
            return await self._search_api_catalog(args)
        if name == "create_chart_spec":
            return self._create_chart_spec(args, apis_context)
        return {
            "success": False,
            "error": f"Unknown function: {name}",
            "available_functions": [f["function"]["name"] for f in CHART_FUNCTIONS],
        }

    async def _search_api_catalog(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = args.get("query")
        try:
            top_k = int(args.get("top_k") or 5)
        except (TypeError, ValueError):
            top_k = 5
        top_k = min(max(top_k, 1), MAX_TOP_K)
        try:
            result = await self.search.search(query or "", top_k=top_k, domain_filter=args.get("domain_filter"))
        except ResearchException as e:
            return {"success": False, "error": e.message, "query": query}

        self.last_search = result
        return {
            "success": True,
            "query": result.query,
            "total_results": result.total_results,
            "execution_time_ms": result.execution_time_ms,
            "apis": [simplify_api(api) for api in result.apis],
        }

    def _create_chart_spec(self, args: Dict[str, Any], apis_context: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
        primary = args.get("primary_api")
        if not primary:
            return {"success": False, "error": "primary_api is required"}
        context = apis_context
        if context is None and self.last_search is not None:
            context = self.last_search.apis
        try:
            spec = self.builder.create_chart_spec(
                primary,
                secondary_api_id=args.get("secondary_api"),
                chart_type=args.get("chart_type"),
                title=args.get("title"),
                transform=args.get("transform"),
                user_intent=args.get("user_intent"),
                apis_context=context,
            )
        except ResearchException as e:
            return {"success": False, "error": e.message, "title": args.get("title"), "primary_api": primary}

        return {
            "success": True,
            "chart_spec": spec.model_dump(),
            "validation": {"valid": True, "confidence_score": spec.metadata.confidence_score},
        }
