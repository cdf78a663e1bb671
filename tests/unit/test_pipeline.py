"""Tests unitaires pour services/rag/pipeline.py (LLM simulé)"""
import json

import pytest

from services.rag.analytics_tracker import AnalyticsTracker
from services.rag.api_search import ApiSearchService, SearchResponse
from services.rag.llm_client import LLMError
from services.rag.metadata_cache import MetadataCache
from services.rag.pipeline import NO_MATCH_MESSAGE, NLPChartPipeline, to_legacy_format


def tool_call(call_id, name, arguments):
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(arguments)}}


class FakeLLM:
    """Rejoue une liste de messages assistant (ou d'exceptions)."""

    def __init__(self, responses=None, available=True):
        self.responses = list(responses or [])
        self.available = available
        self.calls = []

    async def create(self, messages, tools=None, tool_choice="auto"):
        self.calls.append(len(messages))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


SEARCH_THEN_SPEC = [
    {"role": "assistant", "tool_calls": [tool_call("c1", "search_api_catalog", {"query": "dex volume"})]},
    {"role": "assistant", "tool_calls": [tool_call("c2", "create_chart_spec", {
        "title": "DEX Volume", "primary_api": "dex-volume", "chart_type": "area",
    })]},
]


@pytest.fixture
def make_pipeline(sample_catalog, rag_config, llm_config_no_key, tmp_path):
    def _make(llm):
        return NLPChartPipeline(
            search=ApiSearchService(sample_catalog, rag_config, llm_config_no_key),
            llm=llm,
            cache=MetadataCache(tmp_path / "cache.json"),
            tracker=AnalyticsTracker(tmp_path / "analytics.jsonl"),
        )
    return _make


# ── 1. Chemin LLM ──

class TestLLMPath:
    @pytest.mark.asyncio
    async def test_tool_calls_produce_spec(self, make_pipeline):
        llm = FakeLLM(SEARCH_THEN_SPEC)
        pipeline = make_pipeline(llm)

        result = await pipeline.process("dex volume", session_id="s1", user_agent="pytest")

        assert result["success"] is True
        assert result["cached"] is False
        assert result["queryId"]
        config = result["configuration"]
        assert config["name"] == "DEX Volume"
        assert config["type"] == "area"
        assert config["xColumn"] == "date"
        assert config["yColumns"] == ["volume"]
        assert config["suggestedApis"] == ["dex-volume"]
        assert result["ragMetadata"]["fallbackUsed"] is False
        assert result["matchingApis"][0]["id"] == "dex-volume"
        assert result["matchingApis"][0]["suggestedColumns"] == {"xColumn": "date", "yColumns": ["volume"], "groupBy": ""}
        assert llm.calls == [2, 4]
        assert pipeline.cache.size() == 1

    @pytest.mark.asyncio
    async def test_second_query_served_from_cache(self, make_pipeline):
        llm = FakeLLM(SEARCH_THEN_SPEC)
        pipeline = make_pipeline(llm)
        first = await pipeline.process("dex volume")

        second = await pipeline.process("Show the DEX volume")

        assert second["cached"] is True
        assert second["configuration"]["name"] == first["configuration"]["name"]
        assert second["cacheId"]
        assert len(llm.calls) == 2
        metrics = pipeline.tracker.get_system_metrics()
        assert metrics["total_queries"] == 2
        assert metrics["cache_hit_rate"] == 0.5

    @pytest.mark.asyncio
    async def test_search_only_builds_spec_from_results(self, make_pipeline):
        llm = FakeLLM([
            {"role": "assistant", "tool_calls": [tool_call("c1", "search_api_catalog", {"query": "network tps"})]},
            {"role": "assistant", "content": "Here is what I found."},
        ])
        result = await make_pipeline(llm).process("network tps")

        assert result["success"] is True
        assert result["ragMetadata"]["fallbackUsed"] is False
        assert result["configuration"]["suggestedApis"][0] == "network-tps"


# ── 2. Repli ──

class TestFallback:
    @pytest.mark.asyncio
    async def test_without_api_key(self, make_pipeline):
        llm = FakeLLM(available=False)
        result = await make_pipeline(llm).process("dex trading volume")

        assert result["success"] is True
        assert result["ragMetadata"]["fallbackUsed"] is True
        assert result["configuration"]["name"] == "Dex trading volume"
        assert result["configuration"]["suggestedApis"][0] == "dex-volume"
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_llm_error(self, make_pipeline):
        llm = FakeLLM([LLMError("quota_exceeded", "quota", status_code=429)])
        result = await make_pipeline(llm).process("stablecoin supply")

        assert result["success"] is True
        assert result["ragMetadata"]["fallbackUsed"] is True
        assert result["configuration"]["suggestedApis"][0] == "stablecoin-supply"

    @pytest.mark.asyncio
    async def test_llm_without_tool_calls(self, make_pipeline):
        llm = FakeLLM([{"role": "assistant", "content": "I cannot help."}])
        result = await make_pipeline(llm).process("protocol revenue")

        assert result["ragMetadata"]["fallbackUsed"] is True
        assert result["configuration"]["suggestedApis"][0] == "protocol-revenue"

    @pytest.mark.asyncio
    async def test_no_match(self, make_pipeline):
        pipeline = make_pipeline(FakeLLM(available=False))
        result = await pipeline.process("zzzzzz qqqqqq")

        assert result["success"] is False
        assert result["message"] == NO_MATCH_MESSAGE
        assert result["configuration"]["reasoning"] == NO_MATCH_MESSAGE
        assert result["matchingApis"] == []
        assert pipeline.cache.size() == 0
        metrics = pipeline.tracker.get_system_metrics()
        assert metrics["success_rate"] == 0.0


# ── 3. Format legacy ──

class TestLegacyFormat:
    def test_without_spec(self):
        result = to_legacy_format(None, SearchResponse(query="x"), "x")
        assert result["configuration"]["name"] == "Chart: x"
        assert result["configuration"]["yColumns"] == ["value"]
        assert result["ragMetadata"]["confidence"] is None
        assert result["originalQuery"] == "x"

    def test_series_falls_back_to_metric_like_column(self, sample_catalog):
        api = sample_catalog.get("stablecoin-supply").model_dump()
        search = SearchResponse(query="q", apis=[api], total_results=1)
        spec = {"title": "T", "primary_api": "dex-volume", "chart_type": "line",
                "series": [{"column": "volume", "type": "volume"}]}
        result = to_legacy_format(spec, search, "q")
        suggested = result["matchingApis"][0]["suggestedColumns"]
        assert suggested == {"xColumn": "date", "yColumns": ["usdc_supply"], "groupBy": ""}

    def test_matching_api_keys(self, sample_catalog):
        api = sample_catalog.get("dex-traders").model_dump()
        search = SearchResponse(query="q", apis=[api], total_results=1)
        spec = {"title": "T", "primary_api": "dex-traders", "chart_type": "line",
                "x_axis": {"column": "block_date", "type": "time"},
                "series": [{"column": "signer", "type": "count"}]}
        matching = to_legacy_format(spec, search, "q")["matchingApis"][0]

        assert set(matching) == {"id", "name", "chartTitle", "endpoint", "method", "columns", "page",
                                 "apiKey", "additionalOptions", "suggestedColumns"}
        assert matching["name"] == matching["chartTitle"] == "Active DEX Traders"
        assert matching["endpoint"] == api["url"]
        assert matching["columns"] == ["date", "active_signer", "new_signer"]
        assert matching["page"] == "dex"
        assert matching["apiKey"] == ""
        assert matching["additionalOptions"] == {}
        # block_date -> colonne temps de l'API, signer -> correspondance partielle du nom
        assert matching["suggestedColumns"] == {"xColumn": "date", "yColumns": ["active_signer"], "groupBy": ""}

    def test_default_columns_without_spec(self, sample_catalog):
        api = sample_catalog.get("protocol-revenue").model_dump()
        search = SearchResponse(query="q", apis=[api], total_results=1)
        matching = to_legacy_format(None, search, "q")["matchingApis"][0]
        assert matching["suggestedColumns"] == {"xColumn": "block_date", "yColumns": ["protocol_revenue"], "groupBy": ""}
