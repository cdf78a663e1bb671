"""Tests unitaires pour services/rag/llm_functions.py"""
import json

import pytest

from services.rag.api_search import ApiSearchService
from services.rag.chart_spec import ChartSpecBuilder
from services.rag.llm_functions import (
    CHART_FUNCTIONS,
    MAX_TOP_K,
    FunctionCallProcessor,
    simplify_api,
    user_message,
)


@pytest.fixture
def processor(sample_catalog, rag_config, llm_config_no_key):
    search = ApiSearchService(sample_catalog, rag_config, llm_config_no_key)
    return FunctionCallProcessor(search, ChartSpecBuilder(sample_catalog))


def test_function_definitions():
    names = [f["function"]["name"] for f in CHART_FUNCTIONS]
    assert names == ["search_api_catalog", "create_chart_spec"]
    create = CHART_FUNCTIONS[1]["function"]["parameters"]
    assert create["required"] == ["title", "primary_api", "chart_type"]


def test_user_message():
    assert user_message("dex volume") == 'Help me create a chart for: "dex volume"'


def test_simplify_api(sample_catalog):
    api = sample_catalog.get("dex-traders").model_dump()
    api["score"] = 0.9
    simplified = simplify_api(api)
    assert simplified["columns"] == ["date", "active_signer", "new_signer"]
    assert simplified["score"] == 0.9
    assert "url" not in simplified


class TestSearchFunction:
    @pytest.mark.asyncio
    async def test_search(self, processor):
        result = await processor.process("search_api_catalog", json.dumps({"query": "dex trading volume"}))
        assert result["success"] is True
        assert result["apis"][0]["id"] == "dex-volume"
        assert processor.last_search is not None

    @pytest.mark.asyncio
    async def test_top_k_clamped(self, processor, monkeypatch):
        captured = {}
        original = processor.search.search

        async def spy(query, top_k=5, domain_filter=None):
            captured["top_k"] = top_k
            return await original(query, top_k=top_k, domain_filter=domain_filter)

        monkeypatch.setattr(processor.search, "search", spy)
        await processor.process("search_api_catalog", {"query": "volume", "top_k": 50})
        assert captured["top_k"] == MAX_TOP_K

    @pytest.mark.asyncio
    async def test_empty_query_reported(self, processor):
        result = await processor.process("search_api_catalog", {"query": ""})
        assert result["success"] is False
        assert "error" in result


class TestChartSpecFunction:
    @pytest.mark.asyncio
    async def test_create_from_last_search(self, processor):
        await processor.process("search_api_catalog", {"query": "network tps"})
        result = await processor.process("create_chart_spec", {
            "title": "Solana TPS", "primary_api": "network-tps", "chart_type": "line",
        })
        assert result["success"] is True
        assert result["chart_spec"]["title"] == "Solana TPS"
        assert result["validation"]["valid"] is True

    @pytest.mark.asyncio
    async def test_missing_primary(self, processor):
        result = await processor.process("create_chart_spec", {"title": "X", "chart_type": "line"})
        assert result == {"success": False, "error": "primary_api is required"}

    @pytest.mark.asyncio
    async def test_unknown_primary(self, processor):
        result = await processor.process("create_chart_spec", {
            "title": "X", "primary_api": "nope", "chart_type": "line",
        })
        assert result["success"] is False
        assert result["primary_api"] == "nope"


class TestErrors:
    @pytest.mark.asyncio
    async def test_unknown_function(self, processor):
        result = await processor.process("delete_everything", {})
        assert result["success"] is False
        assert result["available_functions"] == ["search_api_catalog", "create_chart_spec"]

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, processor):
        result = await processor.process("search_api_catalog", "{not json")
        assert result["success"] is False
