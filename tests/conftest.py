"""
Configuration globale pytest pour tous les tests.

Ajoute le répertoire racine du projet au PYTHONPATH
pour permettre les imports (ex: from services.xxx import ...)
"""

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ajouter le répertoire racine du projet au sys.path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import LLMConfig, RAGConfig, TopLedgerConfig
from services.rag.catalog import ApiCatalog
from shared.circuit_breaker import openai_circuit, topledger_circuit


# ============================================================================
# Isolation des circuits globaux
# ============================================================================

@pytest.fixture(autouse=True)
def reset_circuits():
    topledger_circuit.reset()
    openai_circuit.reset()
    yield
    topledger_circuit.reset()
    openai_circuit.reset()


# ============================================================================
# Configurations de test (aucun accès réseau, pas de délais)
# ============================================================================

@pytest.fixture
def topledger_config() -> TopLedgerConfig:
    return TopLedgerConfig(
        api_key="test-key",
        query_keys={"13168": "solana-key"},
        max_retries=1,
        retry_base_delay_sec=0,
        job_poll_interval_sec=0,
        job_max_polls=3,
    )


@pytest.fixture
def llm_config() -> LLMConfig:
    return LLMConfig(openai_api_key="sk-test", model="gpt-test")


@pytest.fixture
def llm_config_no_key() -> LLMConfig:
    return LLMConfig(openai_api_key=None)


@pytest.fixture
def rag_config(tmp_path) -> RAGConfig:
    return RAGConfig(
        catalog_path=tmp_path / "api-catalog.json",
        vector_store_path=tmp_path / "vector-store.json",
        cache_path=tmp_path / "metadata-cache.json",
        analytics_path=tmp_path / "query-analytics.jsonl",
        use_embeddings=False,
    )


# ============================================================================
# Catalogue d'exemple
# ============================================================================

@pytest.fixture
def sample_catalog_entries() -> List[Dict[str, Any]]:
    return [
        {
            "id": "dex-volume",
            "domain": "dex",
            "title": "DEX Trading Volume",
            "url": "https://analytics.topledger.xyz/tl/api/queries/13192/results",
            "method": "POST",
            "response_schema": {"date": "time", "volume": "volume"},
            "keywords": ["dex", "volume", "trading", "swap"],
            "description": "Daily DEX trading volume on Solana",
            "aggregation_types": ["weekly", "monthly"],
            "chart_types": ["area", "line"],
        },
        {
            "id": "dex-traders",
            "domain": "dex",
            "title": "Active DEX Traders",
            "url": "https://analytics.topledger.xyz/tl/api/queries/13181/results.json",
            "response_schema": {"date": "time", "active_signer": "count", "new_signer": "count"},
            "keywords": ["traders", "users", "signers"],
            "description": "Active and new DEX traders",
            "chart_types": ["line", "bar"],
        },
        {
            "id": "protocol-revenue",
            "domain": "protocol-revenue",
            "title": "Protocol Revenue by Segment",
            "url": "https://analytics.topledger.xyz/solana/api/queries/13168/results",
            "method": "POST",
            "response_schema": {"block_date": "time", "segment": "category", "protocol_revenue": "revenue"},
            "keywords": ["revenue", "protocol", "segment"],
            "description": "Protocol revenue split by segment",
            "chart_types": ["stacked_bar"],
        },
        {
            "id": "stablecoin-supply",
            "domain": "stablecoins",
            "title": "Stablecoin Supply",
            "url": "https://analytics.topledger.xyz/tl/api/queries/99999/results.json",
            "response_schema": {"date": "time", "usdc_supply": "supply", "usdt_supply": "supply", "total_supply": "supply"},
            "keywords": ["stablecoin", "usdc", "usdt", "supply"],
            "description": "Circulating stablecoin supply",
            "chart_types": ["area"],
        },
        {
            "id": "network-tps",
            "domain": "overview",
            "title": "Network TPS",
            "url": "https://analytics.topledger.xyz/tl/api/queries/13335/results.json",
            "response_schema": {"block_date": "time", "total_tps": "metric", "success_tps": "metric"},
            "keywords": ["tps", "throughput", "performance"],
            "description": "Transactions per second",
            "chart_types": ["line"],
        },
    ]


@pytest.fixture
def sample_catalog(sample_catalog_entries) -> ApiCatalog:
    return ApiCatalog.from_raw({"version": "2.0.0", "entries": sample_catalog_entries})
