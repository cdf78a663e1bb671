"""
Fixtures d'intégration: application FastAPI complète, dépendances surchargées
(catalogue d'exemple, fichiers temporaires, TopLedger simulé). Le startup
n'est pas exécuté (TestClient hors bloc `with`).
"""
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from api import deps
from api.main import app
from api.proxy_router import _proxy_cache
from connectors.topledger import TopLedgerClient
from services.dashboards import DashboardStore
from services.metrics import MetricsService
from services.rag.analytics_tracker import AnalyticsTracker
from services.rag.api_search import ApiSearchService
from services.rag.metadata_cache import MetadataCache
from services.rag.pipeline import NLPChartPipeline
from shared.circuit_breaker import CircuitBreaker

METRIC_ROWS: List[Dict[str, Any]] = [
    {"date": "2024-01-01", "volume": 100.0},
    {"date": "2024-02-01", "volume": 200.0},
    {"date": "2024-03-01", "volume": 300.0},
]


class FakeTopLedger:
    """Handler httpx.MockTransport: répond des lignes ou simule une panne."""

    def __init__(self):
        self.fail = False
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(400, json={"message": "bad query"})
        return httpx.Response(200, json={"query_result": {"data": {"rows": [{"date": "2024-01-01", "value": 1}]}}})


@pytest.fixture
def search_service(sample_catalog, rag_config, llm_config_no_key):
    return ApiSearchService(sample_catalog, rag_config, llm_config_no_key)


@pytest.fixture
def metadata_cache(tmp_path):
    return MetadataCache(tmp_path / "metadata-cache.json")


@pytest.fixture
def tracker(tmp_path):
    return AnalyticsTracker(tmp_path / "query-analytics.jsonl")


@pytest.fixture
def pipeline(search_service, metadata_cache, tracker):
    llm = MagicMock()
    llm.available = False
    return NLPChartPipeline(search=search_service, llm=llm, cache=metadata_cache, tracker=tracker)


@pytest.fixture
def dashboard_store(tmp_path):
    return DashboardStore(tmp_path / "dashboards.json")


@pytest.fixture
def fake_topledger():
    return FakeTopLedger()


@pytest.fixture
def topledger_client(topledger_config, fake_topledger):
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_topledger))
    return TopLedgerClient(topledger_config, client=http, circuit=CircuitBreaker("test-topledger", 5, 60))


@pytest.fixture
def metrics_service():
    service = MagicMock(spec=MetricsService)
    service.list_metrics.return_value = [{"name": "volume_history", "query_id": 13192}]
    service.get_metric = AsyncMock(return_value=(
        [dict(r) for r in METRIC_ROWS],
        {"metric": "volume_history", "date_field": "date", "period": "M"},
    ))
    return service


@pytest.fixture
def client(search_service, metadata_cache, tracker, pipeline, dashboard_store, topledger_client, metrics_service):
    app.dependency_overrides.update({
        deps.get_search_service: lambda: search_service,
        deps.get_metadata_cache: lambda: metadata_cache,
        deps.get_analytics_tracker: lambda: tracker,
        deps.get_pipeline: lambda: pipeline,
        deps.get_dashboard_store: lambda: dashboard_store,
        deps.get_topledger_client: lambda: topledger_client,
        deps.get_metrics_service: lambda: metrics_service,
    })
    _proxy_cache.clear()
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    _proxy_cache.clear()
