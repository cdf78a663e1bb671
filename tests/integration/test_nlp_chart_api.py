"""
Tests d'intégration - endpoints /api/nlp-chart (repli sans clé OpenAI)
"""
from unittest.mock import AsyncMock, MagicMock

from api import deps
from api.main import app


class TestCreateChart:
    def test_query_required(self, client):
        response = client.post("/api/nlp-chart", json={"query": "   "})
        assert response.status_code == 400
        assert response.json() == {"error": "Query is required"}

    def test_missing_query_field(self, client):
        response = client.post("/api/nlp-chart", json={})
        assert response.status_code == 400

    def test_fallback_configuration(self, client, metadata_cache):
        response = client.post("/api/nlp-chart", json={"query": "dex trading volume", "sessionId": "s-1"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["cached"] is False
        assert body["ragMetadata"]["fallbackUsed"] is True
        assert body["configuration"]["suggestedApis"][0] == "dex-volume"
        assert body["matchingApis"][0]["id"] == "dex-volume"
        assert metadata_cache.path.exists()

    def test_second_call_cached(self, client):
        client.post("/api/nlp-chart", json={"query": "network tps"})
        body = client.post("/api/nlp-chart", json={"query": "Network TPS"}).json()
        assert body["cached"] is True
        assert body["cacheId"]

    def test_no_match(self, client):
        body = client.post("/api/nlp-chart", json={"query": "zzzzzz qqqqqq"}).json()
        assert body["success"] is False
        assert body["message"] == "No matching APIs found"

    def test_pipeline_failure_logged(self, client, tracker):
        failing = MagicMock()
        failing.process = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[deps.get_pipeline] = lambda: failing

        response = client.post("/api/nlp-chart", json={"query": "dex volume"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to process natural language query"}
        metrics = tracker.get_system_metrics()
        assert metrics["total_queries"] == 1
        assert metrics["success_rate"] == 0.0


class TestStatusAndFeedback:
    def test_status(self, client):
        body = client.get("/api/nlp-chart").json()
        assert body["status"] == "ready"
        assert body["llm_available"] is False
        assert body["rag"]["total_apis"] == 5

    def test_feedback_on_query_and_cache(self, client):
        first = client.post("/api/nlp-chart", json={"query": "stablecoin supply"}).json()
        second = client.post("/api/nlp-chart", json={"query": "stablecoin supply"}).json()

        response = client.post("/api/nlp-chart/feedback", json={
            "feedback": "positive", "queryId": first["queryId"], "cacheId": second["cacheId"],
        })
        assert response.status_code == 200
        assert response.json()["data"] == {"cache_updated": True, "query_updated": True}

    def test_feedback_requires_an_id(self, client):
        response = client.post("/api/nlp-chart/feedback", json={"feedback": "positive"})
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationException"

    def test_invalid_feedback_value(self, client):
        response = client.post("/api/nlp-chart/feedback", json={"feedback": "meh", "queryId": "x"})
        assert response.status_code == 400
