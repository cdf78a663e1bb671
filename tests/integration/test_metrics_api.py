"""
Tests d'intégration - endpoints /api/metrics (service simulé)
"""
from datetime import date


def test_list_metrics(client):
    body = client.get("/api/metrics").json()
    assert body["ok"] is True
    assert body["meta"]["count"] == 1
    assert body["data"][0]["name"] == "volume_history"


def test_get_metric_passes_options(client, metrics_service):
    body = client.get("/api/metrics/volume_history?date_part=M&currency=USD&refresh=true").json()
    assert len(body["data"]) == 3
    metrics_service.get_metric.assert_awaited_once_with("volume_history", period="M", currency="USD", refresh=True)
    assert body["meta"]["filters"] == {"currency": "USD"}


def test_currency_filters_multi_currency_rows(client, metrics_service):
    metrics_service.get_metric.return_value = (
        [{"date": "2024-01-01", "currency": "USD", "v": 1},
         {"date": "2024-01-01", "currency": "SOL", "v": 2},
         {"date": "2024-01-02", "v": 3}],
        {"metric": "x", "date_field": "date"},
    )
    body = client.get("/api/metrics/x?currency=usd").json()
    assert [r["v"] for r in body["data"]] == [1]
    assert body["meta"]["count"] == 1


def test_brush_filter(client):
    body = client.get("/api/metrics/volume_history?start=2024-02-01&end=2024-03-01").json()
    assert [r["volume"] for r in body["data"]] == [200.0, 300.0]
    assert body["meta"]["count"] == 2
    assert body["meta"]["filters"] == {"start": "2024-02-01", "end": "2024-03-01"}


def test_inverted_brush_rejected(client):
    response = client.get("/api/metrics/volume_history?start=2024-03-01&end=2024-01-01")
    assert response.status_code == 400


def test_invalid_time_filter(client):
    response = client.get("/api/metrics/volume_history?time_filter=X")
    assert response.status_code == 400


def test_time_filter_requires_date_column(client, metrics_service):
    metrics_service.get_metric.return_value = ([{"segment": "dex", "revenue": 1}], {"metric": "x"})
    response = client.get("/api/metrics/x?time_filter=W")
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "time_filter"


def test_csv_export(client):
    response = client.get("/api/metrics/volume_history/csv?start=2024-02-01")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    expected = f'attachment; filename="volume_history_m_{date.today().isoformat()}.csv"'
    assert response.headers["content-disposition"] == expected
    assert response.text == "date,volume\n2024-02-01,200.0\n2024-03-01,300.0\n"
