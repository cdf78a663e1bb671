"""
Metrics Router - métriques TopLedger typées

GET /api/metrics                 registre des métriques
GET /api/metrics/{name}          lignes normalisées + filtres (période, brush, devise)
GET /api/metrics/{name}/csv      export CSV des mêmes lignes
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query

from api.deps import get_metrics_service
from api.exceptions import ValidationException
from api.utils import csv_response, success_response
from services.chart_data import filter_by_brush, filter_by_currency, filter_by_time
from services.export import csv_filename, rows_to_csv
from services.metrics import MetricsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


async def _filtered_rows(
    service: MetricsService,
    name: str,
    date_part: Optional[str],
    time_filter: Optional[str],
    start: Optional[str],
    end: Optional[str],
    currency: Optional[str],
    refresh: bool,
) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    rows, meta = await service.get_metric(name, period=date_part, currency=currency, refresh=refresh)

    date_field = meta.get("date_field")
    if (time_filter or start or end) and not date_field:
        raise ValidationException("time_filter", f"metric '{name}' has no date column")

    if time_filter:
        rows = filter_by_time(rows, time_filter.upper(), date_field=date_field)
    if start or end:
        rows = filter_by_brush(rows, start, end, date_field=date_field)
    # Filtre ligne à ligne seulement pour les lignes multi-devises (colonne `currency`);
    # sinon la devise est déjà un paramètre de la requête amont
    if currency and any("currency" in row for row in rows):
        rows = filter_by_currency(rows, currency)

    filters = {"time_filter": time_filter, "start": start, "end": end, "currency": currency}
    return rows, {**meta, "count": len(rows), "filters": {k: v for k, v in filters.items() if v}}


@router.get("")
async def list_metrics(service: MetricsService = Depends(get_metrics_service)):
    metrics = service.list_metrics()
    return success_response(metrics, meta={"count": len(metrics)})


@router.get("/{name}")
async def get_metric(
    name: str,
    date_part: Optional[str] = Query(None, description="Granularité amont (W, M, Q, Y, ALL)"),
    time_filter: Optional[str] = Query(None, description="Fenêtre relative: D, W, M, Q, Y, ALL"),
    start: Optional[str] = Query(None, description="Début du brush (inclus)"),
    end: Optional[str] = Query(None, description="Fin du brush (incluse)"),
    currency: Optional[str] = Query(None, description="USD ou SOL"),
    refresh: bool = Query(False, description="Ignorer le cache"),
    service: MetricsService = Depends(get_metrics_service),
):
    rows, meta = await _filtered_rows(service, name, date_part, time_filter, start, end, currency, refresh)
    return success_response(rows, meta=meta)


@router.get("/{name}/csv")
async def export_metric_csv(
    name: str,
    date_part: Optional[str] = Query(None),
    time_filter: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    currency: Optional[str] = Query(None),
    service: MetricsService = Depends(get_metrics_service),
):
    rows, meta = await _filtered_rows(service, name, date_part, time_filter, start, end, currency, refresh=False)
    title = name if not meta.get("period") else f"{name} {meta['period']}"
    logger.info(f"CSV export for {name}: {len(rows)} rows")
    return csv_response(rows_to_csv(rows), csv_filename(title))
