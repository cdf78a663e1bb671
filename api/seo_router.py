"""
SEO Router - sitemap.xml, robots.txt et métadonnées des pages de charts
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, Response

from api.utils import success_response
from config import get_settings
from services.seo import build_robots, build_sitemap, collect_chart_ids, generate_chart_seo

logger = logging.getLogger(__name__)

router = APIRouter(tags=["seo"])


@router.get("/sitemap.xml")
async def sitemap():
    settings = get_settings()
    chart_ids = collect_chart_ids(settings.storage.chart_configs_dir)
    xml = build_sitemap(settings.site_base_url, chart_ids=chart_ids)
    return Response(content=xml, media_type="application/xml")


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots():
    return build_robots(get_settings().site_base_url)


@router.get("/api/seo/chart")
async def chart_seo(
    title: str = Query(..., min_length=1),
    subtitle: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
):
    return success_response(generate_chart_seo(title, subtitle, page))
