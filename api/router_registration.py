"""
Router registration for the TopLedger Research API

Imports and registers all API routers in the FastAPI application.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def register_routers(app: FastAPI) -> None:
    """
    Register all API routers to the FastAPI application.

    Routers are organized by domain:
    - Health
    - Metrics & Proxy (TopLedger data)
    - NLP -> Chart & RAG admin
    - Dashboards
    - SEO

    Args:
        app: FastAPI application instance
    """
    logger.info("📦 Starting router registration...")

    # ========== Health ==========
    from api.health_router import router as health_router

    app.include_router(health_router)
    logger.info("✅ Health router registered")

    # ========== Metrics & Proxy ==========
    from api.metrics_router import router as metrics_router
    from api.proxy_router import router as proxy_router

    app.include_router(metrics_router)
    app.include_router(proxy_router)
    logger.info("✅ Metrics & Proxy routers registered")

    # ========== NLP -> Chart ==========
    from api.nlp_chart_router import router as nlp_chart_router
    from api.rag_admin_router import router as rag_admin_router

    app.include_router(nlp_chart_router)
    app.include_router(rag_admin_router)
    logger.info("✅ NLP chart & RAG admin routers registered")

    # ========== Dashboards ==========
    from api.dashboards_router import router as dashboards_router

    app.include_router(dashboards_router)
    logger.info("✅ Dashboards router registered")

    # ========== SEO ==========
    from api.seo_router import router as seo_router

    app.include_router(seo_router)
    logger.info("✅ SEO router registered")

    logger.info("🎉 All routers registered successfully")
