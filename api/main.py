"""
TopLedger Research API - point d'entrée FastAPI

    uvicorn api.main:app --reload
"""
from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

# Charger les variables d'environnement depuis .env
load_dotenv()

# Configuration centralisée avec Pydantic
from config import get_settings
from shared.logging_setup import setup_logging

settings = get_settings()
setup_logging(settings.logging)
logger = logging.getLogger(__name__)

from api.exception_handlers import setup_exception_handlers
from api.middlewares import request_timing_middleware
from api.router_registration import register_routers
from api.startup import get_shutdown_handler, get_startup_handler

app = FastAPI(
    title="TopLedger Research API",
    description="Métriques on-chain Solana, proxy TopLedger et pipeline NLP -> chart",
    version="1.0.0",
    debug=settings.is_debug_enabled(),
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)
logger.info(f"FastAPI initialized (environment={settings.environment})")


@app.on_event("startup")
async def startup():
    """Application startup - catalogue, index de recherche, caches"""
    handler = get_startup_handler()
    await handler()


@app.on_event("shutdown")
async def shutdown():
    """Application shutdown - cleanup resources"""
    handler = get_shutdown_handler()
    await handler()


setup_exception_handlers(app)

# CORS avec configuration dynamique
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Compression GZip (réponses de métriques volumineuses)
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.middleware("http")(request_timing_middleware)

register_routers(app)
