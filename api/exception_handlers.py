"""
Exception handlers for the research API.

Maps the custom exception hierarchy (and open circuits) to the standard
error envelope: {"ok": false, "error", "message", "details", "path"}.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.exceptions import (
    APIException,
    ConfigurationException,
    DataException,
    ErrorCodes,
    ResearchException,
    ValidationException,
)
from shared.circuit_breaker import CircuitOpenError

logger = logging.getLogger(__name__)


def _status_for(exc: ResearchException) -> int:
    if isinstance(exc, APIException):
        return exc.status_code or ErrorCodes.API_UNAVAILABLE
    if isinstance(exc, ValidationException):
        return ErrorCodes.INVALID_INPUT
    if isinstance(exc, ConfigurationException):
        return ErrorCodes.INVALID_CONFIG
    if isinstance(exc, DataException):
        return ErrorCodes.DATA_NOT_FOUND
    return 400


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Configure global exception handlers for the FastAPI application.

    Handles:
    - ResearchException and subclasses
    - CircuitOpenError (503 with Retry-After)
    - Generic Python exceptions as fallback
    """

    @app.exception_handler(ResearchException)
    async def research_exception_handler(request: Request, exc: ResearchException):
        """Gestionnaire pour toutes les exceptions personnalisées"""
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.warning(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={
                "ok": False,
                "error": exc.__class__.__name__,
                "message": exc.message,
                "details": exc.details,
                "path": request.url.path,
            },
        )

    @app.exception_handler(CircuitOpenError)
    async def circuit_open_handler(request: Request, exc: CircuitOpenError):
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": str(int(exc.recovery_remaining) or 1)},
            content={
                "ok": False,
                "error": "CircuitOpenError",
                "message": str(exc),
                "details": {"circuit": exc.circuit_name},
                "path": request.url.path,
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Gestionnaire pour toutes les autres exceptions"""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "details": str(exc) if app.debug else None,
                "path": request.url.path,
            },
        )

    logger.info("✅ Exception handlers configured")
