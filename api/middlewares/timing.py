"""
Request timing middleware.

Mesure la durée de traitement, propage un identifiant de requête
(X-Request-ID, repris du client ou généré) et logue en JSON les requêtes
en erreur ou lentes.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from time import monotonic
from fastapi import Request
from fastapi.responses import Response
from config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

SLOW_REQUEST_SEC = 1.0


async def request_timing_middleware(request: Request, call_next) -> Response:
    """
    Ajoute X-Process-Time et X-Request-ID aux réponses.

    Logging:
    - Development (debug): toutes les requêtes
    - Sinon: seulement les erreurs (4xx/5xx) ou requêtes lentes (>1s)
    """
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    token = request_id_var.set(request_id)
    start_time = monotonic()
    try:
        response = await call_next(request)
    except Exception:
        request_id_var.reset(token)
        raise
    process_time = monotonic() - start_time

    log_record = {
        "ts": time.time(),
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": round(process_time * 1000, 2),
        "client_ip": request.client.host if request.client else "unknown",
    }

    if settings.is_debug_enabled() or response.status_code >= 400 or process_time > SLOW_REQUEST_SEC:
        logger.info(json.dumps(log_record, ensure_ascii=False))

    request_id_var.reset(token)

    response.headers["X-Process-Time"] = f"{process_time:.3f}"
    response.headers["X-Request-ID"] = request_id
    return response
