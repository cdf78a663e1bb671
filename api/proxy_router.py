"""
TopLedger Proxy Router

Relaie les requêtes du front vers l'API TopLedger (évite CORS et garde les
clés côté serveur).

- Cache mémoire (CacheTTL.PROXY)
- Fallback sur la dernière réponse connue si l'amont échoue
- Hôtes restreints à `topledger.allowed_proxy_hosts`
"""
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.deps import get_topledger_client
from api.utils import cache_get, cache_set, make_cache_key, success_response
from config.ttl_config import CacheTTL
from connectors.topledger import TopLedgerClient, TopLedgerError
from shared.circuit_breaker import CircuitOpenError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proxy", tags=["proxy"])

# key -> (payload, timestamp)
_proxy_cache: Dict[str, Tuple[Any, float]] = {}


class ProxyRequest(BaseModel):
    url: str
    parameters: Optional[Dict[str, Any]] = None


async def _fetch_with_cache_and_fallback(
    client: TopLedgerClient,
    url: str,
    parameters: Optional[Dict[str, Any]] = None,
    refresh: bool = False,
):
    client.validate_proxy_url(url)
    method = "GET" if parameters is None else "POST"
    key = make_cache_key(method, url, sorted(parameters.items()) if parameters else None)

    if not refresh:
        cached = cache_get(_proxy_cache, key, CacheTTL.PROXY)
        if cached is not None:
            logger.debug(f"Proxy cache hit for {url}")
            return success_response(cached, meta={"cached": True, "stale": False})

    try:
        payload = await client.proxy(url, parameters)
    except (TopLedgerError, CircuitOpenError) as e:
        stale = _proxy_cache.get(key)
        if stale is None:
            raise
        logger.warning(f"Proxy upstream failed for {url}, serving stale data: {e}")
        return success_response(stale[0], meta={"cached": True, "stale": True})

    cache_set(_proxy_cache, key, payload)
    return success_response(payload, meta={"cached": False, "stale": False})


@router.get("")
async def proxy_get(
    url: str = Query(..., description="URL TopLedger à relayer"),
    refresh: bool = Query(False),
    client: TopLedgerClient = Depends(get_topledger_client),
):
    return await _fetch_with_cache_and_fallback(client, url, refresh=refresh)


@router.post("")
async def proxy_post(
    payload: ProxyRequest,
    refresh: bool = Query(False),
    client: TopLedgerClient = Depends(get_topledger_client),
):
    return await _fetch_with_cache_and_fallback(client, payload.url, payload.parameters or {}, refresh=refresh)
