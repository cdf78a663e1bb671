# connectors/topledger.py
"""
Client de l'API de requêtes TopLedger (Redash).

Endpoints:
- GET  {base}/queries/{id}/results.json?api_key=...   dernier résultat en cache
- POST {base}/queries/{id}/results?api_key=...        exécution avec paramètres
       -> {"query_result": {...}} ou {"job": {...}} (exécution asynchrone)
- GET  {base}/jobs/{job_id}?api_key=...               statut d'un job
- GET  {base}/query_results/{result_id}?api_key=...   résultat d'un job terminé
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from api.exceptions import APIException, ConfigurationException, ValidationException
from config.settings import TopLedgerConfig
from shared.circuit_breaker import CircuitBreaker, topledger_circuit

log = logging.getLogger(__name__)

# Statuts de job Redash
JOB_PENDING = 1
JOB_STARTED = 2
JOB_SUCCESS = 3
JOB_FAILURE = 4
JOB_CANCELLED = 5

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class TopLedgerError(APIException):
    """Erreur renvoyée par l'API TopLedger (HTTP, job en échec, payload invalide)."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__("TopLedger", message, status_code=status_code or 502, details=details)


class TopLedgerTimeoutError(TopLedgerError):
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message, status_code=504, details=details)


def extract_rows(payload: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Extrait query_result.data.rows (accepte aussi le query_result seul)."""
    if not isinstance(payload, dict):
        return []
    result = payload.get("query_result", payload)
    data = result.get("data") if isinstance(result, dict) else None
    rows = data.get("rows") if isinstance(data, dict) else None
    if not isinstance(rows, list):
        log.warning("TopLedger payload without query_result.data.rows")
        return []
    return rows


class TopLedgerClient:
    """Client async TopLedger avec retries, backoff exponentiel et circuit breaker."""

    def __init__(
        self,
        config: TopLedgerConfig,
        client: Optional[httpx.AsyncClient] = None,
        circuit: CircuitBreaker = topledger_circuit,
    ):
        self.config = config
        self.circuit = circuit
        self._client = client or httpx.AsyncClient(timeout=config.timeout_sec)
        self._owns_client = client is None

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    def _base(self, base: str) -> str:
        if base == "solana":
            return self.config.solana_base_url.rstrip("/")
        if base == "tl":
            return self.config.base_url.rstrip("/")
        raise ValidationException("base", "unknown TopLedger base", base)

    def _key(self, query_id) -> str:
        key = self.config.key_for(query_id)
        if not key:
            raise ConfigurationException(
                f"No TopLedger API key configured for query {query_id}",
                {"query_id": query_id}
            )
        return key

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        label: str = "",
    ) -> Dict[str, Any]:
        """Requête HTTP avec retries (timeouts, erreurs transport, 429/5xx)."""
        self.circuit.raise_if_open()

        attempts = self.config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(
                    method, url, params=params, json=json_body, timeout=self.config.timeout_sec
                )
                if response.status_code in RETRYABLE_STATUS:
                    raise httpx.HTTPStatusError(
                        f"retryable status {response.status_code}", request=response.request, response=response
                    )
                response.raise_for_status()
                try:
                    payload = response.json()
                except ValueError as e:
                    self.circuit.record_failure()
                    raise TopLedgerError(f"Invalid JSON for {label}", details={"error": str(e)})
                self.circuit.record_success()
                return payload

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status not in RETRYABLE_STATUS:
                    # 4xx: erreur côté requête, inutile de réessayer
                    log.warning(f"TopLedger {label} rejected with status {status}")
                    raise TopLedgerError(f"{label} failed with status {status}", status_code=status)
                last_error = e
                log.warning(f"TopLedger {label} status {status} (attempt {attempt}/{attempts})")
            except httpx.TimeoutException as e:
                last_error = e
                log.warning(f"TopLedger {label} timeout (attempt {attempt}/{attempts})")
            except httpx.TransportError as e:
                last_error = e
                log.warning(f"TopLedger {label} transport error: {e.__class__.__name__} (attempt {attempt}/{attempts})")

            if attempt < attempts:
                delay = self.config.retry_base_delay_sec * (2 ** (attempt - 1))
                await asyncio.sleep(delay)

        self.circuit.record_failure()
        if isinstance(last_error, httpx.TimeoutException):
            raise TopLedgerTimeoutError(f"{label} timed out after {attempts} attempts")
        status = last_error.response.status_code if isinstance(last_error, httpx.HTTPStatusError) else None
        raise TopLedgerError(f"{label} failed after {attempts} attempts",
                             details={"upstream_status": status, "error": str(last_error)})

    async def fetch_results(
        self,
        query_id: int,
        *,
        parameters: Optional[Dict[str, Any]] = None,
        max_age: Optional[int] = None,
        base: str = "tl",
    ) -> Dict[str, Any]:
        """
        Récupère le query_result d'une requête.

        Sans paramètres: GET du dernier résultat (results.json).
        Avec paramètres: POST, puis résolution du job si l'exécution est asynchrone.
        """
        root = self._base(base)
        key = self._key(query_id)
        label = f"query {query_id}"

        if parameters is None:
            payload = await self._request(
                "GET", f"{root}/queries/{query_id}/results.json", params={"api_key": key}, label=label
            )
        else:
            body: Dict[str, Any] = {"parameters": parameters}
            if max_age is not None:
                body["max_age"] = max_age
            payload = await self._request(
                "POST", f"{root}/queries/{query_id}/results", params={"api_key": key}, json_body=body, label=label
            )

        job = payload.get("job") if isinstance(payload, dict) else None
        if job:
            result_id = await self._resolve_job(root, key, job, label)
            payload = await self._request(
                "GET", f"{root}/query_results/{result_id}", params={"api_key": key}, label=f"{label} result {result_id}"
            )

        result = payload.get("query_result") if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise TopLedgerError(f"{label} returned no query_result", details={"keys": list(payload or {})})
        return result

    async def fetch_rows(self, query_id: int, **kwargs) -> List[Dict[str, Any]]:
        result = await self.fetch_results(query_id, **kwargs)
        rows = extract_rows(result)
        log.debug(f"TopLedger query {query_id}: {len(rows)} rows")
        return rows

    async def _resolve_job(self, root: str, key: str, job: Dict[str, Any], label: str) -> Any:
        status = job.get("status")
        if status == JOB_SUCCESS and job.get("query_result_id"):
            return job["query_result_id"]
        if status in (JOB_FAILURE, JOB_CANCELLED) or job.get("error"):
            raise TopLedgerError(f"{label} job failed: {job.get('error') or 'unknown error'}")
        return await self.poll_job(job.get("id"), base_root=root, key=key, label=label)

    async def poll_job(self, job_id: str, *, base_root: Optional[str] = None, key: Optional[str] = None,
                       label: str = "job") -> Any:
        """Poll /jobs/{id} jusqu'au succès (retourne query_result_id) ou l'échec."""
        if not job_id:
            raise TopLedgerError(f"{label} returned a job without id")
        root = base_root or self._base("tl")
        api_key = key or self.config.api_key
        for _ in range(self.config.job_max_polls):
            payload = await self._request("GET", f"{root}/jobs/{job_id}", params={"api_key": api_key},
                                          label=f"{label} job {job_id}")
            job = payload.get("job") or {}
            status = job.get("status")
            if status == JOB_SUCCESS and job.get("query_result_id"):
                return job["query_result_id"]
            if status in (JOB_FAILURE, JOB_CANCELLED):
                raise TopLedgerError(f"{label} job failed: {job.get('error') or 'unknown error'}")
            await asyncio.sleep(self.config.job_poll_interval_sec)
        raise TopLedgerTimeoutError(f"{label} job {job_id} still running after {self.config.job_max_polls} polls")

    def validate_proxy_url(self, url: str) -> str:
        parsed = urlparse(url)
        if parsed.scheme != "https" or parsed.hostname not in self.config.allowed_proxy_hosts:
            raise ValidationException("url", "host not allowed for proxy", parsed.hostname)
        return url

    async def proxy(self, url: str, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET (ou POST avec paramètres) d'une URL TopLedger arbitraire."""
        self.validate_proxy_url(url)
        if parameters is None:
            return await self._request("GET", url, label="proxy")
        return await self._request("POST", url, json_body={"parameters": parameters}, label="proxy")
