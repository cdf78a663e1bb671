"""
Client OpenAI minimal (REST via httpx): chat completions avec tools, embeddings.

Pas de retry: un échec remonte en LLMError et le pipeline bascule sur la
recherche par mots-clés.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from api.exceptions import APIException
from config.settings import LLMConfig
from shared.circuit_breaker import CircuitBreaker, CircuitOpenError, openai_circuit

logger = logging.getLogger(__name__)


class LLMError(APIException):
    """Erreur LLM; kind in {no_api_key, quota_exceeded, api_error, parse_error, timeout, circuit_open}"""

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None):
        self.kind = kind
        super().__init__("OpenAI", message, status_code=status_code or 502, details={"kind": kind})


class OpenAIChatClient:

    def __init__(
        self,
        config: LLMConfig,
        client: Optional[httpx.AsyncClient] = None,
        circuit: CircuitBreaker = openai_circuit,
    ):
        self.config = config
        self.circuit = circuit
        self._client = client or httpx.AsyncClient(timeout=config.timeout_sec)
        self._owns_client = client is None

    @property
    def available(self) -> bool:
        return bool(self.config.openai_api_key)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.config.openai_api_key:
            raise LLMError("no_api_key", "OpenAI API key not configured", status_code=503)
        try:
            self.circuit.raise_if_open()
        except CircuitOpenError as e:
            raise LLMError("circuit_open", str(e), status_code=503)

        url = f"{self.config.openai_base_url.rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {self.config.openai_api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self.config.timeout_sec)
            response.raise_for_status()
        except httpx.TimeoutException:
            self.circuit.record_failure()
            logger.warning(f"OpenAI {path} timeout")
            raise LLMError("timeout", f"OpenAI {path} timed out", status_code=504)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                # Quota / rate limit: pas une panne du service
                logger.warning("OpenAI quota or rate limit exceeded")
                raise LLMError("quota_exceeded", "OpenAI quota or rate limit exceeded", status_code=429)
            self.circuit.record_failure()
            logger.warning(f"OpenAI {path} HTTP {status}")
            raise LLMError("api_error", f"OpenAI request failed with status {status}", status_code=502)
        except httpx.TransportError as e:
            self.circuit.record_failure()
            raise LLMError("api_error", f"OpenAI request error: {e.__class__.__name__}")

        try:
            data = response.json()
        except ValueError:
            raise LLMError("parse_error", f"OpenAI {path} returned invalid JSON")
        self.circuit.record_success()
        return data

    async def create(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: str = "auto",
    ) -> Dict[str, Any]:
        """Retourne le message de la première choice (content et/ou tool_calls)."""
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice

        data = await self._post("/chat/completions", payload)
        try:
            return data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError):
            raise LLMError("parse_error", "OpenAI response without choices")

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        data = await self._post("/embeddings", {
            "model": self.config.embedding_model,
            "input": texts,
            "encoding_format": "float",
        })
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            return [item["embedding"] for item in items]
        except (KeyError, TypeError):
            raise LLMError("parse_error", "OpenAI embeddings response malformed")


def parse_tool_arguments(raw: Any) -> Dict[str, Any]:
    """Arguments d'un tool call (chaîne JSON) -> dict; LLMError(parse_error) si invalide."""
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw or "{}")
    except (TypeError, json.JSONDecodeError):
        raise LLMError("parse_error", "Tool call arguments are not valid JSON")
    if not isinstance(parsed, dict):
        raise LLMError("parse_error", "Tool call arguments must be a JSON object")
    return parsed
