"""
Circuit Breaker: protection des appels vers les APIs externes

Pattern: CLOSED -> OPEN (après N échecs consécutifs) -> HALF_OPEN (après recovery_timeout)
-> CLOSED (si l'appel de test réussit).

Instances pré-configurées:
- topledger_circuit: 5 échecs, 60s de récupération (API de requêtes TopLedger)
- openai_circuit: 3 échecs, 120s de récupération (chat completions + embeddings)
"""
from __future__ import annotations

import time
import threading
import logging
from enum import Enum
from typing import Optional, Dict, List

log = logging.getLogger(__name__)

_REGISTRY: Dict[str, "CircuitBreaker"] = {}


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Levée quand un appel est refusé parce que le circuit est ouvert."""

    def __init__(self, circuit_name: str, recovery_remaining: float = 0):
        self.circuit_name = circuit_name
        self.recovery_remaining = recovery_remaining
        super().__init__(
            f"Circuit '{circuit_name}' is open, call rejected "
            f"(retry in {recovery_remaining:.0f}s)"
        )


class CircuitBreaker:
    """
    Circuit breaker léger, thread-safe.

    - CLOSED: fonctionnement normal, compte les échecs consécutifs.
    - OPEN: fail-fast jusqu'à expiration de recovery_timeout.
    - HALF_OPEN: un appel de test; succès -> CLOSED, échec -> OPEN.
    """

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if self._state == CircuitState.OPEN and self._last_failure_time is not None:
                if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
                    log.info(f"Circuit '{self.name}': OPEN -> HALF_OPEN")
            return self._state

    def is_available(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self):
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                log.info(f"Circuit '{self.name}': HALF_OPEN -> CLOSED")
            self._failure_count = 0
            self._state = CircuitState.CLOSED

    def record_failure(self):
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                log.warning(f"Circuit '{self.name}': HALF_OPEN -> OPEN (test call failed)")
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                log.warning(
                    f"Circuit '{self.name}': CLOSED -> OPEN after {self._failure_count} "
                    f"consecutive failures (recovery in {self.recovery_timeout}s)"
                )

    def remaining_recovery(self) -> float:
        if self._last_failure_time is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (time.monotonic() - self._last_failure_time))

    def raise_if_open(self):
        """Lève CircuitOpenError si le circuit refuse les appels."""
        if not self.is_available():
            raise CircuitOpenError(self.name, self.remaining_recovery())

    def reset(self):
        """Remet le circuit à l'état initial (tests, endpoint admin)."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._last_failure_time = None

    def get_status(self) -> Dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout_s": self.recovery_timeout,
        }


def register_circuit(circuit: CircuitBreaker) -> CircuitBreaker:
    _REGISTRY[circuit.name] = circuit
    return circuit


def get_all_circuit_status() -> List[Dict]:
    """Statut de tous les circuits enregistrés (utilisé par /health/detailed)."""
    return [c.get_status() for c in _REGISTRY.values()]


# ── Instances pré-configurées ─────────────────────────────────────────

topledger_circuit = register_circuit(CircuitBreaker("topledger", failure_threshold=5, recovery_timeout=60))
openai_circuit = register_circuit(CircuitBreaker("openai", failure_threshold=3, recovery_timeout=120))
