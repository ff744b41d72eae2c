"""
Circuit Breaker for collaborator calls

Tracks consecutive failures per collaborator and stops calling one that keeps
failing, so a dead mirror endpoint does not add a timeout to every Flow
transition. Both guarded calls are best-effort anyway: a blocked call is
treated exactly like a failed one by the caller.

States:
    closed    - calls pass through
    open      - calls blocked until the recovery timeout elapses
    half_open - one trial call allowed; success closes, failure re-opens

Usage:
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    if breaker.can_execute("session_mirror"):
        try:
            await post(...)
            breaker.record_success("session_mirror")
        except httpx.HTTPError:
            breaker.record_failure("session_mirror")
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CircuitState:
    """Internal state for a single collaborator circuit."""

    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float = 0.0
    state: str = "closed"  # "closed" | "open" | "half_open"
    half_open_attempts: int = 0


class CircuitBreaker:
    """Per-collaborator circuit breaker.

    The engine runs on one event loop, so no locking is needed here.

    Args:
        failure_threshold: Consecutive failures before the circuit opens.
        recovery_timeout: Seconds before an open circuit allows a trial call.
        monotonic: Time source, replaceable in tests.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._monotonic = monotonic
        self._circuits: dict[str, CircuitState] = {}

    def _get_circuit(self, service: str) -> CircuitState:
        if service not in self._circuits:
            self._circuits[service] = CircuitState()
        return self._circuits[service]

    def can_execute(self, service: str) -> bool:
        circuit = self._get_circuit(service)

        if circuit.state == "open":
            elapsed = self._monotonic() - circuit.last_failure_time
            if elapsed < self.recovery_timeout:
                return False
            circuit.state = "half_open"
            circuit.half_open_attempts = 0
            logger.info(f"Circuit for '{service}' half_open after {elapsed:.1f}s")

        if circuit.state == "half_open":
            if circuit.half_open_attempts >= 1:
                return False
            circuit.half_open_attempts += 1

        return True

    def record_success(self, service: str) -> None:
        circuit = self._get_circuit(service)
        circuit.success_count += 1
        if circuit.state == "half_open":
            logger.info(f"Circuit for '{service}' closed (recovered)")
        circuit.state = "closed"
        circuit.failure_count = 0
        circuit.half_open_attempts = 0

    def record_failure(self, service: str) -> None:
        circuit = self._get_circuit(service)
        circuit.failure_count += 1
        circuit.last_failure_time = self._monotonic()

        if circuit.state == "half_open":
            circuit.state = "open"
            circuit.half_open_attempts = 0
            logger.warning(f"Circuit for '{service}' re-opened (trial call failed)")
        elif circuit.state == "closed" and circuit.failure_count >= self.failure_threshold:
            circuit.state = "open"
            logger.warning(
                f"Circuit for '{service}' OPENED ({circuit.failure_count} consecutive failures)"
            )

    def get_state(self, service: str) -> str:
        circuit = self._get_circuit(service)
        if circuit.state == "open":
            if self._monotonic() - circuit.last_failure_time >= self.recovery_timeout:
                return "half_open"
        return circuit.state

    def get_all_states(self) -> dict[str, dict[str, Any]]:
        return {
            service: {
                "state": self.get_state(service),
                "failure_count": circuit.failure_count,
                "success_count": circuit.success_count,
            }
            for service, circuit in self._circuits.items()
        }

    def reset(self, service: str | None = None) -> None:
        if service is None:
            self._circuits.clear()
        else:
            self._circuits.pop(service, None)
