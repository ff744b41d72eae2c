"""
HTTP collaborators for the productivity API

All three clients share one lazily created httpx.AsyncClient per instance,
with the bearer token read from the environment variable named in the api
config. HTTP and transport errors are converted into domain errors at this
boundary; nothing httpx-specific leaks into the runner or classifier.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from actionengine.clients import MIRROR_SERVICE, TELEMETRY_SERVICE
from actionengine.clients.base import RecommendationClient, SessionMirror, TelemetrySink
from actionengine.clients.circuit_breaker import CircuitBreaker
from actionengine.clients.static import plan_from_dict
from actionengine.config import ApiConfig
from actionengine.errors import PersistenceMirrorFailure, RecommendationError

logger = logging.getLogger(__name__)

# Auth failures are expected while signed out and are not worth a warning
QUIET_STATUS_CODES = (401, 403)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason_phrase or f"HTTP {response.status_code}"


class _ApiClient:
    def __init__(
        self,
        config: ApiConfig | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ApiConfig()
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=headers,
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def _post(self, path: str, body: Mapping[str, Any]) -> httpx.Response:
        client = await self._get_client()
        response = await client.post(path, json=dict(body))
        response.raise_for_status()
        return response

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


# =============================================================================
# Recommendation
# =============================================================================


class HttpRecommendationClient(_ApiClient, RecommendationClient):
    async def get_flow_sequence(self, duration_minutes: int, energy_hint: str | None = None):
        body: dict[str, Any] = {"duration": duration_minutes}
        if energy_hint:
            body["energy"] = energy_hint

        try:
            response = await self._post("/api/flow/start", body)
            data = response.json()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.error(f"Flow sequence request failed: {e.response.status_code} - {message}")
            raise RecommendationError(message) from e
        except httpx.RequestError as e:
            logger.error(f"Flow sequence request error: {e}")
            raise RecommendationError(f"Recommendation service unreachable: {e}") from e
        except ValueError as e:
            raise RecommendationError("Recommendation service returned invalid JSON") from e

        if not isinstance(data, dict):
            raise RecommendationError("Recommendation service returned an unexpected payload")
        return plan_from_dict(data)


# =============================================================================
# Session mirror
# =============================================================================


class HttpSessionMirror(_ApiClient, SessionMirror):
    def __init__(
        self,
        config: ApiConfig | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(config, token, transport)
        self._breaker = breaker or CircuitBreaker()

    async def report_session_event(self, session_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        if not self._breaker.can_execute(MIRROR_SERVICE):
            raise PersistenceMirrorFailure(kind, session_id, "circuit open")

        body = {
            "kind": kind,
            "payload": dict(payload),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._post(f"/api/flow/sessions/{session_id}/events", body)
        except httpx.HTTPStatusError as e:
            self._breaker.record_failure(MIRROR_SERVICE)
            raise PersistenceMirrorFailure(kind, session_id, _error_message(e.response)) from e
        except httpx.RequestError as e:
            self._breaker.record_failure(MIRROR_SERVICE)
            raise PersistenceMirrorFailure(kind, session_id, str(e) or type(e).__name__) from e
        self._breaker.record_success(MIRROR_SERVICE)


# =============================================================================
# Telemetry
# =============================================================================


class HttpTelemetrySink(_ApiClient, TelemetrySink):
    def __init__(
        self,
        config: ApiConfig | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(config, token, transport)
        self._breaker = breaker or CircuitBreaker()
        self._pending: set[asyncio.Task] = set()

    def send_event(self, kind: str, payload: Mapping[str, Any]) -> None:
        if not self._breaker.can_execute(TELEMETRY_SERVICE):
            logger.debug(f"Telemetry circuit open, dropping {kind}")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, dropping telemetry {kind}")
            return

        body = {
            **dict(payload),
            "type": kind,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        task = loop.create_task(self._deliver(kind, body))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, kind: str, body: Mapping[str, Any]) -> None:
        try:
            await self._post("/api/action-events", body)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in QUIET_STATUS_CODES:
                logger.debug(f"Telemetry {kind} rejected with {status}")
            else:
                self._breaker.record_failure(TELEMETRY_SERVICE)
                logger.warning(f"Failed to send telemetry {kind}: {status} {e.response.reason_phrase}")
            return
        except httpx.RequestError as e:
            self._breaker.record_failure(TELEMETRY_SERVICE)
            logger.debug(f"Telemetry {kind} not delivered: {e}")
            return
        except Exception as e:
            logger.warning(f"Failed to send telemetry {kind}: {e}")
            return
        self._breaker.record_success(TELEMETRY_SERVICE)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.flush()
        await super().close()
