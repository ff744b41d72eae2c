"""
Collaborator interfaces

The engine consumes three external services and nothing else:

- RecommendationClient: decides WHICH tasks go into a Flow session. The
  engine never ranks tasks itself.
- SessionMirror: best-effort copy of Flow transitions to the remote store.
  Local state stays authoritative; failures raise PersistenceMirrorFailure
  for the runner to log.
- TelemetrySink: fire-and-forget behavioral events. Must never block and
  never raise into the classification path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from actionengine.models import FlowPlan


class RecommendationClient(ABC):
    @abstractmethod
    async def get_flow_sequence(self, duration_minutes: int, energy_hint: str | None = None) -> FlowPlan:
        """Return an ordered task sequence sized to fit the duration.

        Raises:
            RecommendationError: network failure or no suitable tasks.
        """

    async def close(self) -> None:
        return None


class SessionMirror(ABC):
    @abstractmethod
    async def report_session_event(self, session_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        """Mirror a start/complete/skip/stop transition.

        Raises:
            PersistenceMirrorFailure: the remote store did not accept it.
        """

    async def close(self) -> None:
        return None


class TelemetrySink(ABC):
    @abstractmethod
    def send_event(self, kind: str, payload: Mapping[str, Any]) -> None:
        """Queue an event for delivery and return immediately."""

    async def close(self) -> None:
        return None


class NullSessionMirror(SessionMirror):
    async def report_session_event(self, session_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        return None


class NullTelemetrySink(TelemetrySink):
    def send_event(self, kind: str, payload: Mapping[str, Any]) -> None:
        return None
