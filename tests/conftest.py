"""Shared test fixtures for Action Engine tests.

This module provides common fixtures used across all test modules:
- A fake clock that only moves when told to
- Standard Flow tasks and plans
- Fake collaborators (recommendation, session mirror, telemetry)

Usage:
    async def test_something(engine, clock):
        await engine.runner.start(25, "high")
        clock.advance(seconds=30)
        engine.tick()
"""

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from actionengine.clients.base import RecommendationClient, SessionMirror, TelemetrySink
from actionengine.clients.static import StaticRecommendationClient
from actionengine.config import ActionEngineConfig
from actionengine.engine import ActionEngine
from actionengine.errors import PersistenceMirrorFailure
from actionengine.models import ActionEvent, FlowPlan


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"


# ─────────────────────────────────────────────────────────────────────────────
# Clock
# ─────────────────────────────────────────────────────────────────────────────


class FakeClock:
    """Deterministic clock for timers, TTLs and time windows."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, minutes=minutes)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_event(clock):
    """Build an ActionEvent stamped with the fake clock."""

    def _make(kind: str, subject_id: str | None = None, **payload: Any) -> ActionEvent:
        return ActionEvent(kind=kind, timestamp=clock(), subject_id=subject_id, payload=payload)

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Flow Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_tasks() -> list[dict]:
    """Three-task sequence as the recommendation service returns it.

    Returns:
        list of task dicts (10 + 10 + 5 minutes)
    """
    return [
        {"id": "t1", "title": "Reply to Sam", "duration": 10, "reason": "Quick win"},
        {"id": "t2", "title": "Draft outline", "duration": 10},
        {"id": "t3", "title": "File receipts", "duration": 5},
    ]


@pytest.fixture
def recommender(sample_tasks) -> StaticRecommendationClient:
    return StaticRecommendationClient.from_tasks(sample_tasks, sequence_id="seq_test")


class RecordingMirror(SessionMirror):
    """Session mirror that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []
        self.fail = False
        self.closed = False

    async def report_session_event(self, session_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        self.calls.append((session_id, kind, dict(payload)))
        if self.fail:
            raise PersistenceMirrorFailure(kind, session_id, "store unavailable")

    @property
    def kinds(self) -> list[str]:
        return [kind for _, kind, _ in self.calls]

    async def close(self) -> None:
        self.closed = True


class RecordingTelemetry(TelemetrySink):
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def send_event(self, kind: str, payload: Mapping[str, Any]) -> None:
        self.events.append((kind, dict(payload)))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


class FailingRecommender(RecommendationClient):
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def get_flow_sequence(self, duration_minutes: int, energy_hint: str | None = None) -> FlowPlan:
        raise self.error


@pytest.fixture
def failing_recommender():
    """Factory for a recommender that always raises the given error."""
    return FailingRecommender


@pytest.fixture
def mirror() -> RecordingMirror:
    return RecordingMirror()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


# ─────────────────────────────────────────────────────────────────────────────
# Engine Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def engine_config() -> ActionEngineConfig:
    return ActionEngineConfig()


@pytest.fixture
def engine(recommender, mirror, telemetry, engine_config, clock) -> ActionEngine:
    """Engine wired to fakes. Tests that need teardown call close() themselves."""
    return ActionEngine(
        recommender,
        mirror=mirror,
        telemetry=telemetry,
        config=engine_config,
        clock=clock,
    )
