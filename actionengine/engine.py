"""
Action Engine context

ActionEngine owns every component (scheduler, collector, history, classifier,
nudge board, focus lock, Flow runner) and the collaborator clients. There are
no module globals: a UI adapter creates one engine, feeds it signals, renders
snapshot() and tears it down with close().

Signal path:
    surface -> collector -> ingest() -> history + telemetry
                                     -> classifier -> board (+ micro-flow)

Usage:
    async with ActionEngine.from_config(load_config()) as engine:
        engine.observe_editor(editor_surface)
        await engine.runner.start(25, "high")
        view = engine.snapshot()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from actionengine.clients.base import (
    NullSessionMirror,
    NullTelemetrySink,
    RecommendationClient,
    SessionMirror,
    TelemetrySink,
)
from actionengine.clients.circuit_breaker import CircuitBreaker
from actionengine.config import ActionEngineConfig
from actionengine.diagnostics import Diagnostics
from actionengine.flow import FlowState
from actionengine.flow.focus_lock import FocusLock
from actionengine.flow.runner import FlowRunner
from actionengine.models import (
    ActionEvent,
    Clock,
    FlowSession,
    FlowTask,
    FocusLockState,
    MicroFlow,
    Nudge,
    NudgeType,
    Progress,
    SessionDebrief,
    utcnow,
)
from actionengine.nudges import INTERNAL_EVENT_KINDS
from actionengine.nudges.board import MicroFlowSlot, NudgeBoard, push_for
from actionengine.nudges.classifier import ClassifierSnapshot, NudgeClassifier
from actionengine.signals.collector import ActivitySignalCollector, IdleThresholds, Subscription, Surface
from actionengine.signals.history import EventHistory
from actionengine.signals.scheduler import CooperativeScheduler

logger = logging.getLogger(__name__)

ENGINE_OWNER = "engine"


@dataclass(frozen=True)
class PresentationSnapshot:
    """Everything a rendering adapter needs, read at one instant."""

    now: datetime
    nudge: Nudge | None
    nudges: tuple[Nudge, ...]
    focus_lock: FocusLockState
    flow_state: FlowState
    session: FlowSession | None
    current_task: FlowTask | None
    progress: Progress | None
    micro_flow: MicroFlow | None
    debrief: SessionDebrief | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "now": self.now.isoformat(),
            "nudge": self.nudge.to_dict() if self.nudge else None,
            "nudges": [n.to_dict() for n in self.nudges],
            "focus_lock": {
                "task_id": self.focus_lock.task_id,
                "locked_at": self.focus_lock.locked_at.isoformat() if self.focus_lock.locked_at else None,
            },
            "flow_state": self.flow_state.value,
            "session": self.session.to_dict() if self.session else None,
            "current_task": self.current_task.id if self.current_task else None,
            "progress": (
                {
                    "current": self.progress.current,
                    "total": self.progress.total,
                    "percentage": self.progress.percentage,
                }
                if self.progress
                else None
            ),
            "micro_flow": (
                {"id": self.micro_flow.id, "title": self.micro_flow.title, "steps": list(self.micro_flow.steps)}
                if self.micro_flow
                else None
            ),
            "debrief": self.debrief.to_dict() if self.debrief else None,
        }


class ActionEngine:
    def __init__(
        self,
        recommender: RecommendationClient,
        mirror: SessionMirror | None = None,
        telemetry: TelemetrySink | None = None,
        config: ActionEngineConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config or ActionEngineConfig()
        self.clock = clock

        self.recommender = recommender
        self.mirror = mirror or NullSessionMirror()
        self.telemetry = telemetry or NullTelemetrySink()

        self.scheduler = CooperativeScheduler(clock)
        self.diagnostics = Diagnostics(clock)
        self.history = EventHistory(self.config.history.max_events, self.config.history.retention_minutes)
        self.focus_lock = FocusLock(clock, self.diagnostics)
        self.classifier = NudgeClassifier(self.config.nudges)
        self.board = NudgeBoard()
        self.micro_flows = MicroFlowSlot()
        self.collector = ActivitySignalCollector(
            self.scheduler,
            self.ingest,
            poll_interval_seconds=self.config.collector.poll_interval_seconds,
            debounce_seconds=self.config.collector.debounce_seconds,
        )
        self.runner = FlowRunner(
            recommender,
            self.focus_lock,
            self.history,
            mirror=self.mirror,
            on_event=self.ingest,
            clock=clock,
            config=self.config.flow,
        )

        self._background: asyncio.Task | None = None
        self._closed = False
        self.scheduler.every(
            ENGINE_OWNER,
            self.config.collector.poll_interval_seconds,
            self._sweep,
            name="sweep",
        )

    @classmethod
    def from_config(
        cls,
        config: ActionEngineConfig,
        recommender: RecommendationClient | None = None,
        clock: Clock = utcnow,
    ) -> "ActionEngine":
        """Engine wired to the productivity API described by config.api."""
        from actionengine.clients.remote import (
            HttpRecommendationClient,
            HttpSessionMirror,
            HttpTelemetrySink,
        )

        token = config.api_token()
        breaker = CircuitBreaker(
            failure_threshold=config.circuit.failure_threshold,
            recovery_timeout=config.circuit.recovery_timeout_seconds,
        )
        return cls(
            recommender=recommender or HttpRecommendationClient(config.api, token),
            mirror=HttpSessionMirror(config.api, token, breaker=breaker),
            telemetry=HttpTelemetrySink(config.api, token, breaker=breaker),
            config=config,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Signals in
    # -------------------------------------------------------------------------

    def ingest(self, event: ActionEvent) -> Nudge | None:
        """Record an event, forward it to telemetry and classify it."""
        self.history.append(event)
        if event.kind not in INTERNAL_EVENT_KINDS:
            self.telemetry.send_event(event.kind, {"subject_id": event.subject_id, **event.payload})

        nudge = self.classifier.classify(event, self._classifier_snapshot())
        if nudge is not None:
            self._show(nudge)
        return nudge

    def record(self, kind: str, subject_id: str | None = None, **payload: Any) -> Nudge | None:
        return self.ingest(ActionEvent(kind=kind, timestamp=self.clock(), subject_id=subject_id, payload=payload))

    def open_task(self, task_id: str) -> Nudge | None:
        return self.record("task_opened", task_id, task_id=task_id)

    def record_task_completed(self, task_id: str) -> Nudge | None:
        return self.record("task_completed", task_id, task_id=task_id)

    def record_task_switch(self, from_task_id: str | None, to_task_id: str) -> Nudge | None:
        """The user moved from one task to another. The switch itself is never blocked."""
        return self.record(
            "task_switched",
            to_task_id,
            from_task_id=from_task_id,
            to_task_id=to_task_id,
        )

    def observe_editor(self, surface: Surface) -> Subscription:
        """Watch a note editor: idle windows plus typing bursts."""
        return self.collector.observe(
            surface,
            IdleThresholds.from_config(self.config.collector.note_idle),
            idle_kind="note_idle",
            track_typing=True,
        )

    def observe_app(self, surface: Surface) -> Subscription:
        """Watch the whole window for app-level idleness."""
        return self.collector.observe(
            surface,
            IdleThresholds.from_config(self.config.collector.app_idle),
            idle_kind="app_idle",
            track_typing=False,
        )

    # -------------------------------------------------------------------------
    # Time
    # -------------------------------------------------------------------------

    def tick(self, now: datetime | None = None) -> int:
        """Fire due timers. The background task calls this on its own."""
        return self.scheduler.tick(now)

    def _sweep(self) -> None:
        now = self.clock()
        nudge = self.classifier.classify_ambient(self._classifier_snapshot())
        if nudge is not None:
            self._show(nudge)
        for expired in self.board.expire(now):
            logger.debug(f"Nudge {expired.id} ({expired.type.value}) expired")
        self.history.prune(now)

    def start_background(self, resolution_seconds: float = 0.25) -> asyncio.Task:
        if self._background is None or self._background.done():
            self._background = asyncio.get_running_loop().create_task(self.scheduler.run(resolution_seconds))
        return self._background

    # -------------------------------------------------------------------------
    # Presentation
    # -------------------------------------------------------------------------

    def snapshot(self) -> PresentationSnapshot:
        now = self.clock()
        return PresentationSnapshot(
            now=now,
            nudge=self.board.current(now),
            nudges=tuple(self.board.live(now)),
            focus_lock=self.focus_lock.is_locked(),
            flow_state=self.runner.state,
            session=self.runner.session,
            current_task=self.runner.current_task,
            progress=self.runner.progress,
            micro_flow=self.micro_flows.current,
            debrief=self.runner.debrief,
        )

    def dismiss_nudge(self, nudge_id: str) -> bool:
        nudge = self.board.dismiss(nudge_id)
        if nudge is None:
            return False
        payload = {"nudge_id": nudge.id, "type": nudge.type.value}
        self.history.append(ActionEvent("nudge_dismissed", self.clock(), nudge.subject_id, payload))
        self.telemetry.send_event("nudge_dismissed", payload)
        return True

    def dismiss_micro_flow(self, micro_flow_id: str) -> bool:
        return self.micro_flows.dismiss(micro_flow_id)

    def dismiss_debrief(self) -> bool:
        return self.runner.dismiss_debrief()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self.runner.state is not FlowState.IDLE:
            await self.runner.stop()

        self.collector.close()
        cancelled = self.scheduler.cancel_all()
        self.scheduler.stop()
        if self._background is not None:
            self._background.cancel()
            try:
                await self._background
            except asyncio.CancelledError:
                pass
            self._background = None

        for client in (self.telemetry, self.mirror, self.recommender):
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing {type(client).__name__}: {e}")
        logger.debug(f"Action engine closed, {cancelled} timers cancelled")

    async def __aenter__(self) -> "ActionEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _classifier_snapshot(self) -> ClassifierSnapshot:
        return ClassifierSnapshot(
            now=self.clock(),
            focus_lock=self.focus_lock.is_locked(),
            session=self.runner.session,
            history=self.history,
        )

    def _show(self, nudge: Nudge) -> None:
        now = self.clock()
        self.board.publish(nudge)
        if nudge.type is NudgeType.START_SMALL:
            title = self._task_title(nudge.subject_id)
            self.micro_flows.offer(push_for(title, now))

        payload = {"nudge_id": nudge.id, "type": nudge.type.value, "message": nudge.message}
        self.history.append(ActionEvent("nudge_shown", now, nudge.subject_id, payload))
        self.telemetry.send_event("nudge_shown", payload)
        logger.debug(f"Nudge {nudge.type.value} shown: {nudge.message}")

    def _task_title(self, task_id: str | None) -> str:
        session = self.runner.session
        if task_id and session:
            task = session.task_by_id(task_id)
            if task:
                return task.title
        return "this task"


__all__ = ["ActionEngine", "PresentationSnapshot"]
