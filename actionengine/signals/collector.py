"""
Tool: Activity Signal Collector
Purpose: Turn raw interaction on a surface into timestamped ActionEvents

A surface is anything that can report raw UI events: an editor pane, a task
panel, the whole app window. For each observed surface the collector keeps a
last-activity timestamp and two timers on the shared scheduler:

- an idle poll (default every 1s) that emits ONE idle event per idle episode
  when the idle time falls inside the configured window. The "already
  reported" flag only resets when new activity arrives, so a long stare at
  the same task never spams the backend.
- a typing debounce that folds a burst of keystrokes into one
  ``note_edited`` event once typing pauses.

Unsubscribing removes every listener and every timer. It is safe to call
twice, and safe after the surface has already gone away.

Usage:
    collector = ActivitySignalCollector(scheduler, sink=engine.ingest)
    sub = collector.observe(editor, IdleThresholds(6, 10))
    ...
    sub.cancel()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Protocol, runtime_checkable

from actionengine.config import IdleWindowConfig
from actionengine.models import ActionEvent, new_id
from actionengine.signals import ACTIVITY_EVENTS, TYPING_EVENTS
from actionengine.signals.scheduler import CooperativeScheduler

logger = logging.getLogger(__name__)


@runtime_checkable
class Surface(Protocol):
    """A UI region whose raw events can be listened to."""

    subject_id: str | None

    @property
    def is_attached(self) -> bool: ...

    def add_listener(self, event_name: str, callback: Callable[[], None]) -> None: ...

    def remove_listener(self, event_name: str, callback: Callable[[], None]) -> None: ...


class ObservableSurface:
    """In-process Surface. UI adapters call emit() from their own handlers."""

    def __init__(self, subject_id: str | None = None) -> None:
        self.subject_id = subject_id
        self._listeners: dict[str, list[Callable[[], None]]] = {}
        self._attached = True

    @property
    def is_attached(self) -> bool:
        return self._attached

    def add_listener(self, event_name: str, callback: Callable[[], None]) -> None:
        if not self._attached:
            return
        self._listeners.setdefault(event_name, []).append(callback)

    def remove_listener(self, event_name: str, callback: Callable[[], None]) -> None:
        callbacks = self._listeners.get(event_name)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event_name: str | None = None) -> int:
        if event_name is not None:
            return len(self._listeners.get(event_name, []))
        return sum(len(v) for v in self._listeners.values())

    def emit(self, event_name: str) -> None:
        if not self._attached:
            return
        for callback in list(self._listeners.get(event_name, [])):
            callback()

    def detach(self) -> None:
        """The surface went away (navigation, unmount)."""
        self._attached = False
        self._listeners.clear()


@dataclass(frozen=True)
class IdleThresholds:
    """Idle window in seconds; max_seconds=None means open ended."""

    min_seconds: float
    max_seconds: float | None = None

    @classmethod
    def from_config(cls, config: IdleWindowConfig) -> "IdleThresholds":
        return cls(min_seconds=config.min_seconds, max_seconds=config.max_seconds)

    def contains(self, idle_seconds: float) -> bool:
        if idle_seconds <= self.min_seconds:
            return False
        return self.max_seconds is None or idle_seconds < self.max_seconds


class Subscription:
    """Listeners and timers attached to one surface."""

    def __init__(
        self,
        collector: "ActivitySignalCollector",
        surface: Surface,
        thresholds: IdleThresholds,
        idle_kind: str,
        track_typing: bool,
    ) -> None:
        self.id = new_id("sub")
        self.surface = surface
        self.thresholds = thresholds
        self.idle_kind = idle_kind
        self.track_typing = track_typing
        self._collector = collector
        self._handlers: list[tuple[str, Callable[[], None]]] = []
        self.active = True

        self.last_activity_at: datetime = collector.scheduler.clock()
        self.idle_reported = False
        self._burst_started_at: datetime | None = None
        self._burst_last_at: datetime | None = None
        self._burst_keystrokes = 0

    def _attach(self) -> None:
        for name in ACTIVITY_EVENTS:
            handler = partial(self._on_raw_event, name)
            self.surface.add_listener(name, handler)
            self._handlers.append((name, handler))

        self._collector.scheduler.every(
            self.id,
            self._collector.poll_interval_seconds,
            self._poll_idle,
            name="idle_poll",
        )

    # -------------------------------------------------------------------------
    # Raw events
    # -------------------------------------------------------------------------

    def _on_raw_event(self, event_name: str) -> None:
        if not self.active:
            return
        now = self._collector.scheduler.clock()
        self.last_activity_at = now
        self.idle_reported = False

        if self.track_typing and event_name in TYPING_EVENTS:
            if self._burst_started_at is None:
                self._burst_started_at = now
            self._burst_last_at = now
            self._burst_keystrokes += 1
            self._collector.scheduler.after(
                self.id,
                self._collector.debounce_seconds,
                self._flush_burst,
                name="typing_debounce",
            )

    def _flush_burst(self) -> None:
        if not self.active or self._burst_started_at is None:
            return
        started, last = self._burst_started_at, self._burst_last_at or self._burst_started_at
        keystrokes = self._burst_keystrokes
        self._burst_started_at = None
        self._burst_last_at = None
        self._burst_keystrokes = 0

        self._collector.emit(
            ActionEvent(
                kind="note_edited",
                timestamp=self._collector.scheduler.clock(),
                subject_id=self.surface.subject_id,
                payload={
                    "task_id": self.surface.subject_id,
                    "keystrokes": keystrokes,
                    "burst_seconds": round((last - started).total_seconds(), 3),
                },
            )
        )

    # -------------------------------------------------------------------------
    # Idle polling
    # -------------------------------------------------------------------------

    def _poll_idle(self) -> None:
        if not self.active:
            return
        if not self.surface.is_attached:
            logger.debug(f"Surface for {self.id} detached, stopping idle checks")
            self.cancel()
            return

        now = self._collector.scheduler.clock()
        idle_seconds = (now - self.last_activity_at).total_seconds()
        if self.idle_reported or not self.thresholds.contains(idle_seconds):
            return

        self.idle_reported = True
        self._collector.emit(
            ActionEvent(
                kind=self.idle_kind,
                timestamp=now,
                subject_id=self.surface.subject_id,
                payload={"task_id": self.surface.subject_id, "duration": round(idle_seconds, 3)},
            )
        )

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        for name, handler in self._handlers:
            self.surface.remove_listener(name, handler)
        self._handlers.clear()
        self._collector.scheduler.cancel_owner(self.id)
        self._collector.forget(self)


class ActivitySignalCollector:
    def __init__(
        self,
        scheduler: CooperativeScheduler,
        sink: Callable[[ActionEvent], None],
        poll_interval_seconds: float = 1.0,
        debounce_seconds: float = 1.5,
    ) -> None:
        self.scheduler = scheduler
        self.poll_interval_seconds = poll_interval_seconds
        self.debounce_seconds = debounce_seconds
        self._sink = sink
        self._subscriptions: dict[str, Subscription] = {}

    def observe(
        self,
        surface: Surface,
        thresholds: IdleThresholds,
        idle_kind: str = "note_idle",
        track_typing: bool = True,
    ) -> Subscription:
        subscription = Subscription(self, surface, thresholds, idle_kind, track_typing)
        subscription._attach()
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"Observing surface {surface.subject_id!r} as {subscription.id}")
        return subscription

    def emit(self, event: ActionEvent) -> None:
        self._sink(event)

    def forget(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.id, None)

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    def close(self) -> None:
        for subscription in list(self._subscriptions.values()):
            subscription.cancel()
