"""
Cooperative Scheduler

Every periodic check and one-shot timer in the engine (idle polls, typing
debounce, nudge expiry sweeps) is registered here under an owner id, so
tearing down a surface or the whole engine is a single call instead of a hunt
for stray interval handles.

Timers fire from tick(), which the engine drives either from its background
task (run()) or directly in tests with a fake clock. Nothing here blocks.

Usage:
    scheduler = CooperativeScheduler()
    scheduler.every("sub_1", 1.0, poll_idle, name="idle")
    scheduler.after("sub_1", 1.5, flush_burst, name="debounce")
    scheduler.cancel_owner("sub_1")
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from actionengine.models import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class TimerHandle:
    owner: str
    name: str
    due_at: datetime
    interval: timedelta | None
    callback: Callable[[], None]
    cancelled: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.owner, self.name)

    @property
    def repeating(self) -> bool:
        return self.interval is not None


class CooperativeScheduler:
    """Single owner of all engine timers, keyed by (owner, name)."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._timers: dict[tuple[str, str], TimerHandle] = {}
        self._running = False

    @property
    def clock(self) -> Clock:
        return self._clock

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def every(
        self,
        owner: str,
        interval_seconds: float,
        callback: Callable[[], None],
        name: str | None = None,
    ) -> TimerHandle:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        interval = timedelta(seconds=interval_seconds)
        return self._register(owner, name, self._clock() + interval, interval, callback)

    def after(
        self,
        owner: str,
        delay_seconds: float,
        callback: Callable[[], None],
        name: str | None = None,
    ) -> TimerHandle:
        """Schedule a one-shot timer. Reusing a name replaces the pending timer."""
        due = self._clock() + timedelta(seconds=max(0.0, delay_seconds))
        return self._register(owner, name, due, None, callback)

    def _register(
        self,
        owner: str,
        name: str | None,
        due_at: datetime,
        interval: timedelta | None,
        callback: Callable[[], None],
    ) -> TimerHandle:
        handle = TimerHandle(
            owner=owner,
            name=name or uuid.uuid4().hex[:8],
            due_at=due_at,
            interval=interval,
            callback=callback,
        )
        previous = self._timers.get(handle.key)
        if previous is not None:
            previous.cancelled = True
        self._timers[handle.key] = handle
        return handle

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(self, handle: TimerHandle) -> bool:
        current = self._timers.get(handle.key)
        handle.cancelled = True
        if current is handle:
            del self._timers[handle.key]
            return True
        return False

    def cancel_owner(self, owner: str) -> int:
        keys = [key for key in self._timers if key[0] == owner]
        for key in keys:
            self._timers.pop(key).cancelled = True
        return len(keys)

    def cancel_all(self) -> int:
        count = len(self._timers)
        for handle in self._timers.values():
            handle.cancelled = True
        self._timers.clear()
        return count

    def pending(self, owner: str | None = None) -> list[TimerHandle]:
        return [h for h in self._timers.values() if owner is None or h.owner == owner]

    # -------------------------------------------------------------------------
    # Driving
    # -------------------------------------------------------------------------

    def tick(self, now: datetime | None = None) -> int:
        """Fire every timer that is due. Returns the number fired."""
        now = now or self._clock()
        due = sorted(
            (h for h in self._timers.values() if h.due_at <= now),
            key=lambda h: h.due_at,
        )
        fired = 0
        for handle in due:
            # An earlier callback in this tick may have cancelled it
            if handle.cancelled or self._timers.get(handle.key) is not handle:
                continue

            if handle.repeating:
                next_due = handle.due_at + handle.interval
                if next_due <= now:
                    next_due = now + handle.interval
                handle.due_at = next_due
            else:
                del self._timers[handle.key]

            try:
                handle.callback()
            except Exception:
                logger.exception(f"Timer {handle.owner}/{handle.name} failed")
            fired += 1
        return fired

    async def run(self, resolution_seconds: float = 0.25) -> None:
        """Drive tick() from the event loop until stop() or cancellation."""
        self._running = True
        try:
            while self._running:
                self.tick()
                await asyncio.sleep(resolution_seconds)
        finally:
            self._running = False

    def stop(self) -> None:
        self._running = False

    @property
    def running(self) -> bool:
        return self._running
