"""Bounded, time-windowed buffer of recent ActionEvents.

Only classification and the session debrief read it, so it keeps at most
``max_events`` entries and drops anything older than the retention window on
every prune().
"""

from collections import deque
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta

from actionengine.models import ActionEvent


class EventHistory:
    def __init__(self, max_events: int = 500, retention_minutes: float = 240.0) -> None:
        self._events: deque[ActionEvent] = deque(maxlen=max_events)
        self.retention = timedelta(minutes=retention_minutes)

    def append(self, event: ActionEvent) -> None:
        self._events.append(event)

    def extend(self, events: Iterable[ActionEvent]) -> None:
        for event in events:
            self.append(event)

    def prune(self, now: datetime) -> int:
        cutoff = now - self.retention
        dropped = 0
        while self._events and self._events[0].timestamp < cutoff:
            self._events.popleft()
            dropped += 1
        return dropped

    def recent(
        self,
        kinds: str | Iterable[str] | None = None,
        since: datetime | None = None,
        subject_id: str | None = None,
    ) -> list[ActionEvent]:
        """Events matching the filters, oldest first."""
        if isinstance(kinds, str):
            kinds = {kinds}
        elif kinds is not None:
            kinds = set(kinds)

        return [
            e
            for e in self._events
            if (kinds is None or e.kind in kinds)
            and (since is None or e.timestamp >= since)
            and (subject_id is None or e.subject_id == subject_id)
        ]

    def last(self, kinds: str | Iterable[str] | None = None, subject_id: str | None = None) -> ActionEvent | None:
        matches = self.recent(kinds, subject_id=subject_id)
        return matches[-1] if matches else None

    def __iter__(self) -> Iterator[ActionEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
