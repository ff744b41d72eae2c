"""
Live nudge board and micro-flow slot.

The board keeps at most ONE live nudge per type. Publishing a nudge whose type
is already live replaces it, which also restarts its TTL. Types live in
independent slots with independent TTLs; the toast shows whichever live nudge
was created last. A nudge past its TTL is never returned, even before the
next expiry sweep removes it.

Micro-flows are simpler: one slot, latest offer wins.
"""

from __future__ import annotations

import logging
from datetime import datetime

from actionengine.models import MicroFlow, Nudge, NudgeType, new_id

logger = logging.getLogger(__name__)

PUSH_TITLE = "3-Minute Push"


class NudgeBoard:
    def __init__(self) -> None:
        self._slots: dict[NudgeType, Nudge] = {}

    def publish(self, nudge: Nudge) -> Nudge | None:
        """Make the nudge live. Returns the nudge it replaced, if any."""
        replaced = self._slots.get(nudge.type)
        self._slots[nudge.type] = nudge
        if replaced is not None:
            logger.debug(f"Nudge {nudge.type.value} replaced {replaced.id} with {nudge.id}")
        return replaced

    def live(self, now: datetime) -> list[Nudge]:
        """Live nudges, newest first."""
        alive = [n for n in self._slots.values() if not n.is_expired(now)]
        return sorted(alive, key=lambda n: n.created_at, reverse=True)

    def current(self, now: datetime) -> Nudge | None:
        alive = self.live(now)
        return alive[0] if alive else None

    def get(self, nudge_type: NudgeType, now: datetime) -> Nudge | None:
        nudge = self._slots.get(nudge_type)
        if nudge is None or nudge.is_expired(now):
            return None
        return nudge

    def dismiss(self, nudge_id: str) -> Nudge | None:
        for nudge_type, nudge in list(self._slots.items()):
            if nudge.id == nudge_id:
                del self._slots[nudge_type]
                return nudge
        return None

    def expire(self, now: datetime) -> list[Nudge]:
        expired = [n for n in self._slots.values() if n.is_expired(now)]
        for nudge in expired:
            del self._slots[nudge.type]
        return expired

    def clear(self) -> None:
        self._slots.clear()

    def __len__(self) -> int:
        return len(self._slots)


class MicroFlowSlot:
    def __init__(self) -> None:
        self._current: MicroFlow | None = None

    @property
    def current(self) -> MicroFlow | None:
        return self._current

    def offer(self, micro_flow: MicroFlow) -> MicroFlow | None:
        replaced, self._current = self._current, micro_flow
        return replaced

    def dismiss(self, micro_flow_id: str) -> bool:
        if self._current is None or self._current.id != micro_flow_id:
            return False
        self._current = None
        return True

    def clear(self) -> None:
        self._current = None


def push_for(task_title: str, now: datetime) -> MicroFlow:
    """The micro-flow offered with a start_small nudge."""
    return MicroFlow(
        id=new_id("mfl"),
        title=PUSH_TITLE,
        steps=(
            f"Open '{task_title}' and read the title out loud",
            "Write one messy sentence about the very first step",
            "Keep going until the 3 minutes are up, then decide",
        ),
        created_at=now,
    )
