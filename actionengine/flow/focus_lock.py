"""
Focus Lock

Single slot naming the one task the user should not switch away from. Only
the Flow Runner writes it; everything else reads is_locked(). Neither call
ever raises: a conflicting acquire is refused and reported to diagnostics,
and a release by a non-owner is a reported no-op, so code that merely
observes the lock cannot corrupt it.
"""

import logging
from enum import StrEnum

from actionengine.diagnostics import Diagnostics
from actionengine.models import Clock, FocusLockState, utcnow

logger = logging.getLogger(__name__)


class LockResult(StrEnum):
    OK = "ok"
    ALREADY_LOCKED = "already_locked"
    NOT_OWNER = "not_owner"


class FocusLock:
    def __init__(self, clock: Clock = utcnow, diagnostics: Diagnostics | None = None) -> None:
        self._clock = clock
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics(clock)
        self._state = FocusLockState()

    def is_locked(self) -> FocusLockState:
        return self._state

    @property
    def task_id(self) -> str | None:
        return self._state.task_id

    def acquire(self, task_id: str) -> LockResult:
        holder = self._state.task_id
        if holder is not None and holder != task_id:
            self._diagnostics.report("lock_conflict", requested=task_id, holder=holder)
            return LockResult.ALREADY_LOCKED
        if holder != task_id:
            self._state = FocusLockState(task_id=task_id, locked_at=self._clock())
            logger.info(f"Focus lock acquired for {task_id}")
        return LockResult.OK

    def release(self, task_id: str) -> LockResult:
        holder = self._state.task_id
        if holder is None:
            return LockResult.OK
        if holder != task_id:
            logger.debug(f"Ignoring release of {task_id}, lock held by {holder}")
            return LockResult.NOT_OWNER
        self._state = FocusLockState()
        logger.info(f"Focus lock released for {task_id}")
        return LockResult.OK

    def force_release(self) -> str | None:
        """Clear the lock whoever holds it. Reserved for stop and teardown."""
        holder = self._state.task_id
        self._state = FocusLockState()
        if holder is not None:
            logger.info(f"Focus lock force-released from {holder}")
        return holder
