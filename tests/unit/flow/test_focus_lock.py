"""Tests for actionengine/flow/focus_lock.py"""

import pytest

from actionengine.diagnostics import Diagnostics
from actionengine.flow.focus_lock import FocusLock, LockResult


@pytest.fixture
def diagnostics(clock):
    return Diagnostics(clock)


@pytest.fixture
def lock(clock, diagnostics):
    return FocusLock(clock, diagnostics)


class TestFocusLock:
    def test_starts_unlocked(self, lock):
        state = lock.is_locked()
        assert state.locked is False
        assert state.task_id is None

    def test_acquire_and_release(self, lock, clock):
        assert lock.acquire("t1") is LockResult.OK
        assert lock.is_locked().task_id == "t1"
        assert lock.is_locked().locked_at == clock()

        assert lock.release("t1") is LockResult.OK
        assert lock.task_id is None

    def test_reacquiring_same_task_keeps_timestamp(self, lock, clock):
        lock.acquire("t1")
        first = lock.is_locked().locked_at
        clock.advance(seconds=30)

        assert lock.acquire("t1") is LockResult.OK
        assert lock.is_locked().locked_at == first

    def test_conflict_is_refused_and_reported(self, lock, diagnostics):
        lock.acquire("t1")

        assert lock.acquire("t2") is LockResult.ALREADY_LOCKED
        assert lock.task_id == "t1"
        records = diagnostics.records("lock_conflict")
        assert len(records) == 1
        assert records[0].details == {"requested": "t2", "holder": "t1"}

    def test_release_by_non_owner_is_a_no_op(self, lock):
        lock.acquire("t1")
        assert lock.release("t2") is LockResult.NOT_OWNER
        assert lock.task_id == "t1"

    def test_release_when_unlocked_never_raises(self, lock):
        assert lock.release("t1") is LockResult.OK

    def test_force_release_returns_previous_holder(self, lock):
        lock.acquire("t1")
        assert lock.force_release() == "t1"
        assert lock.force_release() is None
        assert lock.is_locked().locked is False
