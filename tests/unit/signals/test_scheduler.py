"""Tests for actionengine/signals/scheduler.py"""

import asyncio

import pytest

from actionengine.signals.scheduler import CooperativeScheduler


@pytest.fixture
def scheduler(clock):
    return CooperativeScheduler(clock)


class TestRegistration:
    def test_every_rejects_non_positive_interval(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.every("owner", 0, lambda: None)

    def test_after_with_same_name_replaces_pending_timer(self, scheduler, clock):
        fired = []
        first = scheduler.after("sub", 1.5, lambda: fired.append("first"), name="debounce")
        scheduler.after("sub", 1.5, lambda: fired.append("second"), name="debounce")

        clock.advance(seconds=2)
        scheduler.tick()

        assert fired == ["second"]
        assert first.cancelled is True

    def test_pending_filters_by_owner(self, scheduler):
        scheduler.every("a", 1, lambda: None, name="poll")
        scheduler.every("b", 1, lambda: None, name="poll")
        assert [h.owner for h in scheduler.pending("a")] == ["a"]
        assert len(scheduler.pending()) == 2


class TestTick:
    def test_one_shot_fires_once(self, scheduler, clock):
        fired = []
        scheduler.after("owner", 1, lambda: fired.append(clock()))

        assert scheduler.tick() == 0
        clock.advance(seconds=1)
        assert scheduler.tick() == 1
        clock.advance(seconds=5)
        assert scheduler.tick() == 0
        assert len(fired) == 1

    def test_repeating_timer_keeps_firing(self, scheduler, clock):
        fired = []
        scheduler.every("owner", 1, lambda: fired.append(1))

        for _ in range(3):
            clock.advance(seconds=1)
            scheduler.tick()

        assert len(fired) == 3

    def test_late_tick_does_not_replay_missed_intervals(self, scheduler, clock):
        fired = []
        scheduler.every("owner", 1, lambda: fired.append(1))

        clock.advance(seconds=10)
        scheduler.tick()

        assert len(fired) == 1

    def test_timers_fire_in_due_order(self, scheduler, clock):
        order = []
        scheduler.after("owner", 2, lambda: order.append("late"), name="late")
        scheduler.after("owner", 1, lambda: order.append("early"), name="early")

        clock.advance(seconds=3)
        scheduler.tick()

        assert order == ["early", "late"]

    def test_callback_cancelling_a_later_timer(self, scheduler, clock):
        fired = []
        scheduler.after("owner", 1, lambda: scheduler.cancel_owner("victim"), name="killer")
        scheduler.after("victim", 2, lambda: fired.append("victim"))

        clock.advance(seconds=3)
        scheduler.tick()

        assert fired == []

    def test_failing_callback_does_not_stop_others(self, scheduler, clock):
        fired = []

        def boom():
            raise RuntimeError("boom")

        scheduler.after("owner", 1, boom, name="boom")
        scheduler.after("owner", 1, lambda: fired.append("ok"), name="ok")

        clock.advance(seconds=1)
        scheduler.tick()

        assert fired == ["ok"]


class TestCancellation:
    def test_cancel_owner_removes_only_that_owner(self, scheduler, clock):
        fired = []
        scheduler.every("a", 1, lambda: fired.append("a"))
        scheduler.every("b", 1, lambda: fired.append("b"))

        assert scheduler.cancel_owner("a") == 1
        clock.advance(seconds=1)
        scheduler.tick()

        assert fired == ["b"]

    def test_cancel_returns_false_for_replaced_handle(self, scheduler):
        old = scheduler.after("owner", 1, lambda: None, name="x")
        scheduler.after("owner", 1, lambda: None, name="x")
        assert scheduler.cancel(old) is False
        assert len(scheduler.pending("owner")) == 1

    def test_cancel_all(self, scheduler):
        scheduler.every("a", 1, lambda: None)
        scheduler.after("b", 1, lambda: None)
        assert scheduler.cancel_all() == 2
        assert scheduler.pending() == []


class TestRun:
    @pytest.mark.asyncio
    async def test_run_stops_when_asked(self):
        scheduler = CooperativeScheduler()
        fired = []
        scheduler.after("owner", 0, lambda: fired.append(1))

        task = asyncio.create_task(scheduler.run(resolution_seconds=0.01))
        await asyncio.sleep(0.05)
        assert scheduler.running is True

        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert fired == [1]
        assert scheduler.running is False
