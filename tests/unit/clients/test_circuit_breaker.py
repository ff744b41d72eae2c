"""Tests for actionengine/clients/circuit_breaker.py"""

import pytest

from actionengine.clients.circuit_breaker import CircuitBreaker


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def breaker(monotonic):
    return CircuitBreaker(failure_threshold=3, recovery_timeout=60, monotonic=monotonic)


class TestCircuitBreaker:
    def test_closed_by_default(self, breaker):
        assert breaker.can_execute("session_mirror") is True
        assert breaker.get_state("session_mirror") == "closed"

    def test_opens_after_threshold(self, breaker):
        for _ in range(3):
            breaker.record_failure("session_mirror")

        assert breaker.get_state("session_mirror") == "open"
        assert breaker.can_execute("session_mirror") is False

    def test_success_resets_the_count(self, breaker):
        breaker.record_failure("session_mirror")
        breaker.record_failure("session_mirror")
        breaker.record_success("session_mirror")
        breaker.record_failure("session_mirror")

        assert breaker.get_state("session_mirror") == "closed"

    def test_half_open_allows_one_trial(self, breaker, monotonic):
        for _ in range(3):
            breaker.record_failure("telemetry")
        monotonic.value += 61

        assert breaker.get_state("telemetry") == "half_open"
        assert breaker.can_execute("telemetry") is True
        assert breaker.can_execute("telemetry") is False

    def test_failed_trial_reopens(self, breaker, monotonic):
        for _ in range(3):
            breaker.record_failure("telemetry")
        monotonic.value += 61
        breaker.can_execute("telemetry")
        breaker.record_failure("telemetry")

        assert breaker.get_state("telemetry") == "open"

    def test_successful_trial_closes(self, breaker, monotonic):
        for _ in range(3):
            breaker.record_failure("telemetry")
        monotonic.value += 61
        breaker.can_execute("telemetry")
        breaker.record_success("telemetry")

        assert breaker.get_state("telemetry") == "closed"
        assert breaker.can_execute("telemetry") is True

    def test_services_are_independent(self, breaker):
        for _ in range(3):
            breaker.record_failure("telemetry")

        assert breaker.can_execute("session_mirror") is True
        states = breaker.get_all_states()
        assert states["telemetry"]["state"] == "open"
        assert states["session_mirror"]["failure_count"] == 0

    def test_reset(self, breaker):
        for _ in range(3):
            breaker.record_failure("telemetry")
        breaker.reset("telemetry")
        assert breaker.can_execute("telemetry") is True
