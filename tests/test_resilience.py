"""
Tests for the circuit breaker
"""

import pytest

from common.resilience import CircuitBreaker


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def breaker(fake_clock):
    return CircuitBreaker(failure_threshold=3, recovery_timeout=60.0, name="test", clock=fake_clock)


class TestCircuitBreaker:

    def test_opens_at_threshold(self, breaker):
        for _ in range(2):
            breaker.record_failure()
        assert breaker.is_closed
        breaker.record_failure()
        assert breaker.is_open
        assert not breaker.allow_request()

    def test_success_resets_failure_count(self, breaker):
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.is_closed
        assert breaker.failure_count == 1

    def test_half_open_after_timeout(self, breaker, fake_clock):
        for _ in range(3):
            breaker.record_failure()

        fake_clock.now += 59
        assert not breaker.allow_request()
        fake_clock.now += 1
        assert breaker.allow_request()
        assert breaker.state == CircuitBreaker.HALF_OPEN

    def test_half_open_failure_reopens(self, breaker, fake_clock):
        for _ in range(3):
            breaker.record_failure()
        fake_clock.now += 60
        breaker.allow_request()

        breaker.record_failure()

        assert breaker.is_open
        assert not breaker.allow_request()

    def test_half_open_success_closes(self, breaker, fake_clock):
        for _ in range(3):
            breaker.record_failure()
        fake_clock.now += 60
        breaker.allow_request()

        breaker.record_success()

        assert breaker.is_closed
        assert breaker.failure_count == 0
