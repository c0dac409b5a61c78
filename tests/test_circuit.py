"""Tests for the quota circuit breaker state machine."""

import pytest

from src.places import CircuitBreaker, CircuitState


class TestCircuitBreaker:

    def test_opens_after_threshold(self, fake_clock):
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=30, clock=fake_clock)
        breaker.record_quota_failure()
        breaker.record_quota_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.allow_request()

        breaker.record_quota_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_success_resets_count(self, fake_clock):
        breaker = CircuitBreaker(failure_threshold=3, clock=fake_clock)
        breaker.record_quota_failure()
        breaker.record_quota_failure()
        breaker.record_success()
        breaker.record_quota_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 1

    def test_half_open_after_timeout(self, fake_clock):
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=30, clock=fake_clock)
        breaker.record_quota_failure()
        fake_clock.advance(29)
        assert breaker.state == CircuitState.OPEN

        fake_clock.advance(1)
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

    def test_half_open_success_closes(self, fake_clock):
        breaker = CircuitBreaker(failure_threshold=2, reset_timeout=10, clock=fake_clock)
        breaker.record_quota_failure()
        breaker.record_quota_failure()
        fake_clock.advance(10)
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0

    def test_half_open_failure_reopens(self, fake_clock):
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=10, clock=fake_clock)
        for _ in range(3):
            breaker.record_quota_failure()
        fake_clock.advance(10)
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_quota_failure()
        assert breaker.state == CircuitState.OPEN
        fake_clock.advance(9)
        assert not breaker.allow_request()

    def test_reset(self, fake_clock):
        breaker = CircuitBreaker(failure_threshold=1, clock=fake_clock)
        breaker.record_quota_failure()
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.to_dict()["consecutive_failures"] == 0

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            CircuitBreaker(failure_threshold=0)
