"""
Circuit breaker tests

State transitions, half-open probing, excluded exceptions and the registry.
"""

import asyncio

import pytest

from sportsblock.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitBreakerRegistry,
    CircuitState,
    hive_node_breaker,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class UpstreamAnswered(Exception):
    pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    config = CircuitBreakerConfig(
        failure_threshold=3,
        recovery_timeout=10.0,
        half_open_max_calls=1,
        success_threshold=1,
        call_timeout=None,
        excluded_exceptions=(UpstreamAnswered,),
    )
    return CircuitBreaker("test", config, clock=clock)


async def ok():
    return "ok"


async def boom():
    raise RuntimeError("down")


async def answered():
    raise UpstreamAnswered()


class TestStateTransitions:
    """Tests for closed -> open -> half-open -> closed."""

    def test_starts_closed(self, breaker):
        assert breaker.is_closed
        assert breaker.get_status()["state"] == "closed"

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        for _ in range(3):
            with pytest.raises(RuntimeError):
                await breaker.call(boom)

        assert breaker.is_open
        with pytest.raises(CircuitBreakerError) as exc_info:
            await breaker.call(ok)
        assert exc_info.value.state == CircuitState.OPEN
        assert breaker.stats.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_half_open_after_recovery_timeout(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        assert breaker.is_open

        clock.now += 10
        assert breaker.is_half_open

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        clock.now += 10

        assert await breaker.call(ok) == "ok"
        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        clock.now += 10

        with pytest.raises(RuntimeError):
            await breaker.call(boom)
        assert breaker.is_open

    @pytest.mark.asyncio
    async def test_half_open_limits_probe_calls(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        clock.now += 10

        breaker._admit()
        with pytest.raises(CircuitBreakerError):
            breaker._admit()

    def test_failure_rate_opens(self, clock):
        config = CircuitBreakerConfig(
            failure_threshold=100,
            failure_rate_threshold=0.5,
            min_calls_for_rate=4,
            call_timeout=None,
        )
        breaker = CircuitBreaker("rate", config, clock=clock)
        breaker.record_success()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.is_closed
        breaker.record_failure()
        assert breaker.is_open

    def test_interleaved_failures_stay_closed(self, breaker):
        """Failures split by successes never reach the consecutive threshold."""
        for ok_call in (False, True, True, False, True, True, True, False):
            if ok_call:
                breaker.record_success()
            else:
                breaker.record_failure()

        assert breaker.is_closed
        assert breaker.get_status()["stats"]["consecutive_failures"] == 1

    def test_success_resets_consecutive_count(self, clock):
        config = CircuitBreakerConfig(failure_threshold=3, min_calls_for_rate=100, call_timeout=None)
        breaker = CircuitBreaker("streak", config, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.is_closed

        breaker.record_failure()
        assert breaker.is_open

    def test_recovery_time_reported(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        clock.now += 4
        assert breaker.get_status()["recovery_time"] == pytest.approx(6.0)


class TestCalls:
    """Tests for call accounting."""

    @pytest.mark.asyncio
    async def test_excluded_exception_counts_as_success(self, breaker):
        for _ in range(5):
            with pytest.raises(UpstreamAnswered):
                await breaker.call(answered)
        assert breaker.is_closed
        assert breaker.stats.successful_calls == 5

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, clock):
        breaker = CircuitBreaker(
            "slow", CircuitBreakerConfig(failure_threshold=1, call_timeout=0.01), clock=clock
        )

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(asyncio.TimeoutError):
            await breaker.call(slow)
        assert breaker.stats.timeout_calls == 1
        assert breaker.is_open

    @pytest.mark.asyncio
    async def test_decorator(self, breaker):
        @breaker
        async def fetch(value):
            return value * 2

        assert await fetch(21) == 42
        assert fetch.__name__ == "fetch"

    def test_reset(self, breaker):
        for _ in range(3):
            breaker.record_failure()
        breaker.reset()
        assert breaker.is_closed
        assert breaker.stats.total_calls == 0


class TestRegistry:
    """Tests for CircuitBreakerRegistry."""

    def test_get_or_create_is_idempotent(self):
        registry = CircuitBreakerRegistry()
        first = registry.get_or_create("hive:a")
        assert registry.get_or_create("hive:a") is first
        assert registry.list_all() == ["hive:a"]

    def test_open_circuits(self):
        registry = CircuitBreakerRegistry()
        breaker = registry.get_or_create("hive:a", CircuitBreakerConfig(failure_threshold=1))
        registry.get_or_create("hive:b")
        breaker.record_failure()

        assert registry.get_open_circuits() == ["hive:a"]
        registry.reset_all()
        assert registry.get_open_circuits() == []

    def test_hive_node_breaker_is_shared(self):
        assert hive_node_breaker("https://x.example") is hive_node_breaker("https://x.example")
        assert hive_node_breaker("https://x.example").config.failure_threshold == 3
