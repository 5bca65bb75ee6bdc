"""
Tests for the circuit breaker.
"""
import pytest

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, CircuitState


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


async def ok():
    return "ok"


async def boom():
    raise RuntimeError("down")


class TestCircuitBreaker:
    """Tests for state changes."""

    def setup_method(self):
        self.clock = FakeClock()
        self.breaker = CircuitBreaker(
            name="test",
            failure_threshold=2,
            recovery_timeout=10,
            half_open_max_calls=1,
            clock=self.clock
        )

    async def test_opens_after_threshold(self):
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await self.breaker.call(boom)

        assert self.breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenException):
            await self.breaker.call(ok)

    async def test_success_resets_failure_count(self):
        with pytest.raises(RuntimeError):
            await self.breaker.call(boom)
        await self.breaker.call(ok)

        assert self.breaker.failure_count == 0
        assert self.breaker.state == CircuitState.CLOSED

    async def test_recovers_after_timeout(self):
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await self.breaker.call(boom)

        self.clock.now = 11
        assert await self.breaker.call(ok) == "ok"
        assert self.breaker.state == CircuitState.CLOSED

    async def test_failed_probe_reopens(self):
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await self.breaker.call(boom)

        self.clock.now = 11
        with pytest.raises(RuntimeError):
            await self.breaker.call(boom)

        assert self.breaker.state == CircuitState.OPEN

    async def test_excluded_exceptions_do_not_count(self):
        breaker = CircuitBreaker(name="excluded", failure_threshold=1, excluded_exceptions=(RuntimeError,))

        with pytest.raises(RuntimeError):
            await breaker.call(boom)

        assert breaker.state == CircuitState.CLOSED

    async def test_decorator(self):
        guarded = self.breaker(ok)

        assert await guarded() == "ok"
        assert self.breaker.get_status()["state"] == "closed"
