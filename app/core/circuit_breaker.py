"""
Circuit breaker guarding outbound calls to the messaging gateway.
"""
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar
from functools import wraps
from app.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Calls pass through
    OPEN = "open"  # Calls fail fast
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitBreakerOpenException(Exception):
    """Raised instead of calling the gateway while the circuit is open."""

    def __init__(self, message: str = "Circuit breaker is open"):
        self.message = message
        super().__init__(self.message)


class CircuitBreaker:
    """
    Per-process circuit breaker for an async dependency.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls fail with CircuitBreakerOpenException. Once ``recovery_timeout``
    seconds have passed, up to ``half_open_max_calls`` probe calls are let
    through; that many successes close the circuit, any failure reopens it.

    Usage:
        breaker = CircuitBreaker(name="whatsapp_api")
        result = await breaker.call(send, payload)
    """

    def __init__(
        self,
        name: str,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[int] = None,
        half_open_max_calls: Optional[int] = None,
        excluded_exceptions: tuple = (),
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self.failure_threshold = failure_threshold or settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD
        self.recovery_timeout = recovery_timeout or settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT
        self.half_open_max_calls = half_open_max_calls or settings.CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS
        self.excluded_exceptions = excluded_exceptions
        self._clock = clock
        self.reset()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def reset(self) -> None:
        """Return to the closed state and forget past failures."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._probe_calls = 0
        self._probe_successes = 0
        self._opened_at: Optional[float] = None

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._probe_calls = 0
        self._probe_successes = 0
        logger.warning(f"Circuit breaker '{self.name}' opened after {self._failure_count} failure(s)")

    def _before_call(self) -> None:
        if self._state == CircuitState.OPEN:
            if self._clock() - self._opened_at < self.recovery_timeout:
                raise CircuitBreakerOpenException(
                    f"Circuit breaker '{self.name}' is open. Retry after {self.recovery_timeout}s"
                )
            self._state = CircuitState.HALF_OPEN
            self._probe_calls = 0
            self._probe_successes = 0
            logger.info(f"Circuit breaker '{self.name}' half-open, probing")

        if self._state == CircuitState.HALF_OPEN:
            if self._probe_calls >= self.half_open_max_calls:
                raise CircuitBreakerOpenException(
                    f"Circuit breaker '{self.name}' half-open call limit reached"
                )
            self._probe_calls += 1

    def _record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._probe_successes += 1
            if self._probe_successes >= self.half_open_max_calls:
                self.reset()
                logger.info(f"Circuit breaker '{self.name}' closed after recovery")
        else:
            self._failure_count = 0

    def _record_failure(self, exc: Exception) -> None:
        if isinstance(exc, self.excluded_exceptions):
            return
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._trip()

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Run ``func`` through the breaker.

        Raises:
            CircuitBreakerOpenException while open, or whatever ``func`` raises
        """
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self._record_failure(e)
            raise
        self._record_success()
        return result

    def __call__(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorator form of ``call``."""
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.call(func, *args, **kwargs)
        return wrapper

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }


whatsapp_circuit_breaker = CircuitBreaker(name="whatsapp_api")
