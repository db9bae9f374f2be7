"""
Circuit Breaker

Stops calling an upstream (a Hive API node, the database) once it has
failed often enough, then probes it again after a cool-down.

States:
- CLOSED: calls pass through
- OPEN: calls fail fast with CircuitBreakerError
- HALF_OPEN: a few trial calls decide whether to close again
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""

    failure_threshold: int = 5          # Consecutive failures before opening
    failure_rate_threshold: float = 0.5

    recovery_timeout: float = 30.0      # Seconds before half-open
    half_open_max_calls: int = 3

    window_size: int = 10
    min_calls_for_rate: int = 5

    success_threshold: int = 2          # Half-open successes needed to close

    call_timeout: float | None = 30.0

    # Errors that mean "the upstream answered", not "the upstream is down"
    excluded_exceptions: tuple[type[Exception], ...] = ()


@dataclass
class CircuitStats:
    """Counters for one breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    timeout_calls: int = 0
    consecutive_failures: int = 0

    # True for success, False for failure, newest last
    window: deque[bool] = field(default_factory=deque)

    last_failure_time: float | None = None
    last_success_time: float | None = None
    opened_at: float | None = None

    half_open_successes: int = 0
    half_open_calls: int = 0

    @property
    def window_failures(self) -> int:
        return sum(1 for ok in self.window if not ok)

    @property
    def failure_rate(self) -> float:
        if not self.window:
            return 0.0
        return self.window_failures / len(self.window)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "rejected_calls": self.rejected_calls,
            "timeout_calls": self.timeout_calls,
            "consecutive_failures": self.consecutive_failures,
            "failure_rate": self.failure_rate,
            "last_failure_time": self.last_failure_time,
            "last_success_time": self.last_success_time,
        }


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and the call is rejected."""

    def __init__(
        self,
        circuit_name: str,
        state: CircuitState,
        recovery_time: float | None = None,
    ):
        self.circuit_name = circuit_name
        self.state = state
        self.recovery_time = recovery_time

        msg = f"Circuit '{circuit_name}' is {state.value}"
        if recovery_time:
            msg += f", recovery in {recovery_time:.1f}s"
        super().__init__(msg)


class CircuitBreaker(Generic[T]):
    """
    Circuit breaker for one upstream.

    Usage:
        breaker = CircuitBreaker("hive:https://api.hive.blog")
        result = await breaker.call(fetch, payload)

        @breaker
        async def fetch(...): ...
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._stats = CircuitStats(window=deque(maxlen=self.config.window_size))
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the cool-down has passed."""
        if self._state == CircuitState.OPEN and self._recovery_elapsed():
            self._set_state(CircuitState.HALF_OPEN)
        return self._state

    @property
    def stats(self) -> CircuitStats:
        return self._stats

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def _recovery_elapsed(self) -> bool:
        if self._stats.opened_at is None:
            return True
        return self._clock() - self._stats.opened_at >= self.config.recovery_timeout

    def _recovery_time(self) -> float | None:
        if self._state != CircuitState.OPEN or self._stats.opened_at is None:
            return None
        remaining = self.config.recovery_timeout - (self._clock() - self._stats.opened_at)
        return max(0.0, remaining)

    def _set_state(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        old_state = self._state
        self._state = new_state

        if new_state == CircuitState.OPEN:
            self._stats.opened_at = self._clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._stats.half_open_successes = 0
            self._stats.half_open_calls = 0
        elif new_state == CircuitState.CLOSED:
            self._stats.window.clear()
            self._stats.opened_at = None

        logger.info(
            "circuit_breaker_state_change",
            name=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
            failure_rate=self._stats.failure_rate,
        )

    def _should_open(self) -> bool:
        failures = self._stats.consecutive_failures
        if failures >= self.config.failure_threshold:
            logger.warning(
                "circuit_breaker_failure_threshold",
                name=self.name,
                failures=failures,
                threshold=self.config.failure_threshold,
            )
            return True
        if len(self._stats.window) >= self.config.min_calls_for_rate:
            rate = self._stats.failure_rate
            if rate >= self.config.failure_rate_threshold:
                logger.warning(
                    "circuit_breaker_rate_threshold",
                    name=self.name,
                    failure_rate=rate,
                    threshold=self.config.failure_rate_threshold,
                )
                return True
        return False

    def record_success(self) -> None:
        self._stats.total_calls += 1
        self._stats.successful_calls += 1
        self._stats.last_success_time = self._clock()
        self._stats.consecutive_failures = 0

        if self._state == CircuitState.HALF_OPEN:
            self._stats.half_open_successes += 1
            if self._stats.half_open_successes >= self.config.success_threshold:
                self._set_state(CircuitState.CLOSED)
        else:
            self._stats.window.append(True)

    def record_failure(self) -> None:
        self._stats.total_calls += 1
        self._stats.failed_calls += 1
        self._stats.last_failure_time = self._clock()
        self._stats.consecutive_failures += 1

        if self._state == CircuitState.HALF_OPEN:
            # Any failure while probing reopens
            self._set_state(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED:
            self._stats.window.append(False)
            if self._should_open():
                self._set_state(CircuitState.OPEN)

    def _admit(self) -> None:
        state = self.state
        if state == CircuitState.CLOSED:
            return
        if state == CircuitState.HALF_OPEN and self._stats.half_open_calls < self.config.half_open_max_calls:
            self._stats.half_open_calls += 1
            return
        self._stats.rejected_calls += 1
        raise CircuitBreakerError(self.name, state, self._recovery_time())

    async def call(
        self,
        func: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute a coroutine function through the breaker.

        Raises:
            CircuitBreakerError: If the circuit is open
            TimeoutError: If the call exceeds call_timeout
        """
        async with self._lock:
            self._admit()

        try:
            if self.config.call_timeout:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=self.config.call_timeout)
            else:
                result = await func(*args, **kwargs)
        except asyncio.TimeoutError:
            async with self._lock:
                self._stats.timeout_calls += 1
                self.record_failure()
            raise
        except Exception as e:
            async with self._lock:
                if isinstance(e, self.config.excluded_exceptions):
                    self.record_success()
                else:
                    self.record_failure()
            raise

        async with self._lock:
            self.record_success()
        return result

    def __call__(
        self,
        func: Callable[..., Coroutine[Any, Any, T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.call(func, *args, **kwargs)

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    def reset(self) -> None:
        self._stats = CircuitStats(window=deque(maxlen=self.config.window_size))
        self._set_state(CircuitState.CLOSED)
        logger.info("circuit_breaker_reset", name=self.name)

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "stats": self._stats.to_dict(),
            "recovery_time": self._recovery_time(),
        }


class CircuitBreakerRegistry:
    """Named breakers shared across the process."""

    def __init__(self) -> None:
        self._breakers: dict[str, CircuitBreaker] = {}

    def get_or_create(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(name, config)
        return self._breakers[name]

    def get(self, name: str) -> CircuitBreaker | None:
        return self._breakers.get(name)

    def list_all(self) -> list[str]:
        return list(self._breakers.keys())

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        return {name: breaker.get_status() for name, breaker in self._breakers.items()}

    def get_open_circuits(self) -> list[str]:
        return [name for name, breaker in self._breakers.items() if breaker.is_open]

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()


_global_registry: CircuitBreakerRegistry | None = None
_registry_lock = threading.Lock()


def get_circuit_registry() -> CircuitBreakerRegistry:
    """Get the process-wide registry (double-checked locking)."""
    global _global_registry
    if _global_registry is None:
        with _registry_lock:
            if _global_registry is None:
                _global_registry = CircuitBreakerRegistry()
    return _global_registry


def hive_node_breaker(node_url: str) -> CircuitBreaker:
    """Breaker for one Hive API node. Nodes recover quickly, so the cool-down is short."""
    config = CircuitBreakerConfig(
        failure_threshold=3,
        recovery_timeout=30.0,
        call_timeout=None,
    )
    return get_circuit_registry().get_or_create(f"hive:{node_url}", config)


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerRegistry",
    "CircuitState",
    "CircuitStats",
    "get_circuit_registry",
    "hive_node_breaker",
]
