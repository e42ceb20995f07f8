"""
Circuit breakers for the engine's external collaborators.

One breaker per service ("mysportsfeeds", "llm"). After ``failure_threshold``
consecutive failures a breaker opens and rejects calls outright until
``timeout`` seconds pass; it then lets calls through half-open and closes
again after ``success_threshold`` successes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Optional, TypeVar

from src.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout: float = 60.0
    # Only these count as service failures; anything else propagates untouched
    expected_exception: type[BaseException] | tuple[type[BaseException], ...] = Exception


@dataclass
class CircuitBreakerStats:
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    half_open_successes: int = 0
    opened_at: Optional[float] = None
    total_calls: int = 0
    total_failures: int = 0
    total_rejections: int = 0


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the breaker is open."""

    def __init__(self, name: str, retry_in: float):
        self.name = name
        self.retry_in = retry_in
        super().__init__(f"Circuit breaker '{name}' is OPEN; retry in {retry_in:.1f}s")


class CircuitBreaker:
    """Closed/open/half-open breaker guarding one external service."""

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.stats = CircuitBreakerStats()
        self._lock = Lock()

    @property
    def state(self) -> CircuitState:
        return self.stats.state

    def _admit(self) -> None:
        with self._lock:
            self.stats.total_calls += 1
            if self.stats.state != CircuitState.OPEN:
                return

            elapsed = time.time() - (self.stats.opened_at or 0.0)
            if elapsed >= self.config.timeout:
                logger.info(f"Circuit breaker '{self.name}' half-open after {elapsed:.1f}s")
                self.stats.state = CircuitState.HALF_OPEN
                self.stats.half_open_successes = 0
                return

            self.stats.total_rejections += 1
            raise CircuitBreakerError(self.name, self.config.timeout - elapsed)

    def _on_success(self) -> None:
        with self._lock:
            self.stats.consecutive_failures = 0
            if self.stats.state != CircuitState.HALF_OPEN:
                return
            self.stats.half_open_successes += 1
            if self.stats.half_open_successes >= self.config.success_threshold:
                logger.info(f"Circuit breaker '{self.name}' closed")
                self.stats.state = CircuitState.CLOSED
                self.stats.opened_at = None

    def _on_failure(self) -> None:
        with self._lock:
            self.stats.consecutive_failures += 1
            self.stats.total_failures += 1
            # A failed probe reopens immediately
            tripped = (
                self.stats.state == CircuitState.HALF_OPEN
                or self.stats.consecutive_failures >= self.config.failure_threshold
            )
            if tripped:
                if self.stats.state != CircuitState.OPEN:
                    logger.warning(
                        f"Circuit breaker '{self.name}' opened after "
                        f"{self.stats.consecutive_failures} consecutive failures"
                    )
                self.stats.state = CircuitState.OPEN
                self.stats.opened_at = time.time()

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self._admit()
        try:
            result = func(*args, **kwargs)
        except self.config.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    async def call_async(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except self.config.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self.stats = CircuitBreakerStats()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "state": self.stats.state.value,
                "consecutive_failures": self.stats.consecutive_failures,
                "total_calls": self.stats.total_calls,
                "total_failures": self.stats.total_failures,
                "total_rejections": self.stats.total_rejections,
                "opened_at": self.stats.opened_at,
            }


_breakers: dict[str, CircuitBreaker] = {}
_breakers_lock = Lock()


def get_breaker(name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
    """Process-wide breaker for ``name``; ``config`` only applies on first use."""
    with _breakers_lock:
        breaker = _breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, config)
            _breakers[name] = breaker
        return breaker


def reset_all_breakers() -> None:
    with _breakers_lock:
        for breaker in _breakers.values():
            breaker.reset()
