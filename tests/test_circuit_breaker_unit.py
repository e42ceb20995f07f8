"""Tests for the circuit breaker."""
import time

import pytest

from src.utils.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    get_breaker,
    reset_all_breakers,
)


def test_circuit_breaker_opens_after_threshold_failures(monkeypatch):
    now = 1000.0

    def fake_time():
        return now

    monkeypatch.setattr(time, "time", fake_time)

    breaker = CircuitBreaker(
        "test",
        CircuitBreakerConfig(
            failure_threshold=2, success_threshold=1, timeout=10.0, expected_exception=ValueError
        ),
    )

    def bad():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        breaker.call(bad)
    assert breaker.stats.state == CircuitState.CLOSED

    with pytest.raises(ValueError):
        breaker.call(bad)
    assert breaker.stats.state == CircuitState.OPEN

    with pytest.raises(CircuitBreakerError):
        breaker.call(lambda: 1)


def test_circuit_breaker_transitions_to_half_open_after_timeout(monkeypatch):
    now = 2000.0

    def fake_time():
        return now

    monkeypatch.setattr(time, "time", fake_time)

    breaker = CircuitBreaker(
        "test",
        CircuitBreakerConfig(
            failure_threshold=1, success_threshold=2, timeout=5.0, expected_exception=RuntimeError
        ),
    )

    def bad():
        raise RuntimeError("fail")

    with pytest.raises(RuntimeError):
        breaker.call(bad)
    assert breaker.stats.state == CircuitState.OPEN

    now += 4.9
    with pytest.raises(CircuitBreakerError):
        breaker.call(lambda: 123)

    now += 0.2
    assert breaker.call(lambda: 123) == 123
    assert breaker.stats.state == CircuitState.HALF_OPEN

    assert breaker.call(lambda: 456) == 456
    assert breaker.stats.state == CircuitState.CLOSED


def test_circuit_breaker_unexpected_exception_does_not_count(monkeypatch):
    now = 3000.0

    def fake_time():
        return now

    monkeypatch.setattr(time, "time", fake_time)

    breaker = CircuitBreaker(
        "test",
        CircuitBreakerConfig(
            failure_threshold=1, success_threshold=1, timeout=1.0, expected_exception=ValueError
        ),
    )

    def boom():
        raise RuntimeError("unexpected")

    with pytest.raises(RuntimeError):
        breaker.call(boom)

    assert breaker.stats.total_calls == 1
    assert breaker.stats.total_failures == 0
    assert breaker.stats.state == CircuitState.CLOSED


def test_circuit_breaker_failed_probe_reopens(monkeypatch):
    now = 4000.0

    def fake_time():
        return now

    monkeypatch.setattr(time, "time", fake_time)

    breaker = CircuitBreaker(
        "test",
        CircuitBreakerConfig(
            failure_threshold=3, success_threshold=2, timeout=5.0, expected_exception=ValueError
        ),
    )

    def bad():
        raise ValueError("fail")

    for _ in range(3):
        with pytest.raises(ValueError):
            breaker.call(bad)
    assert breaker.state == CircuitState.OPEN

    now += 6.0
    with pytest.raises(ValueError):
        breaker.call(bad)
    assert breaker.state == CircuitState.OPEN
    assert breaker.stats.opened_at == now

    with pytest.raises(CircuitBreakerError) as exc_info:
        breaker.call(lambda: 1)
    assert exc_info.value.name == "test"
    assert exc_info.value.retry_in == pytest.approx(5.0)


def test_success_resets_consecutive_failures():
    breaker = CircuitBreaker(
        "test", CircuitBreakerConfig(failure_threshold=2, expected_exception=ValueError)
    )

    def bad():
        raise ValueError("fail")

    with pytest.raises(ValueError):
        breaker.call(bad)
    breaker.call(lambda: None)
    with pytest.raises(ValueError):
        breaker.call(bad)

    assert breaker.state == CircuitState.CLOSED
    assert breaker.get_stats()["consecutive_failures"] == 1
    assert breaker.get_stats()["total_failures"] == 2


@pytest.mark.asyncio
async def test_call_async_counts_failures():
    breaker = CircuitBreaker(
        "test", CircuitBreakerConfig(failure_threshold=1, timeout=60.0, expected_exception=ConnectionError)
    )

    async def ok(value):
        return value

    async def bad():
        raise ConnectionError("down")

    assert await breaker.call_async(ok, 7) == 7

    with pytest.raises(ConnectionError):
        await breaker.call_async(bad)
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(CircuitBreakerError):
        await breaker.call_async(ok, 8)
    assert breaker.get_stats()["total_rejections"] == 1


def test_get_breaker_is_shared_and_resettable():
    first = get_breaker("shared-test", CircuitBreakerConfig(failure_threshold=1, expected_exception=ValueError))
    second = get_breaker("shared-test")
    assert first is second
    assert second.config.failure_threshold == 1

    def bad():
        raise ValueError("fail")

    with pytest.raises(ValueError):
        first.call(bad)
    assert first.state == CircuitState.OPEN

    reset_all_breakers()
    assert first.state == CircuitState.CLOSED
    assert first.get_stats()["total_calls"] == 0
