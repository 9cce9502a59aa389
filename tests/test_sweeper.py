"""Tests for the background sweeper of expired rate limit entries."""

import threading
from unittest.mock import Mock

import pytest

from authguard.adapters.rate_limit.in_memory import InMemoryProgressiveRateLimiter
from authguard.adapters.rate_limit.sweeper import RateLimitSweeper


def test_sweep_evicts_expired_entries() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryProgressiveRateLimiter(window_seconds=60, clock=clock)
    limiter.record_attempt("ip:10.0.0.1", success=False)
    sweeper = RateLimitSweeper(limiter, interval_seconds=60)

    clock.return_value = 1060.0

    assert sweeper.sweep() == 1
    assert limiter.get_statistics().total_tracked_identifiers == 0


def test_runs_cleanup_periodically() -> None:
    limiter = Mock()
    swept = threading.Event()
    limiter.cleanup.side_effect = lambda: swept.set() or 0
    sweeper = RateLimitSweeper(limiter, interval_seconds=0.01)

    sweeper.start()
    try:
        assert swept.wait(timeout=2.0)
    finally:
        sweeper.stop()

    assert sweeper.is_running is False


def test_cleanup_failure_does_not_stop_sweeper() -> None:
    limiter = Mock()
    calls = []
    recovered = threading.Event()

    def cleanup() -> int:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        recovered.set()
        return 0

    limiter.cleanup.side_effect = cleanup
    sweeper = RateLimitSweeper(limiter, interval_seconds=0.01)

    sweeper.start()
    try:
        assert recovered.wait(timeout=2.0)
    finally:
        sweeper.stop()


def test_start_is_idempotent_and_restartable() -> None:
    sweeper = RateLimitSweeper(Mock(), interval_seconds=3600)

    sweeper.start()
    sweeper.start()
    assert sweeper.is_running is True

    sweeper.stop()
    assert sweeper.is_running is False

    sweeper.start()
    assert sweeper.is_running is True
    sweeper.stop()


def test_stop_without_start_is_noop() -> None:
    sweeper = RateLimitSweeper(Mock(), interval_seconds=10)

    sweeper.stop()
    sweeper.stop()

    assert sweeper.is_running is False


def test_invalid_interval() -> None:
    with pytest.raises(ValueError):
        RateLimitSweeper(Mock(), interval_seconds=0)
