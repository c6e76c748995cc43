"""Tests for the minimum-interval rate limiter."""

from __future__ import annotations

from helpers import FakeClock
from pairwatch.orchestration.rate_limiter import RateLimiter


def test_first_request_is_always_allowed(clock: FakeClock) -> None:
    limiter = RateLimiter(10.0, clock=clock)

    assert limiter.allow()
    assert limiter.time_until_next_allowed() == 0.0


def test_blocks_until_interval_elapsed(clock: FakeClock) -> None:
    limiter = RateLimiter(10.0, clock=clock)
    limiter.record_emission()

    clock.advance(5.0)
    assert not limiter.allow()
    assert limiter.time_until_next_allowed() == 5.0

    clock.advance(5.0)
    assert limiter.allow()
    assert limiter.time_until_next_allowed() == 0.0


def test_zero_interval_never_blocks(clock: FakeClock) -> None:
    limiter = RateLimiter(0.0, clock=clock)
    limiter.record_emission()

    assert limiter.allow()


def test_reset_forgets_last_emission(clock: FakeClock) -> None:
    limiter = RateLimiter(30.0, clock=clock)
    limiter.record_emission()
    assert limiter.last_emission == clock.now

    limiter.reset()

    assert limiter.last_emission is None
    assert limiter.allow()


def test_negative_interval_is_clamped() -> None:
    assert RateLimiter(-3).min_interval == 0.0
