from __future__ import annotations

import threading

import pytest

from cfgsearch.config import RateLimitConfig
from cfgsearch.ratelimit import RateLimiter

from conftest import FakeClock


def _limiter(clock: FakeClock, **kwargs) -> RateLimiter:
    return RateLimiter(RateLimitConfig(**kwargs), clock=clock)


def test_calls_never_exceed_per_window_ceiling(clock: FakeClock) -> None:
    """
    Admitting calls as fast as possible must keep every trailing window at
    or below the ceiling.
    """
    limiter = _limiter(clock, burst_limit=100, max_calls_per_minute=5, intra_burst_delay_s=0.1)

    times = []
    for _ in range(17):
        assert limiter.admit()
        times.append(clock.now())

    for t in times:
        in_window = [s for s in times if s <= t and s + 60.0 > t]
        assert len(in_window) <= 5

    # the 6th call had to wait for the first one to leave the window
    assert times[5] >= times[0] + 60.0


def test_burst_limit_forces_recovery_wait(clock: FakeClock) -> None:
    limiter = _limiter(clock, burst_limit=3, recovery_interval_s=10.0, intra_burst_delay_s=0.1)

    for _ in range(3):
        limiter.admit()
    assert clock.now() == pytest.approx(0.2)
    assert limiter.state.calls_in_current_burst == 3

    limiter.admit()
    assert clock.now() == pytest.approx(10.0)
    assert limiter.state.calls_in_current_burst == 1
    assert limiter.state.successful_bursts == 1
    assert limiter.state.burst_limit == 3


def test_burst_resets_after_recovery_interval_without_waiting(clock: FakeClock) -> None:
    limiter = _limiter(clock, burst_limit=5, recovery_interval_s=10.0)

    limiter.admit()
    limiter.admit()
    clock.t += 11.0
    limiter.admit()

    assert limiter.state.calls_in_current_burst == 1
    assert limiter.state.successful_bursts == 1
    # only the inter-call spacing was slept
    assert all(s <= 0.1 + 1e-9 for s in clock.sleeps)


def test_report_throttled_shrinks_burst_and_grows_recovery(clock: FakeClock) -> None:
    limiter = _limiter(
        clock,
        burst_limit=20,
        min_burst_limit=3,
        recovery_interval_s=10.0,
        max_recovery_interval_s=60.0,
        recovery_growth=1.5,
        safety_buffer=0.5,
    )
    for _ in range(10):
        limiter.admit()
    throttled_at = clock.now()

    limiter.report_throttled()

    st = limiter.state
    assert st.rate_limit_hit_positions == [10]
    assert st.rate_limit_hit_count == 1
    assert st.burst_limit == 5
    assert st.recovery_interval_s == pytest.approx(15.0)

    # next call waits a full (grown) recovery interval from the throttle
    limiter.admit()
    assert clock.now() == pytest.approx(throttled_at + 15.0)
    # a throttled burst does not count as successful
    assert st.successful_bursts == 0


def test_adaptation_is_monotonic_and_bounded(clock: FakeClock) -> None:
    limiter = _limiter(clock, burst_limit=20, min_burst_limit=3, recovery_interval_s=10.0, max_recovery_interval_s=40.0)

    previous_limit = limiter.state.burst_limit
    previous_recovery = limiter.state.recovery_interval_s
    for position in (18, 25, 2, 40, 1, 1, 1):
        limiter.report_throttled(position)
        assert limiter.state.burst_limit <= previous_limit
        assert limiter.state.recovery_interval_s >= previous_recovery
        assert limiter.state.burst_limit >= 3
        assert limiter.state.recovery_interval_s <= 40.0
        previous_limit = limiter.state.burst_limit
        previous_recovery = limiter.state.recovery_interval_s

    assert limiter.state.recovery_interval_s == pytest.approx(40.0)


def test_throttle_before_any_call_is_safe(clock: FakeClock) -> None:
    limiter = _limiter(clock, burst_limit=20, min_burst_limit=3)

    limiter.report_throttled()

    assert limiter.state.rate_limit_hit_positions == [0]
    assert limiter.state.burst_limit == 3
    assert limiter.state.total_calls == 0
    assert limiter.stats()["average_calls_per_minute"] == 0.0


def test_first_call_sets_session_start_and_stats(clock: FakeClock) -> None:
    clock.t = 100.0
    limiter = _limiter(clock, intra_burst_delay_s=0.0)
    assert limiter.state.session_started_at is None

    limiter.admit()
    assert limiter.state.session_started_at == 100.0

    limiter.admit()
    clock.t = 130.0
    stats = limiter.stats()
    assert stats["total_calls"] == 2
    assert stats["calls_in_window"] == 2
    assert stats["average_calls_per_minute"] == pytest.approx(4.0)


def test_admit_returns_false_when_interrupted() -> None:
    interrupt = threading.Event()
    clock = FakeClock()
    limiter = RateLimiter(RateLimitConfig(burst_limit=3), clock=clock, interrupt=interrupt)
    for _ in range(3):
        assert limiter.admit()

    interrupt.set()
    assert limiter.admit() is False
    assert limiter.state.total_calls == 3
