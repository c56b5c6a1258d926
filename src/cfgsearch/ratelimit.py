"""Adaptive burst-aware rate limiter.

Calls are admitted in bursts of at most `burst_limit`, separated by a
recovery pause, under a hard ceiling of calls per sliding window. When the
remote service throttles us, the burst size shrinks toward a safety-margined
fraction of where throttling has historically started, and the recovery
pause grows. Neither adaptation is ever undone: the policy only gets more
conservative for the life of the process.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from cfgsearch.clock import Clock, SystemClock
from cfgsearch.config.models import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterState:
    burst_limit: int
    recovery_interval_s: float
    calls_in_current_burst: int = 0
    burst_started_at: Optional[float] = None
    recent_call_timestamps: Deque[float] = field(default_factory=deque)
    total_calls: int = 0
    rate_limit_hit_count: int = 0
    rate_limit_hit_positions: List[int] = field(default_factory=list)
    successful_bursts: int = 0
    session_started_at: Optional[float] = None
    last_call_at: Optional[float] = None
    throttled_in_burst: bool = False
    force_recovery: bool = False


class RateLimiter:
    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        *,
        clock: Optional[Clock] = None,
        interrupt: Optional[threading.Event] = None,
    ):
        self.config = config or RateLimitConfig()
        self.clock: Clock = clock or SystemClock(interrupt=interrupt)
        self._interrupt = interrupt
        self.state = RateLimiterState(
            burst_limit=self.config.burst_limit,
            recovery_interval_s=self.config.recovery_interval_s,
        )

    # ------------------------
    # Admission
    # ------------------------

    def admit(self) -> bool:
        """
        Block until one more call is safe, then record it.

        Returns False, without recording a call, only when the interrupt
        event is set while waiting; the caller must not issue the call then.
        """
        cfg = self.config
        st = self.state
        now = self.clock.now()

        # 1. minimum spacing between consecutive calls
        if st.last_call_at is not None:
            gap = st.last_call_at + cfg.intra_burst_delay_s - now
            if gap > 0:
                if not self._wait(gap):
                    return False
                now = self.clock.now()

        # 2. hard ceiling over the sliding window
        self._prune(now)
        window = st.recent_call_timestamps
        while len(window) >= cfg.max_calls_per_minute:
            oldest_excess = window[len(window) - cfg.max_calls_per_minute]
            wait = oldest_excess + cfg.window_s - now
            if wait > 0:
                logger.info(
                    "Per-window ceiling reached (%d calls); waiting %.1fs",
                    len(window),
                    wait,
                )
                if not self._wait(wait):
                    return False
            now = self.clock.now()
            self._prune(now)

        # 3. recovery interval elapsed since the burst started
        if st.burst_started_at is not None and now - st.burst_started_at >= st.recovery_interval_s:
            self._end_burst()

        # 4. burst exhausted (or forced after throttling): wait out the recovery
        if st.force_recovery or st.calls_in_current_burst >= st.burst_limit:
            started = st.burst_started_at if st.burst_started_at is not None else now
            wait = started + st.recovery_interval_s - now
            if wait > 0:
                logger.info(
                    "Burst of %d calls used; recovering for %.1fs",
                    st.calls_in_current_burst,
                    wait,
                )
                if not self._wait(wait):
                    return False
                now = self.clock.now()
            self._end_burst()

        # 5. record the call
        if st.calls_in_current_burst == 0:
            st.burst_started_at = now
        if st.session_started_at is None:
            st.session_started_at = now
        st.calls_in_current_burst += 1
        st.total_calls += 1
        st.last_call_at = now
        window.append(now)
        return True

    def report_throttled(self, position_in_burst: Optional[int] = None) -> None:
        """
        Adapt to a throttling signal from the remote service.

        position_in_burst defaults to the number of calls admitted in the
        current burst.
        """
        cfg = self.config
        st = self.state
        position = st.calls_in_current_burst if position_in_burst is None else int(position_in_burst)
        position = max(0, position)

        st.rate_limit_hit_count += 1
        st.rate_limit_hit_positions.append(position)

        avg_position = sum(st.rate_limit_hit_positions) / len(st.rate_limit_hit_positions)
        target = max(cfg.min_burst_limit, math.floor(avg_position * (1.0 - cfg.safety_buffer)))
        previous_limit = st.burst_limit
        previous_recovery = st.recovery_interval_s
        st.burst_limit = min(st.burst_limit, target)
        st.recovery_interval_s = min(cfg.max_recovery_interval_s, st.recovery_interval_s * cfg.recovery_growth)

        # the next admit() waits a full recovery interval from now
        st.throttled_in_burst = True
        st.force_recovery = True
        st.burst_started_at = self.clock.now()

        logger.warning(
            "Throttled at burst position %d (avg %.1f): burst_limit %d -> %d, recovery %.1fs -> %.1fs",
            position,
            avg_position,
            previous_limit,
            st.burst_limit,
            previous_recovery,
            st.recovery_interval_s,
        )

    # ------------------------
    # Reporting
    # ------------------------

    def calls_in_window(self) -> int:
        self._prune(self.clock.now())
        return len(self.state.recent_call_timestamps)

    def average_calls_per_minute(self) -> float:
        st = self.state
        if st.session_started_at is None:
            return 0.0
        elapsed = self.clock.now() - st.session_started_at
        if elapsed <= 0:
            return float(st.total_calls)
        return st.total_calls / (elapsed / 60.0)

    def stats(self) -> Dict[str, Any]:
        """Small JSON-serializable snapshot of the limiter state."""
        st = self.state
        return {
            "burst_limit": st.burst_limit,
            "recovery_interval_s": st.recovery_interval_s,
            "calls_in_current_burst": st.calls_in_current_burst,
            "calls_in_window": self.calls_in_window(),
            "total_calls": st.total_calls,
            "rate_limit_hit_count": st.rate_limit_hit_count,
            "rate_limit_hit_positions": list(st.rate_limit_hit_positions),
            "successful_bursts": st.successful_bursts,
            "average_calls_per_minute": round(self.average_calls_per_minute(), 3),
        }

    # ------------------------
    # Internal helpers
    # ------------------------

    def _prune(self, now: float) -> None:
        window = self.state.recent_call_timestamps
        while window and window[0] + self.config.window_s <= now:
            window.popleft()

    def _end_burst(self) -> None:
        st = self.state
        if st.calls_in_current_burst > 0 and not st.throttled_in_burst:
            st.successful_bursts += 1
        st.calls_in_current_burst = 0
        st.burst_started_at = None
        st.throttled_in_burst = False
        st.force_recovery = False

    def _wait(self, seconds: float) -> bool:
        self.clock.sleep(seconds)
        return not (self._interrupt is not None and self._interrupt.is_set())
