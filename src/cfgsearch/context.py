"""Shared search context: clock, cancellation flag, rate limiter, telemetry.

Every long-lived component receives the same SearchContext instead of
reaching for process-wide globals.
"""

from __future__ import annotations

import threading
from typing import Optional

from cfgsearch.clock import Clock, SystemClock
from cfgsearch.config.models import RateLimitConfig
from cfgsearch.ratelimit import RateLimiter
from cfgsearch.telemetry import NullTelemetry, ProgressEvent, TelemetrySink

__all__ = ["Clock", "SearchContext", "SystemClock"]


class SearchContext:
    def __init__(
        self,
        *,
        clock: Clock,
        rate_limiter: RateLimiter,
        telemetry: Optional[TelemetrySink] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.clock = clock
        self.rate_limiter = rate_limiter
        self.telemetry: TelemetrySink = telemetry or NullTelemetry()
        self.cancel_event = cancel_event or threading.Event()

    @classmethod
    def create(
        cls,
        rate_limit: Optional[RateLimitConfig] = None,
        *,
        clock: Optional[Clock] = None,
        telemetry: Optional[TelemetrySink] = None,
    ) -> "SearchContext":
        """Build a context with a fresh limiter; defaults to the system clock."""
        cancel_event = threading.Event()
        clock = clock or SystemClock(interrupt=cancel_event)
        limiter = RateLimiter(rate_limit or RateLimitConfig(), clock=clock, interrupt=cancel_event)
        return cls(clock=clock, rate_limiter=limiter, telemetry=telemetry, cancel_event=cancel_event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def now(self) -> float:
        return self.clock.now()

    def sleep(self, seconds: float) -> None:
        if seconds <= 0 or self.cancelled:
            return
        self.clock.sleep(seconds)

    def emit(self, event: ProgressEvent) -> None:
        self.telemetry.emit(event)
