from __future__ import annotations

import threading
import time
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Monotonic seconds."""

    def sleep(self, seconds: float) -> None:
        """Suspend the caller."""


class SystemClock:
    """time.monotonic clock whose sleep wakes early when `interrupt` is set."""

    def __init__(self, interrupt: Optional[threading.Event] = None):
        self._interrupt = interrupt

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            return
        if self._interrupt is not None:
            self._interrupt.wait(seconds)
        else:
            time.sleep(seconds)
