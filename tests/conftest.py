from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from cfgsearch.config import RateLimitConfig, SearchConfig
from cfgsearch.configuration import Configuration, ParameterRegistry
from cfgsearch.context import SearchContext
from cfgsearch.service import ServiceResponse
from cfgsearch.telemetry import ProgressEvent


class FakeClock:
    """Clock for tests: time only moves when someone sleeps."""

    def __init__(self, start: float = 0.0):
        self.t = float(start)
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self.sleeps.append(seconds)
        self.t += seconds


class FakeService:
    """
    Scoring service double.

    `respond` maps a configuration to a ServiceResponse; by default every
    configuration scores primary_percent=10 with a good win rate.
    """

    def __init__(self, respond: Optional[Callable[[Configuration], ServiceResponse]] = None):
        self.respond = respond or (lambda cfg: ok_response(primary=10.0))
        self.calls: List[Configuration] = []
        self.candidate_ids: List[str] = []

    def evaluate(self, config: Configuration, *, candidate_id: str) -> ServiceResponse:
        self.calls.append(config)
        self.candidate_ids.append(candidate_id)
        return self.respond(config)


class RecordingTelemetry:
    def __init__(self, on_event: Optional[Callable[[ProgressEvent], None]] = None):
        self.events: List[ProgressEvent] = []
        self.on_event = on_event

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if self.on_event is not None:
            self.on_event(event)


def ok_response(primary: float, *, win_rate: float = 75.0, samples: float = 200.0, **extra: Any) -> ServiceResponse:
    metrics: Dict[str, Any] = {"totalTokens": samples, "tpPnlPercent": primary, "winRate": win_rate}
    metrics.update(extra)
    return ServiceResponse(success=True, metrics=metrics)


def make_search_config(**overrides: Any) -> SearchConfig:
    data: Dict[str, Any] = {
        "id": "test-search",
        "service": {"kind": "http", "http": {"base_url": "http://scoring.invalid/api/backtest"}},
    }
    data.update(overrides)
    return SearchConfig.model_validate(data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def search_config() -> SearchConfig:
    return make_search_config()


@pytest.fixture
def registry(search_config: SearchConfig) -> ParameterRegistry:
    return ParameterRegistry.from_config(search_config)


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest.fixture
def context(clock: FakeClock, telemetry: RecordingTelemetry) -> SearchContext:
    return SearchContext.create(RateLimitConfig(), clock=clock, telemetry=telemetry)


@pytest.fixture
def fast_context(clock: FakeClock, telemetry: RecordingTelemetry) -> SearchContext:
    """No spacing and no practical burst or window limits: the clock never moves."""
    limits = RateLimitConfig(burst_limit=100000, max_calls_per_minute=100000, intra_burst_delay_s=0.0)
    return SearchContext.create(limits, clock=clock, telemetry=telemetry)
