from __future__ import annotations

import math
from typing import List

import pytest

from cfgsearch.cache import ResultCache
from cfgsearch.config import RetryConfig
from cfgsearch.configuration import Configuration, ParameterRegistry
from cfgsearch.context import SearchContext
from cfgsearch.evaluation import (
    Evaluator,
    HistoryEntry,
    InvalidConfig,
    RateLimited,
    ServiceError,
    Success,
)
from cfgsearch.scoring import ScoringEngine
from cfgsearch.service import ScoringServiceError, ServiceResponse

from conftest import FakeClock, FakeService, ok_response


def _evaluator(service, registry: ParameterRegistry, context: SearchContext, **kwargs) -> Evaluator:
    return Evaluator(
        service,
        registry=registry,
        scoring=ScoringEngine(),
        context=context,
        cache=kwargs.pop("cache", ResultCache(100)),
        retry=kwargs.pop("retry", RetryConfig()),
        **kwargs,
    )


GOOD = {"basic": {"maxMcap": 30000}, "risk": {"minBundledPercent": 0, "maxBundledPercent": 20}}


def test_inverted_pair_is_invalid_without_admit(registry: ParameterRegistry, context: SearchContext) -> None:
    """
    An inverted min/max pair never reaches the limiter or the service.
    """
    service = FakeService()
    evaluator = _evaluator(service, registry, context)

    result = evaluator.evaluate({"risk": {"minBundledPercent": 80, "maxBundledPercent": 20}}, "inverted")

    assert isinstance(result, InvalidConfig)
    assert any("minBundledPercent" in v for v in result.violations)
    assert context.rate_limiter.state.total_calls == 0
    assert service.calls == []


def test_success_is_scored_cached_and_recorded(registry: ParameterRegistry, context: SearchContext) -> None:
    service = FakeService(lambda cfg: ok_response(primary=50.0, win_rate=70.0, samples=100))
    recorded: List[HistoryEntry] = []
    evaluator = _evaluator(service, registry, context, recorder=recorded.append)
    evaluator.begin_session(2)

    result = evaluator.evaluate(GOOD, "first", phase="baseline")

    assert isinstance(result, Success)
    assert result.score == pytest.approx(50.0 * 0.6 + 70.0 * 0.4)
    assert result.metrics.sample_count == 100
    assert service.candidate_ids == ["r002_t000000"]
    assert len(evaluator.history) == 1
    assert recorded[0].candidate_id == "r002_t000000"
    assert recorded[0].to_record()["kind"] == "success"


def test_reordered_config_hits_cache_without_budget(registry: ParameterRegistry, context: SearchContext) -> None:
    service = FakeService()
    evaluator = _evaluator(service, registry, context)

    first = evaluator.evaluate(GOOD, "a")
    reordered = {"risk": {"maxBundledPercent": 20, "minBundledPercent": 0}, "basic": {"maxMcap": 30000}}
    second = evaluator.evaluate(reordered, "b")

    assert second is first
    assert len(service.calls) == 1
    assert context.rate_limiter.state.total_calls == 1
    assert evaluator.last_entry is not None and evaluator.last_entry.cached


def test_throttling_is_retried_with_backoff(
    registry: ParameterRegistry, context: SearchContext, clock: FakeClock
) -> None:
    replies = [
        ServiceResponse(rate_limited=True),
        ServiceResponse(rate_limited=True),
        ok_response(primary=12.0),
    ]
    service = FakeService(lambda cfg: replies.pop(0))
    evaluator = _evaluator(service, registry, context)

    result = evaluator.evaluate(GOOD, "retry")

    assert isinstance(result, Success)
    assert len(service.calls) == 3
    assert context.rate_limiter.state.rate_limit_hit_count == 2
    assert 3.0 in clock.sleeps
    assert 6.0 in clock.sleeps


def test_exhausted_retries_return_rate_limited(registry: ParameterRegistry, context: SearchContext) -> None:
    service = FakeService(lambda cfg: ServiceResponse(rate_limited=True))
    evaluator = _evaluator(service, registry, context, retry=RetryConfig(max_attempts=3))

    result = evaluator.evaluate(GOOD, "throttled")

    assert isinstance(result, RateLimited)
    assert result.retryable
    assert len(service.calls) == 3
    # failures are not cached
    assert len(evaluator.cache) == 0


@pytest.mark.parametrize(
    "metrics",
    [
        {"tpPnlPercent": 10.0, "winRate": 70.0},
        {"totalTokens": 100, "winRate": 70.0},
        {"totalTokens": 100, "tpPnlPercent": math.nan},
        {"totalTokens": "many", "tpPnlPercent": 10.0},
    ],
)
def test_invalid_metrics_are_service_errors(
    registry: ParameterRegistry, context: SearchContext, metrics: dict
) -> None:
    service = FakeService(lambda cfg: ServiceResponse(success=True, metrics=metrics))
    evaluator = _evaluator(service, registry, context)

    result = evaluator.evaluate(GOOD, "bad metrics")

    assert isinstance(result, ServiceError)
    assert "invalid metrics" in result.message


def test_transport_failure_is_service_error(registry: ParameterRegistry, context: SearchContext) -> None:
    def boom(cfg: Configuration) -> ServiceResponse:
        raise ScoringServiceError("connection refused")

    evaluator = _evaluator(FakeService(boom), registry, context)
    result = evaluator.evaluate(GOOD, "boom")

    assert isinstance(result, ServiceError)
    assert "connection refused" in result.message


def test_unsuccessful_response_is_service_error(registry: ParameterRegistry, context: SearchContext) -> None:
    service = FakeService(lambda cfg: ServiceResponse(success=False, error="backtest failed"))
    result = _evaluator(service, registry, context).evaluate(GOOD, "failed")

    assert isinstance(result, ServiceError)
    assert result.message == "backtest failed"


def test_cancelled_context_skips_the_call(registry: ParameterRegistry, context: SearchContext) -> None:
    service = FakeService()
    evaluator = _evaluator(service, registry, context)
    context.cancel()

    result = evaluator.evaluate(GOOD, "cancelled")

    assert isinstance(result, RateLimited)
    assert service.calls == []


def test_begin_session_clears_cache_and_history(registry: ParameterRegistry, context: SearchContext) -> None:
    service = FakeService()
    evaluator = _evaluator(service, registry, context)
    evaluator.evaluate(GOOD, "a")

    evaluator.begin_session(2)
    evaluator.evaluate(GOOD, "a again")

    assert len(service.calls) == 2
    assert len(evaluator.history) == 1
    assert service.candidate_ids == ["r001_t000000", "r002_t000000"]


def test_input_mapping_is_not_mutated(registry: ParameterRegistry, context: SearchContext) -> None:
    source = {"basic": {"maxMcap": 30000}, "risk": {"needsDescription": None}}
    snapshot = {"basic": {"maxMcap": 30000}, "risk": {"needsDescription": None}}

    _evaluator(FakeService(), registry, context).evaluate(source, "x")

    assert source == snapshot
