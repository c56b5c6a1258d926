from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional

from pydantic import ValidationError

from cfgsearch.cache import ResultCache
from cfgsearch.candidate_ids import format_candidate_id
from cfgsearch.config.models import RetryConfig
from cfgsearch.configuration import Configuration, ParameterRegistry
from cfgsearch.context import SearchContext
from cfgsearch.scoring import ScoringEngine
from cfgsearch.service.base import ScoringService, ScoringServiceError
from cfgsearch.service.models import EvaluationMetrics

from .outcomes import (
    EvaluationResult,
    HistoryEntry,
    InvalidConfig,
    RateLimited,
    ServiceError,
    Success,
)

logger = logging.getLogger(__name__)

Recorder = Callable[[HistoryEntry], None]


class Evaluator:
    """
    Evaluate one configuration end to end.

    cache lookup -> validation -> rate-limited service call (with retries on
    throttling) -> metric validation -> scoring -> cache write -> history.

    Failures come back as EvaluationResult values; only programming errors
    raise.
    """

    def __init__(
        self,
        service: ScoringService,
        *,
        registry: ParameterRegistry,
        scoring: ScoringEngine,
        context: SearchContext,
        cache: Optional[ResultCache[EvaluationResult]] = None,
        retry: Optional[RetryConfig] = None,
        recorder: Optional[Recorder] = None,
    ):
        self.service = service
        self.registry = registry
        self.scoring = scoring
        self.context = context
        self.cache: ResultCache[EvaluationResult] = cache if cache is not None else ResultCache()
        self.retry = retry or RetryConfig()
        self.recorder = recorder

        self.run_index = 1
        self.history: List[HistoryEntry] = []
        self._next_test_index = 0

    @property
    def last_entry(self) -> Optional[HistoryEntry]:
        return self.history[-1] if self.history else None

    def begin_session(self, run_index: int) -> None:
        """Start a new optimizer session: empty cache, fresh history."""
        self.cache.clear()
        self.history = []
        self.run_index = run_index
        self._next_test_index = 0

    def evaluate(
        self,
        config: Configuration | Mapping[str, Any],
        label: str = "",
        *,
        phase: str = "",
    ) -> EvaluationResult:
        if not isinstance(config, Configuration):
            config = Configuration.from_mapping(config)

        cached = self.cache.get(config)
        if cached is not None:
            logger.debug("Cache hit for %s", label or "candidate")
            self._append(None, label, phase, config, cached, cached=True)
            return cached

        candidate_id = format_candidate_id(self.run_index, self._next_test_index)
        self._next_test_index += 1

        violations = self.registry.validate(config)
        if violations:
            logger.debug("%s rejected locally: %s", candidate_id, "; ".join(violations))
            result: EvaluationResult = InvalidConfig(tuple(violations))
        else:
            result = self._call_service(config, candidate_id)
            if isinstance(result, Success):
                self.cache.put(config, result)

        self._append(candidate_id, label, phase, config, result, cached=False)
        return result

    # ------------------------
    # Internal helpers
    # ------------------------

    def _call_service(self, config: Configuration, candidate_id: str) -> EvaluationResult:
        limiter = self.context.rate_limiter
        attempts = self.retry.max_attempts

        for attempt in range(1, attempts + 1):
            if self.context.cancelled:
                return RateLimited()
            if not limiter.admit():
                return RateLimited()
            position = limiter.state.calls_in_current_burst

            try:
                response = self.service.evaluate(config, candidate_id=candidate_id)
            except ScoringServiceError as exc:
                logger.warning("%s: scoring service error: %s", candidate_id, exc)
                return ServiceError(str(exc))

            if response.rate_limited:
                limiter.report_throttled(position)
                if attempt < attempts:
                    delay = min(self.retry.max_delay_s, self.retry.base_delay_s * (2 ** (attempt - 1)))
                    logger.info(
                        "%s throttled (attempt %d/%d); retrying in %.1fs",
                        candidate_id,
                        attempt,
                        attempts,
                        delay,
                    )
                    self.context.sleep(delay)
                    continue
                logger.warning("%s still throttled after %d attempts", candidate_id, attempts)
                return RateLimited()

            if not response.success:
                return ServiceError(response.error or "scoring service reported failure")

            try:
                metrics = EvaluationMetrics.model_validate(response.metrics)
            except ValidationError as exc:
                return ServiceError(f"invalid metrics: {exc.errors()[0].get('msg', exc)}")

            scored = self.scoring.score(metrics)
            return Success(metrics=metrics, score=scored.score, rejected=scored.rejected, reason=scored.reason)

        return RateLimited()

    def _append(
        self,
        candidate_id: Optional[str],
        label: str,
        phase: str,
        config: Configuration,
        result: EvaluationResult,
        *,
        cached: bool,
    ) -> None:
        entry = HistoryEntry(
            run_index=self.run_index,
            candidate_id=candidate_id,
            label=label,
            phase=phase,
            config=config,
            result=result,
            cached=cached,
        )
        self.history.append(entry)
        if self.recorder is not None:
            self.recorder(entry)
