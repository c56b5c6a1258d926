"""Chained optimizer sessions that hand the best configuration forward."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from cfgsearch.configuration import Configuration
from cfgsearch.context import SearchContext
from cfgsearch.optimizer.session import NO_RESULT_SCORE, OptimizationResult
from cfgsearch.service.models import EvaluationMetrics
from cfgsearch.telemetry import ProgressEvent

logger = logging.getLogger(__name__)


class Session(Protocol):
    def run(self, time_budget_s: float, initial_config: Optional[Configuration] = None) -> OptimizationResult: ...


# (initial_config, run_index) -> a fresh optimizer session
OptimizerFactory = Callable[[Optional[Configuration], int], Session]


@dataclass(frozen=True)
class RunSummary:
    run_index: int
    success: bool
    best_score: Optional[float] = None
    best_config: Optional[Configuration] = None
    test_count: int = 0
    failed_count: int = 0
    runtime_s: float = 0.0
    target_achieved: bool = False
    improved_global: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_index": self.run_index,
            "success": self.success,
            "best_score": self.best_score,
            "best_config": self.best_config.to_dict() if self.best_config is not None else None,
            "test_count": self.test_count,
            "failed_count": self.failed_count,
            "runtime_s": self.runtime_s,
            "target_achieved": self.target_achieved,
            "improved_global": self.improved_global,
            "error": self.error,
        }


@dataclass
class ChainResult:
    global_best_config: Optional[Configuration]
    global_best_score: float
    global_best_metrics: Optional[EvaluationMetrics]
    per_run_results: List[RunSummary] = field(default_factory=list)
    total_tests: int = 0
    total_failed: int = 0
    total_rate_limited: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    target_achieved: bool = False
    cancelled: bool = False
    parameter_effectiveness: Dict[str, float] = field(default_factory=dict)

    @property
    def score_progression(self) -> List[Optional[float]]:
        return [r.best_score for r in self.per_run_results]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_best_config": self.global_best_config.to_dict() if self.global_best_config is not None else None,
            "global_best_score": self.global_best_score,
            "global_best_metrics": self.global_best_metrics.to_dict() if self.global_best_metrics is not None else None,
            "per_run_results": [r.to_dict() for r in self.per_run_results],
            "score_progression": self.score_progression,
            "total_tests": self.total_tests,
            "total_failed": self.total_failed,
            "total_rate_limited": self.total_rate_limited,
            "successful_runs": self.successful_runs,
            "failed_runs": self.failed_runs,
            "target_achieved": self.target_achieved,
            "cancelled": self.cancelled,
            "parameter_effectiveness": dict(self.parameter_effectiveness),
        }


class ChainRunner:
    """
    Run N optimizer sessions back to back.

    Run 1 starts from `initial_config` (None means the optimizer's own
    baseline); every later run starts from the chain's global best. A run
    that raises is recorded as failed and the chain moves on.
    """

    def __init__(
        self,
        optimizer_factory: OptimizerFactory,
        context: SearchContext,
        *,
        target_score: float,
        initial_config: Optional[Configuration] = None,
        top_effective_params: int = 5,
    ):
        self.optimizer_factory = optimizer_factory
        self.context = context
        self.target_score = float(target_score)
        self.initial_config = initial_config
        self.top_effective_params = int(top_effective_params)

    def run(self, run_count: int, minutes_per_run: float) -> ChainResult:
        if run_count < 1:
            raise ValueError(f"run_count must be >= 1, got {run_count}")
        if minutes_per_run <= 0:
            raise ValueError(f"minutes_per_run must be > 0, got {minutes_per_run}")

        ctx = self.context
        chain = ChainResult(global_best_config=None, global_best_score=NO_RESULT_SCORE, global_best_metrics=None)
        effectiveness: Dict[str, List[float]] = {}

        for run_index in range(1, run_count + 1):
            if ctx.cancelled:
                logger.info("Chain cancelled before run %d", run_index)
                break

            seed = self.initial_config if run_index == 1 else (chain.global_best_config or self.initial_config)
            self._emit(chain, run_index, "start")
            logger.info("Chain run %d/%d (%.1f min)", run_index, run_count, minutes_per_run)

            try:
                optimizer = self.optimizer_factory(seed, run_index)
                result = optimizer.run(minutes_per_run * 60.0, initial_config=seed)
            except Exception as exc:
                logger.exception("Chain run %d failed", run_index)
                chain.failed_runs += 1
                chain.per_run_results.append(RunSummary(run_index=run_index, success=False, error=repr(exc)))
                self._emit(chain, run_index, "failed")
                continue

            improved = chain.global_best_config is None or result.best_score > chain.global_best_score
            if improved:
                chain.global_best_config = result.best_config
                chain.global_best_score = result.best_score
                chain.global_best_metrics = result.best_metrics

            chain.successful_runs += 1
            chain.total_tests += result.test_count
            chain.total_failed += result.failed_count
            chain.total_rate_limited += result.rate_limited_count
            for name, delta in result.parameter_effectiveness.items():
                effectiveness.setdefault(name, []).append(delta)

            chain.per_run_results.append(
                RunSummary(
                    run_index=run_index,
                    success=True,
                    best_score=result.best_score,
                    best_config=result.best_config,
                    test_count=result.test_count,
                    failed_count=result.failed_count,
                    runtime_s=result.runtime_s,
                    target_achieved=result.target_achieved,
                    improved_global=improved,
                )
            )
            self._emit(chain, run_index, "end")

            if chain.global_best_score >= self.target_score:
                logger.info("Target %.2f reached after run %d", self.target_score, run_index)
                break

        chain.target_achieved = chain.global_best_score >= self.target_score
        chain.cancelled = ctx.cancelled
        chain.parameter_effectiveness = self._average_effectiveness(effectiveness)
        return chain

    def _average_effectiveness(self, effectiveness: Dict[str, List[float]]) -> Dict[str, float]:
        averaged = {name: sum(v) / len(v) for name, v in effectiveness.items() if v}
        ranked = sorted(averaged.items(), key=lambda kv: kv[1], reverse=True)
        return dict(ranked[: self.top_effective_params])

    def _emit(self, chain: ChainResult, run_index: int, label: str) -> None:
        has_best = chain.global_best_config is not None
        self.context.emit(
            ProgressEvent(
                kind="run",
                phase_label=f"run {run_index} {label}",
                test_count=chain.total_tests,
                failed_count=chain.total_failed,
                rate_limit_failure_count=chain.total_rate_limited,
                current_best_score=chain.global_best_score if has_best else None,
                current_best_metrics=(
                    chain.global_best_metrics.to_dict() if chain.global_best_metrics is not None else None
                ),
                run_index=run_index,
            )
        )
