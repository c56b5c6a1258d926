"""One timed optimizer session: baseline, then the configured phases."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from cfgsearch.config.models import SearchOptions
from cfgsearch.configuration import Configuration, ParameterRegistry
from cfgsearch.context import SearchContext
from cfgsearch.evaluation import Evaluator, HistoryEntry, RateLimited, Success
from cfgsearch.service.models import EvaluationMetrics
from cfgsearch.telemetry import ProgressEvent

from .base import SearchPhase
from .registry import make_phases

logger = logging.getLogger(__name__)

# Score of a best candidate that never produced a usable result.
NO_RESULT_SCORE = -1e9


@dataclass
class OptimizationState:
    best_config: Configuration
    best_score: float = NO_RESULT_SCORE
    best_metrics: Optional[EvaluationMetrics] = None
    test_count: int = 0
    failed_count: int = 0
    rate_limited_count: int = 0
    discarded_count: int = 0
    started_at: float = 0.0
    deadline: float = 0.0
    phase: str = ""
    stop_reason: Optional[str] = None


@dataclass(frozen=True)
class OptimizationResult:
    best_config: Configuration
    best_score: float
    best_metrics: Optional[EvaluationMetrics]
    test_count: int
    failed_count: int
    rate_limited_count: int
    history: List[HistoryEntry]
    parameter_effectiveness: Dict[str, float]
    target_achieved: bool
    cancelled: bool
    runtime_s: float
    phases_run: List[str] = field(default_factory=list)
    diagnostics: Dict[str, Any] = field(default_factory=dict)


class Optimizer:
    """
    Multi-phase black-box search bounded by a time budget.

    The best configuration only changes on a strictly greater score, so
    best_score never decreases within a session. After every candidate the
    session checks the cancellation flag and the target score.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        registry: ParameterRegistry,
        context: SearchContext,
        options: Optional[SearchOptions] = None,
        *,
        baseline: Configuration,
        run_index: int = 1,
        phases: Optional[Sequence[SearchPhase]] = None,
    ):
        self.evaluator = evaluator
        self.registry = registry
        self.context = context
        self.options = options or SearchOptions()
        self.baseline = baseline
        self.run_index = int(run_index)
        self.phases: List[SearchPhase] = list(phases) if phases is not None else make_phases(self.options)

        seed = self.options.seed
        self.rng = random.Random(None if seed is None else seed + self.run_index)

        self.start_config = baseline
        self.state = OptimizationState(best_config=baseline)
        self.parameter_effectiveness: Dict[str, float] = {}
        self._time_budget_s = 0.0

    # ------------------------
    # Session
    # ------------------------

    def run(self, time_budget_s: float, initial_config: Optional[Configuration] = None) -> OptimizationResult:
        ctx = self.context
        self.evaluator.begin_session(self.run_index)

        start = initial_config if initial_config is not None else self.baseline
        self.start_config = start
        now = ctx.now()
        self._time_budget_s = max(0.0, float(time_budget_s))
        self.state = OptimizationState(best_config=start, started_at=now, deadline=now + self._time_budget_s)
        self.parameter_effectiveness = {}
        phases_run: List[str] = []

        logger.info("Run %d: starting session with %.0fs budget", self.run_index, self._time_budget_s)

        self._enter_phase("baseline")
        self.test(start, label="baseline", phase="baseline")
        phases_run.append("baseline")

        for phase in self.phases:
            if self.should_stop():
                break
            if not phase.can_start(self):
                logger.info("Skipping phase %s (%.0f%% of time left)", phase.name, 100 * self.remaining_fraction())
                continue
            self._enter_phase(phase.name)
            phase.run(self)
            phases_run.append(phase.name)
            diag = phase.diagnostics()
            if diag:
                logger.debug("Phase %s diagnostics: %s", phase.name, diag)

        st = self.state
        if st.stop_reason is None:
            st.stop_reason = "cancelled" if ctx.cancelled else "completed"
        runtime = ctx.now() - st.started_at
        logger.info(
            "Run %d finished (%s): best=%.3f tests=%d failed=%d in %.1fs",
            self.run_index,
            st.stop_reason,
            st.best_score,
            st.test_count,
            st.failed_count,
            runtime,
        )

        return OptimizationResult(
            best_config=st.best_config,
            best_score=st.best_score,
            best_metrics=st.best_metrics,
            test_count=st.test_count,
            failed_count=st.failed_count,
            rate_limited_count=st.rate_limited_count,
            history=list(self.evaluator.history),
            parameter_effectiveness=self.ranked_effectiveness(),
            target_achieved=self.target_reached(),
            cancelled=ctx.cancelled,
            runtime_s=runtime,
            phases_run=phases_run,
            diagnostics={p.name: p.diagnostics() for p in self.phases},
        )

    # ------------------------
    # API used by phases
    # ------------------------

    def test(self, config: Configuration, *, label: str, phase: str) -> Optional[float]:
        """
        Evaluate one candidate and fold it into the session state.

        Returns the candidate's score, or None when it produced no result.
        Candidates that break a min/max pairing are discarded unevaluated.
        """
        st = self.state
        if phase != "baseline" and not self.registry.satisfies_min_max(config):
            st.discarded_count += 1
            return None

        result = self.evaluator.evaluate(config, label, phase=phase)
        entry = self.evaluator.last_entry
        fresh = entry is not None and not entry.cached

        score: Optional[float] = None
        if isinstance(result, Success):
            score = result.score
            if score > st.best_score:
                logger.info("New best %.3f (was %.3f) from %s", score, st.best_score, label)
                st.best_config = config
                st.best_score = score
                st.best_metrics = result.metrics
        elif fresh:
            st.failed_count += 1
            if isinstance(result, RateLimited):
                st.rate_limited_count += 1

        if fresh:
            st.test_count += 1
        self._emit("evaluation", label)
        return score

    def should_stop(self, stop_below: float = 0.0) -> bool:
        st = self.state
        if self.context.cancelled:
            st.stop_reason = "cancelled"
            return True
        if self.target_reached():
            st.stop_reason = "target"
            return True
        if self.context.now() >= st.deadline:
            st.stop_reason = "deadline"
            return True
        return self.remaining_fraction() <= stop_below

    def has_result(self) -> bool:
        """True once any candidate of this session has scored."""
        return self.state.best_metrics is not None

    def target_reached(self) -> bool:
        return self.state.best_score >= self.options.target_score

    def remaining_fraction(self) -> float:
        if self._time_budget_s <= 0:
            return 0.0
        remaining = self.state.deadline - self.context.now()
        return max(0.0, min(1.0, remaining / self._time_budget_s))

    def record_effectiveness(self, name: str, delta: float) -> None:
        prev = self.parameter_effectiveness.get(name)
        if prev is None or delta > prev:
            self.parameter_effectiveness[name] = delta

    def ranked_effectiveness(self) -> Dict[str, float]:
        ranked = sorted(self.parameter_effectiveness.items(), key=lambda kv: kv[1], reverse=True)
        return dict(ranked)

    def top_parameters(self, n: int, *, numeric_only: bool = False) -> List[str]:
        names = [
            name
            for name in self.ranked_effectiveness()
            if not numeric_only or self.registry.rules[name].is_numeric
        ]
        return names[:n]

    # ------------------------
    # Internal helpers
    # ------------------------

    def _enter_phase(self, name: str) -> None:
        self.state.phase = name
        self._emit("phase", name)

    def _emit(self, kind: str, label: str) -> None:
        st = self.state
        self.context.emit(
            ProgressEvent(
                kind=kind,
                phase_label=st.phase if kind == "evaluation" else label,
                test_count=st.test_count,
                failed_count=st.failed_count,
                rate_limit_failure_count=st.rate_limited_count,
                current_best_score=st.best_score,
                current_best_metrics=st.best_metrics.to_dict() if st.best_metrics is not None else None,
                run_index=self.run_index,
                extra={"label": label} if kind == "evaluation" else {},
            )
        )
