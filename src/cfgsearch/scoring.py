"""Scoring: map evaluation metrics to one comparable scalar."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from cfgsearch.config.models import ScoringConfig
from cfgsearch.service.models import EvaluationMetrics


@dataclass(frozen=True)
class ScoreResult:
    score: float
    rejected: bool = False
    reason: Optional[str] = None


class ScoringEngine:
    """
    Pure scorer with two modes.

    raw:    score = primary_percent
    robust: reject low win rates (and optionally small samples) with a fixed
            penalty, otherwise blend return and win rate and discount by a
            log-scale reliability factor on the sample count.
    """

    def __init__(
        self,
        *,
        mode: str = "robust",
        min_win_rate: float = 60.0,
        min_sample_count: int = 0,
        return_weight: float = 0.6,
        consistency_weight: float = 0.4,
        reliability_weight: float = 0.3,
        reliability_saturation: float = 100.0,
        reject_score: float = -10.0,
    ):
        if mode not in {"robust", "raw"}:
            raise ValueError(f"Unknown scoring mode: {mode}")
        if reliability_saturation <= 1.0:
            raise ValueError("reliability_saturation must be > 1")
        self.mode = mode
        self.min_win_rate = float(min_win_rate)
        self.min_sample_count = int(min_sample_count)
        self.return_weight = float(return_weight)
        self.consistency_weight = float(consistency_weight)
        self.reliability_weight = float(reliability_weight)
        self.reliability_saturation = float(reliability_saturation)
        self.reject_score = float(reject_score)

    @classmethod
    def from_config(cls, cfg: ScoringConfig) -> "ScoringEngine":
        return cls(**cfg.model_dump())

    def reliability(self, sample_count: float) -> float:
        n = max(float(sample_count), 1.0)
        return min(1.0, math.log(n) / math.log(self.reliability_saturation))

    def score(self, metrics: EvaluationMetrics) -> ScoreResult:
        primary = float(metrics.primary_percent)
        if self.mode == "raw":
            return ScoreResult(score=primary)

        win_rate = metrics.win_rate_percent
        if win_rate is None or win_rate < self.min_win_rate:
            return ScoreResult(
                score=self.reject_score,
                rejected=True,
                reason=f"win rate {win_rate} below {self.min_win_rate:g}",
            )
        if metrics.sample_count < self.min_sample_count:
            return ScoreResult(
                score=self.reject_score,
                rejected=True,
                reason=f"sample count {metrics.sample_count:g} below {self.min_sample_count}",
            )

        reliability = self.reliability(metrics.sample_count)
        base = primary * self.return_weight + float(win_rate) * self.consistency_weight
        final = base * (1.0 - self.reliability_weight) + base * reliability * self.reliability_weight
        return ScoreResult(score=final)
