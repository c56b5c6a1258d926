from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from .defaults import (
    DEFAULT_BASELINE,
    DEFAULT_CORRELATED_SETS,
    DEFAULT_MIN_MAX_PAIRS,
    DEFAULT_PARAMETER_RULES,
    DEFAULT_PRESETS,
)


# -------------------------
# Parameter rules
# -------------------------

RuleType = Literal["int", "float", "bool"]


class ParamRule(BaseModel):
    """
    Validation rule for one parameter.

    Numeric rules need min/max/step; bool rules take True, False or None
    ("don't care").
    """
    section: str
    type: RuleType = "float"
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _validate_bounds(self) -> "ParamRule":
        if self.type == "bool":
            return self
        if self.min is None or self.max is None or self.step is None:
            raise ValueError(f"{self.type} rule requires min, max and step")
        if self.min > self.max:
            raise ValueError(f"rule min must be <= max (got {self.min}, {self.max})")
        if self.step <= 0:
            raise ValueError(f"rule step must be > 0 (got {self.step})")
        return self

    @property
    def is_numeric(self) -> bool:
        return self.type != "bool"


def _default_rules() -> Dict[str, ParamRule]:
    return {name: ParamRule.model_validate(data) for name, data in DEFAULT_PARAMETER_RULES.items()}


# -------------------------
# Scoring
# -------------------------

ScoringMode = Literal["robust", "raw"]


class ScoringConfig(BaseModel):
    """
    Robust scoring knobs.

    return_weight + consistency_weight must sum to 1.0; the engine itself does
    not check this, so it is enforced here once at load time.
    """
    mode: ScoringMode = "robust"
    min_win_rate: float = Field(60.0, ge=0.0, le=100.0)
    min_sample_count: int = Field(50, ge=0)
    return_weight: float = Field(0.6, ge=0.0, le=1.0)
    consistency_weight: float = Field(0.4, ge=0.0, le=1.0)
    reliability_weight: float = Field(0.3, ge=0.0, le=1.0)
    reliability_saturation: float = Field(100.0, gt=1.0)
    reject_score: float = -10.0

    @model_validator(mode="after")
    def _validate_weights(self) -> "ScoringConfig":
        total = self.return_weight + self.consistency_weight
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(
                f"return_weight + consistency_weight must equal 1.0 (got {total:g})"
            )
        return self


# -------------------------
# Rate limiting
# -------------------------

class RateLimitConfig(BaseModel):
    burst_limit: int = Field(20, ge=1)
    min_burst_limit: int = Field(3, ge=1)
    recovery_interval_s: float = Field(10.0, gt=0.0)
    max_recovery_interval_s: float = Field(60.0, gt=0.0)
    recovery_growth: float = Field(1.5, ge=1.0)
    safety_buffer: float = Field(0.4, ge=0.0, lt=1.0)
    intra_burst_delay_s: float = Field(0.1, ge=0.0)
    max_calls_per_minute: int = Field(50, ge=1)
    window_s: float = Field(60.0, gt=0.0)

    @model_validator(mode="after")
    def _validate_limits(self) -> "RateLimitConfig":
        if self.min_burst_limit > self.burst_limit:
            raise ValueError("min_burst_limit must be <= burst_limit")
        if self.recovery_interval_s > self.max_recovery_interval_s:
            raise ValueError("recovery_interval_s must be <= max_recovery_interval_s")
        return self


class RetryConfig(BaseModel):
    """Evaluator retry policy for throttled calls."""
    max_attempts: int = Field(3, ge=1)
    base_delay_s: float = Field(3.0, ge=0.0)
    max_delay_s: float = Field(30.0, ge=0.0)


# -------------------------
# Scoring service
# -------------------------

ServiceKind = Literal["http", "command"]


class TakeProfitLevel(BaseModel):
    size: float
    gain: float


class HttpServiceConfig(BaseModel):
    base_url: str = Field(..., min_length=1)
    timeout_s: float = Field(30.0, gt=0.0)
    param_map: Dict[str, str] = Field(default_factory=dict)
    fixed_params: Dict[str, Any] = Field(
        default_factory=lambda: {"excludeSpoofedTokens": True, "buyingAmount": 0.25}
    )
    take_profits: List[TakeProfitLevel] = Field(
        default_factory=lambda: [
            TakeProfitLevel(size=20, gain=300),
            TakeProfitLevel(size=20, gain=650),
            TakeProfitLevel(size=20, gain=1400),
            TakeProfitLevel(size=20, gain=3000),
            TakeProfitLevel(size=20, gain=10000),
        ]
    )


class CommandServiceConfig(BaseModel):
    """
    External scoring command that follows the contract:
    - reads input.json
    - writes output.json
    """
    command: List[str] = Field(
        ...,
        min_length=1,
        description="Command as a list, e.g. ['{python}', 'path/to/score.py']",
    )
    timeout_s: int = Field(600, ge=1)
    extra_args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)


class ServiceConfig(BaseModel):
    kind: ServiceKind = "http"
    http: Optional[HttpServiceConfig] = None
    command: Optional[CommandServiceConfig] = None

    @model_validator(mode="after")
    def _validate_transport(self) -> "ServiceConfig":
        if self.kind == "http" and self.http is None:
            raise ValueError("service.http is required when service.kind is 'http'")
        if self.kind == "command" and self.command is None:
            raise ValueError("service.command is required when service.kind is 'command'")
        return self


# -------------------------
# Search options
# -------------------------

class SearchOptions(BaseModel):
    """
    Static phase switches and tuning, validated once per session.

    constraints narrows parameter ranges for every candidate generator,
    e.g. {"maxBundledPercent": [0, 10]}.
    """
    target_score: float = 100.0
    seed: Optional[int] = None

    use_multiple_starts: bool = False
    use_latin_hypercube: bool = True
    use_correlated: bool = True
    use_simulated_annealing: bool = True
    use_deep_dive: bool = True

    lhs_top_params: int = Field(6, ge=1)
    lhs_samples: int = Field(8, ge=1)

    annealing_initial_temperature: float = Field(100.0, gt=0.0)
    annealing_final_temperature: float = Field(1.0, gt=0.0)
    annealing_cooling_rate: float = Field(0.95, gt=0.0, lt=1.0)
    annealing_step_fraction: float = Field(0.1, gt=0.0, le=1.0)

    deep_dive_top_params: int = Field(3, ge=1)

    constraints: Dict[str, Tuple[float, float]] = Field(default_factory=dict)
    correlated_sets: List[Dict[str, Any]] = Field(
        default_factory=lambda: [dict(s) for s in DEFAULT_CORRELATED_SETS]
    )
    presets: Dict[str, Dict[str, Any]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_PRESETS.items()}
    )

    @model_validator(mode="after")
    def _validate_options(self) -> "SearchOptions":
        if self.annealing_final_temperature >= self.annealing_initial_temperature:
            raise ValueError("annealing_final_temperature must be below the initial temperature")
        for name, (lo, hi) in self.constraints.items():
            if lo > hi:
                raise ValueError(f"constraint for {name!r} must have lo <= hi (got {lo}, {hi})")
        return self


class ChainConfig(BaseModel):
    run_count: int = Field(3, ge=1)
    minutes_per_run: float = Field(15.0, gt=0.0)


class CacheConfig(BaseModel):
    capacity: int = Field(1000, ge=1)


# -------------------------
# Top-level configuration
# -------------------------

class SearchConfig(BaseModel):
    """
    Top-level configuration for a search against one scoring service.
    """
    id: str = Field(..., description="Search identifier, used in output records.")
    service: ServiceConfig
    parameters: Dict[str, ParamRule] = Field(default_factory=_default_rules)
    min_max_pairs: List[Tuple[str, str]] = Field(default_factory=lambda: list(DEFAULT_MIN_MAX_PAIRS))
    baseline: Dict[str, Dict[str, Any]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_BASELINE.items()}
    )
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    search: SearchOptions = Field(default_factory=SearchOptions)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    context: Dict[str, Any] = Field(default_factory=dict, description="Metadata passed to the service.")
    source_path: Optional[Path] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _validate_references(self) -> "SearchConfig":
        for lo_name, hi_name in self.min_max_pairs:
            for name in (lo_name, hi_name):
                if name not in self.parameters:
                    raise ValueError(f"min_max_pairs references unknown parameter {name!r}")
        for name in self.search.constraints:
            if name not in self.parameters:
                raise ValueError(f"search.constraints references unknown parameter {name!r}")
        presets = self.search.presets if self.search.use_multiple_starts else {}
        for preset, values in presets.items():
            for name in values:
                if name not in self.parameters:
                    raise ValueError(f"search.presets[{preset!r}] references unknown parameter {name!r}")
        return self
