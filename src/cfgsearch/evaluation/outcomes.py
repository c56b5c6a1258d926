from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from cfgsearch.configuration import Configuration
from cfgsearch.service.models import EvaluationMetrics


@dataclass(frozen=True)
class Success:
    metrics: EvaluationMetrics
    score: float
    rejected: bool = False
    reason: Optional[str] = None
    kind: ClassVar[str] = "success"


@dataclass(frozen=True)
class RateLimited:
    retryable: bool = True
    kind: ClassVar[str] = "rate_limited"


@dataclass(frozen=True)
class InvalidConfig:
    violations: Tuple[str, ...]
    kind: ClassVar[str] = "invalid_config"


@dataclass(frozen=True)
class ServiceError:
    message: str
    kind: ClassVar[str] = "service_error"


EvaluationResult = Union[Success, RateLimited, InvalidConfig, ServiceError]


@dataclass(frozen=True)
class HistoryEntry:
    run_index: int
    candidate_id: Optional[str]
    label: str
    phase: str
    config: Configuration
    result: EvaluationResult
    cached: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def kind(self) -> str:
        return self.result.kind

    @property
    def score(self) -> Optional[float]:
        return self.result.score if isinstance(self.result, Success) else None

    def to_record(self) -> Dict[str, Any]:
        res = self.result
        record: Dict[str, Any] = {
            "run_index": self.run_index,
            "candidate_id": self.candidate_id,
            "label": self.label,
            "phase": self.phase,
            "kind": res.kind,
            "cached": self.cached,
            "timestamp": self.timestamp,
            "config": self.config.to_dict(),
            "score": None,
            "rejected": None,
            "metrics": None,
            "error": None,
        }
        if isinstance(res, Success):
            record["score"] = res.score
            record["rejected"] = res.rejected
            record["metrics"] = res.metrics.to_dict()
            if res.reason:
                record["error"] = res.reason
        elif isinstance(res, InvalidConfig):
            record["error"] = "; ".join(res.violations)
        elif isinstance(res, ServiceError):
            record["error"] = res.message
        else:
            record["error"] = "rate limited after retries"
        return record
