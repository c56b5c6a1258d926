from .evaluate import Evaluator
from .outcomes import (
    EvaluationResult,
    HistoryEntry,
    InvalidConfig,
    RateLimited,
    ServiceError,
    Success,
)

__all__ = [
    "EvaluationResult",
    "Evaluator",
    "HistoryEntry",
    "InvalidConfig",
    "RateLimited",
    "ServiceError",
    "Success",
]
