from __future__ import annotations

import math
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class ServiceResponse(BaseModel):
    """
    Typed reply of one scoring-service call.

    - success: metrics are present and usable
    - metrics: raw metric dict as returned by the service
    - error: optional error message
    - rate_limited: the service throttled this call (retryable)
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    metrics: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    rate_limited: bool = Field(
        False, validation_alias=AliasChoices("rate_limited", "isRateLimited")
    )


class EvaluationMetrics(BaseModel):
    """
    Decoded metrics for one configuration.

    sample_count and primary_percent are required and must be finite;
    unknown extra fields are kept as-is.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    sample_count: float = Field(..., validation_alias=AliasChoices("sample_count", "totalTokens"))
    primary_percent: float = Field(..., validation_alias=AliasChoices("primary_percent", "tpPnlPercent"))
    win_rate_percent: Optional[float] = Field(
        None, validation_alias=AliasChoices("win_rate_percent", "winRate")
    )
    spent_volume: Optional[float] = Field(None, validation_alias=AliasChoices("spent_volume", "totalSpent"))
    alt_percent: Optional[float] = Field(None, validation_alias=AliasChoices("alt_percent", "pnlPercent"))

    @model_validator(mode="after")
    def _validate_finite(self) -> "EvaluationMetrics":
        for name in ("sample_count", "primary_percent"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value!r}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
