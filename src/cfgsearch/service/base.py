from __future__ import annotations

from typing import Protocol

from cfgsearch.configuration import Configuration

from .models import ServiceResponse


class ScoringServiceError(RuntimeError):
    """Transport-level failure talking to the scoring service."""


class ScoringService(Protocol):
    def evaluate(self, config: Configuration, *, candidate_id: str) -> ServiceResponse:
        """Score one configuration. Throttling is reported, not raised."""
        ...
