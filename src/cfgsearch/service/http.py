"""HTTP transport: GET <base_url>?<flattened configuration>."""

from __future__ import annotations

import logging
import math
from typing import Any, List, Optional, Tuple

import requests

from cfgsearch.config.models import HttpServiceConfig
from cfgsearch.configuration import Configuration

from .base import ScoringServiceError
from .models import ServiceResponse

logger = logging.getLogger(__name__)


def _render(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if float(value).is_integer():
            return str(int(value))
        return repr(float(value))
    return str(value)


class HttpScoringService:
    def __init__(self, config: HttpServiceConfig, *, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def build_params(self, config: Configuration) -> List[Tuple[str, str]]:
        """Query parameters in a stable order; unset and non-finite values are dropped."""
        params: List[Tuple[str, str]] = []
        for name, value in sorted(config.flatten().items()):
            rendered = _render(value)
            if rendered is None:
                continue
            params.append((self.config.param_map.get(name, name), rendered))

        for name, value in self.config.fixed_params.items():
            rendered = _render(value)
            if rendered is not None:
                params.append((name, rendered))

        for level in self.config.take_profits:
            params.append(("tpSize", _render(level.size) or "0"))
            params.append(("tpGain", _render(level.gain) or "0"))
        return params

    def evaluate(self, config: Configuration, *, candidate_id: str) -> ServiceResponse:
        params = self.build_params(config)
        try:
            resp = self.session.get(self.config.base_url, params=params, timeout=self.config.timeout_s)
        except requests.RequestException as exc:
            raise ScoringServiceError(f"request for {candidate_id} failed: {exc}") from exc

        if resp.status_code == 429:
            logger.debug("HTTP 429 for %s", candidate_id)
            return ServiceResponse(success=False, rate_limited=True, error="HTTP 429 Too Many Requests")

        if not resp.ok:
            raise ScoringServiceError(f"HTTP {resp.status_code} for {candidate_id}: {resp.text[:200]}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise ScoringServiceError(f"non-JSON response for {candidate_id}: {exc}") from exc

        if not isinstance(body, dict):
            raise ScoringServiceError(f"expected a JSON object for {candidate_id}, got {type(body).__name__}")

        if body.get("error") and "totalTokens" not in body:
            return ServiceResponse(success=False, error=str(body["error"]))

        return ServiceResponse(success=True, metrics=body)
