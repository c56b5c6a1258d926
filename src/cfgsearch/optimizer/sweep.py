from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .base import SearchPhase
from .variations import deep_dive_values, sweep_values

if TYPE_CHECKING:
    from .session import Optimizer

logger = logging.getLogger(__name__)


class SingleParameterSweep(SearchPhase):
    """
    Vary one parameter at a time around the current best.

    Per parameter, the best improvement over the score at the start of that
    parameter's sweep is recorded as its effectiveness. Until some candidate
    has scored, the first scored value of the sweep stands in for that
    starting score.
    """

    name = "sweep"
    start_above = 0.6
    stop_below = 0.4

    def __init__(self, parameters: Optional[List[str]] = None):
        self.parameters = parameters
        self._n_swept = 0
        self._n_improved = 0

    def run(self, session: "Optimizer") -> None:
        names = self.parameters if self.parameters is not None else session.registry.names()
        for name in names:
            if session.should_stop(self.stop_below):
                return
            # without a scored best, the first result of this sweep is the reference
            start_score: Optional[float] = session.state.best_score if session.has_result() else None
            best_delta: Optional[float] = None

            for value in sweep_values(session.registry, session.state.best_config, name):
                if session.should_stop(self.stop_below):
                    break
                candidate = session.registry.set_value(session.state.best_config, name, value)
                score = session.test(candidate, label=f"{name}={value}", phase=self.name)
                if score is None:
                    continue
                if start_score is None:
                    start_score = score
                delta = score - start_score
                if best_delta is None or delta > best_delta:
                    best_delta = delta

            self._n_swept += 1
            if best_delta is not None:
                logger.debug("sweep %s: best delta %.3f", name, best_delta)
                session.record_effectiveness(name, best_delta)
                if best_delta > 0:
                    self._n_improved += 1

    def diagnostics(self) -> Dict[str, Any]:
        return {"swept": self._n_swept, "improved": self._n_improved}


class DeepDive(SearchPhase):
    """Half-step refinement of the most effective parameters around the current best."""

    name = "deep_dive"
    start_above = 0.05
    stop_below = 0.0

    def __init__(self, top_params: int = 3, reach: int = 3):
        if top_params < 1:
            raise ValueError("top_params must be >= 1")
        if reach < 1:
            raise ValueError("reach must be >= 1")
        self.top_params = int(top_params)
        self.reach = int(reach)

    def can_start(self, session: "Optimizer") -> bool:
        return super().can_start(session) and bool(session.parameter_effectiveness)

    def run(self, session: "Optimizer") -> None:
        for name in session.top_parameters(self.top_params):
            if session.should_stop(self.stop_below):
                return
            values = deep_dive_values(session.registry, session.state.best_config, name, reach=self.reach)
            for value in values:
                if session.should_stop(self.stop_below):
                    return
                candidate = session.registry.set_value(session.state.best_config, name, value)
                session.test(candidate, label=f"deep dive: {name}={value}", phase=self.name)
