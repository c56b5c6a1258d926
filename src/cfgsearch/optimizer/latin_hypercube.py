from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from .base import SearchPhase
from .variations import latin_hypercube_samples

if TYPE_CHECKING:
    from .session import Optimizer


class LatinHypercubePhase(SearchPhase):
    """Joint Latin Hypercube samples over the most effective numeric parameters."""

    name = "latin_hypercube"
    start_above = 0.4
    stop_below = 0.3

    def __init__(self, top_params: int = 6, samples: int = 8):
        if top_params < 1:
            raise ValueError("top_params must be >= 1")
        if samples < 1:
            raise ValueError("samples must be >= 1")
        self.top_params = int(top_params)
        self.samples = int(samples)
        self._n_generated = 0

    def can_start(self, session: "Optimizer") -> bool:
        return super().can_start(session) and bool(session.parameter_effectiveness)

    def run(self, session: "Optimizer") -> None:
        names = session.top_parameters(self.top_params, numeric_only=True)
        if not names:
            return
        base = session.state.best_config
        samples = latin_hypercube_samples(session.registry, names, self.samples, session.rng)
        self._n_generated += len(samples)
        for i, sample in enumerate(samples, start=1):
            if session.should_stop(self.stop_below):
                return
            candidate = session.registry.set_values(base, sample)
            label = "LHS %d: %s" % (i, " ".join(f"{k}={v}" for k, v in sample.items()))
            session.test(candidate, label=label, phase=self.name)

    def diagnostics(self) -> Dict[str, Any]:
        return {"generated": self._n_generated}
