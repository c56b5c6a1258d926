from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Sequence

from .base import SearchPhase

if TYPE_CHECKING:
    from .session import Optimizer

logger = logging.getLogger(__name__)


class CorrelatedPhase(SearchPhase):
    """
    Apply hand-curated sets of jointly-varied parameters to the current best.

    Each set is a {parameter: value} mapping, e.g. a min/max pair moved
    together. Values are snapped to the rule grid; parameters unknown to the
    registry make the whole set unusable.
    """

    name = "correlated"
    start_above = 0.3
    stop_below = 0.1

    def __init__(self, sets: Sequence[Mapping[str, Any]]):
        self.sets: List[Dict[str, Any]] = [dict(s) for s in sets]
        self._n_skipped = 0

    def run(self, session: "Optimizer") -> None:
        registry = session.registry
        for i, values in enumerate(self.sets, start=1):
            if session.should_stop(self.stop_below):
                return
            unknown = [n for n in values if n not in registry]
            if unknown:
                logger.warning("Correlated set %d references unknown parameters %s; skipped", i, unknown)
                self._n_skipped += 1
                continue
            snapped = {
                n: (registry.snap(n, v) if registry.rules[n].is_numeric and v is not None else v)
                for n, v in values.items()
            }
            candidate = registry.set_values(session.state.best_config, snapped)
            label = "correlated %d: %s" % (i, ", ".join(f"{k}={v}" for k, v in snapped.items()))
            session.test(candidate, label=label, phase=self.name)

    def diagnostics(self) -> Dict[str, Any]:
        return {"sets": len(self.sets), "skipped": self._n_skipped}
