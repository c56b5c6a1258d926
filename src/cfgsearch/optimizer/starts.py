from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping

from .base import SearchPhase
from .variations import sweep_values

if TYPE_CHECKING:
    from .session import Optimizer

logger = logging.getLogger(__name__)


class MultipleStartingPoints(SearchPhase):
    """
    Evaluate named presets as alternative starting points.

    Each preset is a {parameter: value} mapping laid over the session's
    starting configuration. After a preset scores, up to `variations`
    sweep values of the most effective parameter so far are tried around it.
    Only opens while more than 80% of the session is left.
    """

    name = "multiple_starts"
    start_above = 0.8
    stop_below = 0.0

    def __init__(self, presets: Mapping[str, Mapping[str, Any]], variations: int = 2):
        if variations < 0:
            raise ValueError("variations must be >= 0")
        self.presets: Dict[str, Dict[str, Any]] = {name: dict(values) for name, values in presets.items()}
        self.variations = int(variations)
        self._n_started = 0
        self._n_skipped = 0

    def can_start(self, session: "Optimizer") -> bool:
        return super().can_start(session) and bool(self.presets)

    def run(self, session: "Optimizer") -> None:
        registry = session.registry
        for preset_name, values in self.presets.items():
            if session.should_stop(self.stop_below):
                return
            unknown = [n for n in values if n not in registry]
            if unknown:
                logger.warning("Preset %s references unknown parameters %s; skipped", preset_name, unknown)
                self._n_skipped += 1
                continue

            snapped = {
                n: (registry.snap(n, v) if registry.rules[n].is_numeric and v is not None else v)
                for n, v in values.items()
            }
            start = registry.set_values(session.start_config, snapped)
            score = session.test(start, label=f"starting point: {preset_name}", phase=self.name)
            self._n_started += 1
            if score is None:
                continue

            top = session.top_parameters(1)
            if top and self.variations:
                for value in sweep_values(registry, start, top[0])[: self.variations]:
                    if session.should_stop(self.stop_below):
                        return
                    candidate = registry.set_value(start, top[0], value)
                    session.test(candidate, label=f"{preset_name}: {top[0]}={value}", phase=self.name)

    def diagnostics(self) -> Dict[str, Any]:
        return {"presets": len(self.presets), "started": self._n_started, "skipped": self._n_skipped}
