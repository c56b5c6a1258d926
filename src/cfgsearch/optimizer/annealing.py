from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Dict, Optional

from .base import SearchPhase
from .variations import random_neighbor

if TYPE_CHECKING:
    from .session import Optimizer


class SimulatedAnnealing(SearchPhase):
    """
    Simulated annealing around the current best.

    Neighbours perturb one or two numeric parameters. A better neighbour is
    always accepted; a worse one with probability exp(delta / temperature).
    The temperature cools geometrically until it reaches the floor.

    Acceptance only moves the walk; the session best still changes only on a
    strictly greater score.
    """

    name = "annealing"
    start_above = 0.15
    stop_below = 0.05

    def __init__(
        self,
        *,
        initial_temperature: float = 100.0,
        final_temperature: float = 1.0,
        cooling_rate: float = 0.95,
        step_fraction: float = 0.1,
    ):
        if initial_temperature <= 0.0:
            raise ValueError("initial_temperature must be > 0")
        if not (0.0 < final_temperature < initial_temperature):
            raise ValueError("final_temperature must be in (0, initial_temperature)")
        if not (0.0 < cooling_rate < 1.0):
            raise ValueError("cooling_rate must be in (0, 1)")
        if step_fraction <= 0.0:
            raise ValueError("step_fraction must be > 0")

        self.initial_temperature = float(initial_temperature)
        self.final_temperature = float(final_temperature)
        self.cooling_rate = float(cooling_rate)
        self.step_fraction = float(step_fraction)

        self._n_iterations = 0
        self._n_accepted = 0
        self._n_accepted_worse = 0
        self._final_temperature_reached: Optional[float] = None

    def run(self, session: "Optimizer") -> None:
        rng = session.rng
        current = session.state.best_config
        current_score = session.state.best_score
        temperature = self.initial_temperature

        while temperature > self.final_temperature and not session.should_stop(self.stop_below):
            neighbor = random_neighbor(session.registry, current, rng, step_fraction=self.step_fraction)
            score = session.test(neighbor, label=f"annealing T={temperature:.1f}", phase=self.name)
            self._n_iterations += 1

            if score is not None:
                delta = score - current_score
                if delta > 0:
                    current, current_score = neighbor, score
                    self._n_accepted += 1
                elif rng.random() < math.exp(delta / temperature):
                    current, current_score = neighbor, score
                    self._n_accepted += 1
                    self._n_accepted_worse += 1

            temperature *= self.cooling_rate

        self._final_temperature_reached = temperature

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "iterations": self._n_iterations,
            "accepted": self._n_accepted,
            "accepted_worse": self._n_accepted_worse,
            "temperature": self._final_temperature_reached,
        }
