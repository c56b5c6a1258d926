from __future__ import annotations

from typing import List

from cfgsearch.config.models import SearchOptions

from .annealing import SimulatedAnnealing
from .base import SearchPhase
from .correlated import CorrelatedPhase
from .latin_hypercube import LatinHypercubePhase
from .starts import MultipleStartingPoints
from .sweep import DeepDive, SingleParameterSweep


def make_phase(name: str, **kwargs) -> SearchPhase:
    name = name.lower().strip()

    if name in {"multiple_starts", "starting_points", "presets"}:
        # kwargs: presets, variations
        return MultipleStartingPoints(**kwargs)

    if name in {"sweep", "single_parameter", "parameters"}:
        return SingleParameterSweep(**kwargs)

    if name in {"latin_hypercube", "lhs"}:
        # kwargs may include: top_params, samples
        return LatinHypercubePhase(**kwargs)

    if name in {"correlated", "correlated_parameters"}:
        return CorrelatedPhase(**kwargs)

    if name in {"annealing", "simulated_annealing", "sa"}:
        # kwargs may include: initial_temperature, final_temperature, cooling_rate, step_fraction
        return SimulatedAnnealing(**kwargs)

    if name in {"deep_dive", "deepdive"}:
        return DeepDive(**kwargs)

    raise ValueError(f"Unknown search phase: {name}")


def make_phases(options: SearchOptions) -> List[SearchPhase]:
    """Phases after the baseline, in order; optional ones follow the switches in options."""
    phases: List[SearchPhase] = []
    if options.use_multiple_starts:
        phases.append(make_phase("multiple_starts", presets=options.presets))
    phases.append(make_phase("sweep"))
    if options.use_latin_hypercube:
        phases.append(make_phase("lhs", top_params=options.lhs_top_params, samples=options.lhs_samples))
    if options.use_correlated:
        phases.append(make_phase("correlated", sets=options.correlated_sets))
    if options.use_simulated_annealing:
        phases.append(
            make_phase(
                "annealing",
                initial_temperature=options.annealing_initial_temperature,
                final_temperature=options.annealing_final_temperature,
                cooling_rate=options.annealing_cooling_rate,
                step_fraction=options.annealing_step_fraction,
            )
        )
    if options.use_deep_dive:
        phases.append(make_phase("deep_dive", top_params=options.deep_dive_top_params))
    return phases
