from __future__ import annotations

import random
from typing import Callable, List, Sequence

import pytest

from cfgsearch.cache import ResultCache
from cfgsearch.config import RateLimitConfig
from cfgsearch.configuration import Configuration, ParameterRegistry
from cfgsearch.context import SearchContext
from cfgsearch.evaluation import Evaluator
from cfgsearch.optimizer import (
    CorrelatedPhase,
    MultipleStartingPoints,
    Optimizer,
    SearchPhase,
    SimulatedAnnealing,
    SingleParameterSweep,
    make_phases,
)
from cfgsearch.optimizer.variations import (
    deep_dive_values,
    latin_hypercube_samples,
    random_neighbor,
    sweep_values,
)
from cfgsearch.scoring import ScoringEngine
from cfgsearch.service import ServiceResponse

from conftest import FakeClock, FakeService, make_search_config, ok_response

RULES = {
    "x": {"section": "basic", "type": "int", "min": 0, "max": 100, "step": 5},
    "y": {"section": "basic", "type": "float", "min": 0, "max": 10, "step": 1},
    "fine": {"section": "risk", "type": "float", "min": 0, "max": 100, "step": 0.000001},
    "fine2": {"section": "risk", "type": "float", "min": 0, "max": 100, "step": 0.000001},
    "fine3": {"section": "risk", "type": "float", "min": 0, "max": 100, "step": 0.000001},
    "flag": {"section": "risk", "type": "bool"},
}

BASE = Configuration({"basic": {"x": 50, "y": 5.0}, "risk": {"fine": 50.0, "fine2": 50.0, "fine3": 50.0}})


# annealing walks only these, so every neighbour differs from FINE_BASE
FINE_RULES = {name: rule for name, rule in RULES.items() if name.startswith("fine")}
FINE_BASE = Configuration({"risk": {"fine": 50.0, "fine2": 50.0, "fine3": 50.0}})


def _config(rules=RULES, baseline=BASE, **search):
    search.setdefault("seed", 7)
    search.setdefault("target_score", 1e6)
    return make_search_config(parameters=rules, min_max_pairs=[], baseline=baseline.to_dict(), search=search)


@pytest.fixture
def reg() -> ParameterRegistry:
    return ParameterRegistry.from_config(_config())


def _session(
    respond: Callable[[Configuration], ServiceResponse],
    context: SearchContext,
    phases: Sequence[SearchPhase],
    *,
    rules=RULES,
    baseline: Configuration = BASE,
) -> tuple[Optimizer, FakeService]:
    cfg = _config(rules, baseline)
    registry = ParameterRegistry.from_config(cfg)
    service = FakeService(respond)
    evaluator = Evaluator(
        service,
        registry=registry,
        scoring=ScoringEngine(mode="raw"),
        context=context,
        cache=ResultCache(1000),
    )
    optimizer = Optimizer(evaluator, registry, context, cfg.search, baseline=baseline, phases=phases)
    return optimizer, service


def _scores_baseline(
    baseline_score: float,
    other_score: float,
    base: Configuration = FINE_BASE,
) -> Callable[[Configuration], ServiceResponse]:
    def respond(cfg: Configuration) -> ServiceResponse:
        return ok_response(primary=baseline_score if cfg == base else other_score)

    return respond


def _annealing_session(
    respond: Callable[[Configuration], ServiceResponse],
    context: SearchContext,
    phase: SimulatedAnnealing,
) -> tuple[Optimizer, FakeService]:
    return _session(respond, context, [phase], rules=FINE_RULES, baseline=FINE_BASE)


# -------------------------
# Value generators
# -------------------------

def test_sweep_values_cover_bounds_steps_and_quartiles(reg: ParameterRegistry) -> None:
    cfg = Configuration({"basic": {"x": 40}})
    assert sweep_values(reg, cfg, "x") == [0, 100, 35, 45, 25, 75]


def test_sweep_values_drop_the_current_value(reg: ParameterRegistry) -> None:
    cfg = Configuration({"basic": {"x": 25}})
    assert sweep_values(reg, cfg, "x") == [0, 100, 20, 30, 75]


def test_sweep_values_start_from_midpoint_when_unset(reg: ParameterRegistry) -> None:
    assert sweep_values(reg, Configuration({}), "x") == [0, 100, 45, 55, 25, 75]


def test_sweep_values_for_bool_rule(reg: ParameterRegistry) -> None:
    cfg = Configuration({"risk": {"flag": True}})
    assert sweep_values(reg, cfg, "flag") == [False, None]


def test_deep_dive_uses_half_steps_around_current(reg: ParameterRegistry) -> None:
    cfg = Configuration({"basic": {"y": 5.0}})
    assert deep_dive_values(reg, cfg, "y") == [3.5, 4.0, 4.5, 5.5, 6.0, 6.5]


def test_deep_dive_clamps_to_bounds(reg: ParameterRegistry) -> None:
    cfg = Configuration({"basic": {"y": 9.5}})
    assert deep_dive_values(reg, cfg, "y") == [8.0, 8.5, 9.0, 10.0]


def test_latin_hypercube_draws_one_value_per_segment(reg: ParameterRegistry) -> None:
    samples = latin_hypercube_samples(reg, ["fine", "fine2", "flag"], 5, random.Random(3))

    assert len(samples) == 5
    for name in ("fine", "fine2"):
        ordered = sorted(s[name] for s in samples)
        for i, value in enumerate(ordered):
            assert 20.0 * i - 1e-3 <= value <= 20.0 * (i + 1) + 1e-3
    assert all("flag" not in s for s in samples)


def test_latin_hypercube_permutes_each_parameter_independently(reg: ParameterRegistry) -> None:
    def order(samples: List[dict], name: str) -> List[int]:
        return sorted(range(len(samples)), key=lambda i: samples[i][name])

    differs = []
    for seed in range(10):
        samples = latin_hypercube_samples(reg, ["fine", "fine2"], 5, random.Random(seed))
        differs.append(order(samples, "fine") != order(samples, "fine2"))
    assert any(differs)


def test_latin_hypercube_rejects_empty_sample_count(reg: ParameterRegistry) -> None:
    with pytest.raises(ValueError):
        latin_hypercube_samples(reg, ["fine"], 0, random.Random(0))


def test_random_neighbor_changes_one_or_two_numeric_parameters(reg: ParameterRegistry) -> None:
    names = ["fine", "fine2", "fine3"]
    counts = set()
    for seed in range(30):
        neighbor = random_neighbor(reg, BASE, random.Random(seed), step_fraction=0.5, names=names)
        before, after = BASE.flatten(), neighbor.flatten()
        changed = [n for n in names if after[n] != before[n]]
        assert 1 <= len(changed) <= 2
        assert all(0.0 <= after[n] <= 100.0 for n in names)
        assert after["x"] == before["x"]
        counts.add(len(changed))
    assert counts == {1, 2}


def test_random_neighbor_without_numeric_parameters_returns_config() -> None:
    cfg = make_search_config(
        parameters={"flag": {"section": "risk", "type": "bool"}}, min_max_pairs=[], baseline={}
    )
    bools_only = ParameterRegistry.from_config(cfg)
    config = Configuration({"risk": {"flag": True}})

    assert random_neighbor(bools_only, config, random.Random(0)) is config


# -------------------------
# Phases
# -------------------------

def test_annealing_cools_down_to_the_temperature_floor(fast_context: SearchContext) -> None:
    phase = SimulatedAnnealing(initial_temperature=100.0, final_temperature=1.0, cooling_rate=0.5)
    optimizer, _ = _annealing_session(lambda cfg: ok_response(primary=10.0), fast_context, phase)
    optimizer.run(60.0)

    # 100, 50, 25, 12.5, 6.25, 3.125, 1.5625
    diag = phase.diagnostics()
    assert diag["iterations"] == 7
    assert diag["temperature"] == pytest.approx(0.78125)


def test_annealing_rejects_much_worse_neighbors_at_low_temperature(fast_context: SearchContext) -> None:
    phase = SimulatedAnnealing(initial_temperature=10.0, final_temperature=1.0, cooling_rate=0.5)
    optimizer, _ = _annealing_session(_scores_baseline(100.0, -1e6), fast_context, phase)
    result = optimizer.run(60.0)

    diag = phase.diagnostics()
    assert diag["iterations"] == 4
    assert diag["accepted"] == 0
    assert result.best_config == FINE_BASE


def test_annealing_accepts_worse_neighbors_at_high_temperature(fast_context: SearchContext) -> None:
    """exp(-100 / 1e9) is practically 1: every worse neighbour moves the walk."""
    phase = SimulatedAnnealing(initial_temperature=1e9, final_temperature=1e8, cooling_rate=0.5)
    optimizer, _ = _annealing_session(_scores_baseline(100.0, 0.0), fast_context, phase)
    result = optimizer.run(60.0)

    diag = phase.diagnostics()
    assert diag["iterations"] == 4
    assert diag["accepted_worse"] == 4
    # the walk moved, the session best did not
    assert result.best_score == 100.0
    assert result.best_config == FINE_BASE


def test_annealing_accepts_better_and_tied_neighbors(fast_context: SearchContext) -> None:
    phase = SimulatedAnnealing(initial_temperature=10.0, final_temperature=1.0, cooling_rate=0.5)
    optimizer, _ = _annealing_session(_scores_baseline(0.0, 5.0), fast_context, phase)
    optimizer.run(60.0)

    diag = phase.diagnostics()
    # only the first neighbour improves; later ones tie at 5.0 and exp(0) == 1 keeps the walk moving
    assert diag["accepted"] == diag["iterations"] == 4
    assert diag["accepted_worse"] == 3


def test_correlated_sets_apply_jointly_and_skip_unknown(fast_context: SearchContext) -> None:
    phase = CorrelatedPhase([{"x": 20, "y": 3}, {"x": 10, "unknown": 1}, {"x": 33}])
    optimizer, service = _session(lambda cfg: ok_response(primary=10.0), fast_context, [phase])
    optimizer.run(60.0)

    tested = [c.flatten() for c in service.calls[1:]]
    assert [(t["x"], t["y"]) for t in tested] == [(20, 3), (35, 5.0)]
    assert phase.diagnostics() == {"sets": 3, "skipped": 1}


def test_multiple_starts_evaluate_each_preset(fast_context: SearchContext) -> None:
    phase = MultipleStartingPoints({"low": {"x": 10}, "broken": {"nope": 1}, "high": {"x": 90}})
    optimizer, service = _session(lambda cfg: ok_response(primary=10.0), fast_context, [phase])
    result = optimizer.run(60.0)

    assert [c.flatten()["x"] for c in service.calls] == [50, 10, 90]
    assert result.phases_run == ["baseline", "multiple_starts"]
    assert phase.diagnostics() == {"presets": 3, "started": 2, "skipped": 1}


def test_multiple_starts_vary_the_top_parameter_around_each_preset(fast_context: SearchContext) -> None:
    phases = [
        SingleParameterSweep(parameters=["x"]),
        MultipleStartingPoints({"low": {"x": 10, "y": 2}}, variations=2),
    ]
    optimizer, service = _session(lambda cfg: ok_response(primary=10.0), fast_context, phases)
    optimizer.run(60.0)

    tail = [(c.flatten()["x"], c.flatten()["y"]) for c in service.calls[-3:]]
    assert tail == [(10, 2), (0, 2), (100, 2)]


def test_multiple_starts_only_open_with_most_of_the_session_left(clock: FakeClock) -> None:
    limits = RateLimitConfig(burst_limit=100000, max_calls_per_minute=100000, intra_burst_delay_s=0.0)
    ctx = SearchContext.create(limits, clock=clock)

    def slow_baseline(cfg: Configuration) -> ServiceResponse:
        clock.t += 3.0
        return ok_response(primary=10.0)

    phase = MultipleStartingPoints({"low": {"x": 10}})
    optimizer, service = _session(slow_baseline, ctx, [phase])
    result = optimizer.run(10.0)

    assert result.phases_run == ["baseline"]
    assert len(service.calls) == 1


@pytest.mark.parametrize("enabled, first", [(True, "multiple_starts"), (False, "sweep")])
def test_multiple_starts_follow_the_option_switch(enabled: bool, first: str) -> None:
    phases = make_phases(make_search_config(search={"use_multiple_starts": enabled}).search)
    assert phases[0].name == first
    assert sum(p.name == "multiple_starts" for p in phases) == (1 if enabled else 0)


def test_preset_with_unknown_parameter_is_rejected_when_enabled() -> None:
    with pytest.raises(ValueError):
        make_search_config(search={"use_multiple_starts": True, "presets": {"p": {"nope": 1}}})
    # disabled presets are not cross-checked
    make_search_config(search={"presets": {"p": {"nope": 1}}})
