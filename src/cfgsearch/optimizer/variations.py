"""Candidate value generators shared by the search phases.

All generators are pure: they take a registry, a configuration and (where
random) a random.Random, and return new values or configurations.
"""

from __future__ import annotations

import random
from typing import Any, Dict, List, Optional, Sequence

from cfgsearch.configuration import Configuration, ParameterRegistry

BOOL_CHOICES = (True, False, None)


def current_or_midpoint(registry: ParameterRegistry, config: Configuration, name: str) -> float:
    value = registry.value_of(config, name)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    lo, hi = registry.bounds(name)
    return (lo + hi) / 2.0


def _same(a: Any, b: Any) -> bool:
    if a is None or b is None or isinstance(a, bool) or isinstance(b, bool):
        return a is b
    return a == b


def _unique(values: Sequence[Any], current: Any) -> List[Any]:
    """Drop duplicates and the current value, keeping first-seen order."""
    out: List[Any] = []
    for v in values:
        if _same(v, current) or any(_same(v, o) for o in out):
            continue
        out.append(v)
    return out


def sweep_values(registry: ParameterRegistry, config: Configuration, name: str) -> List[Any]:
    """
    Alternatives for one parameter around its current value.

    Numeric: bounds, current +/- one step and the 25%/75% quartiles, each
    snapped to the step grid. Booleans: True, False and None.
    """
    rule = registry.rules[name]
    current = registry.value_of(config, name)
    if not rule.is_numeric:
        return _unique(BOOL_CHOICES, current)

    lo, hi = registry.bounds(name)
    base = current_or_midpoint(registry, config, name)
    step = float(rule.step)  # type: ignore[arg-type]
    raw = [
        lo,
        hi,
        base - step,
        base + step,
        lo + (hi - lo) * 0.25,
        lo + (hi - lo) * 0.75,
    ]
    values = [registry.snap(name, v) for v in raw]
    return _unique(values, current)


def deep_dive_values(
    registry: ParameterRegistry,
    config: Configuration,
    name: str,
    *,
    reach: int = 3,
) -> List[Any]:
    """Half-step offsets -reach..+reach around the current value (zero skipped)."""
    rule = registry.rules[name]
    if not rule.is_numeric:
        return sweep_values(registry, config, name)

    lo, hi = registry.bounds(name)
    base = current_or_midpoint(registry, config, name)
    half = float(rule.step) / 2.0  # type: ignore[arg-type]
    current = registry.value_of(config, name)

    values: List[Any] = []
    for k in range(-reach, reach + 1):
        if k == 0:
            continue
        v = min(hi, max(lo, base + k * half))
        values.append(registry.coerce(name, v))
    return _unique(values, current)


def latin_hypercube_samples(
    registry: ParameterRegistry,
    names: Sequence[str],
    n_samples: int,
    rng: random.Random,
) -> List[Dict[str, Any]]:
    """
    Latin Hypercube samples over the given numeric parameters.

    Each range is cut into n_samples equal segments with one uniform draw per
    segment; every parameter gets its own permutation of segments so samples
    do not move along the axes in lockstep.
    """
    if n_samples < 1:
        raise ValueError(f"n_samples must be >= 1, got {n_samples}")
    samples: List[Dict[str, Any]] = [{} for _ in range(n_samples)]
    for name in names:
        if not registry.rules[name].is_numeric:
            continue
        lo, hi = registry.bounds(name)
        width = (hi - lo) / n_samples
        segments = list(range(n_samples))
        rng.shuffle(segments)
        for i, seg in enumerate(segments):
            value = lo + width * seg + rng.random() * width
            samples[i][name] = registry.snap(name, value)
    return samples


def random_neighbor(
    registry: ParameterRegistry,
    config: Configuration,
    rng: random.Random,
    *,
    step_fraction: float = 0.1,
    names: Optional[Sequence[str]] = None,
) -> Configuration:
    """Perturb one or two numeric parameters by up to +/- step_fraction/2 of their range."""
    pool = list(names) if names is not None else registry.numeric_names()
    if not pool:
        return config
    n_changes = rng.randint(1, min(2, len(pool)))
    updates: Dict[str, Any] = {}
    for name in rng.sample(pool, n_changes):
        lo, hi = registry.bounds(name)
        current = current_or_midpoint(registry, config, name)
        change = (rng.random() - 0.5) * (hi - lo) * step_fraction
        updates[name] = registry.snap(name, current + change)
    return registry.set_values(config, updates)
