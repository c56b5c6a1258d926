"""Configuration value type, parameter registry and canonical keys.

A Configuration maps section -> parameter -> value. Values are numbers,
booleans, or None for "don't care". Instances are immutable: every change
returns a new Configuration, so variation generators never alias each other.
"""

from __future__ import annotations

import json
import math
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from cfgsearch.config.models import ParamRule, SearchConfig


def _sorted_recursively(obj: Any) -> Any:
    """Sort mapping keys at every depth and drop None entries and empty mappings."""
    if isinstance(obj, Mapping):
        out: Dict[str, Any] = {}
        for key in sorted(obj, key=str):
            value = _sorted_recursively(obj[key])
            if value is None:
                continue
            if isinstance(value, dict) and not value:
                continue
            out[str(key)] = value
        return out
    if isinstance(obj, (list, tuple)):
        return [_sorted_recursively(v) for v in obj]
    # 5.0 and 5 are the same setting
    if isinstance(obj, float) and obj.is_integer():
        return int(obj)
    return obj


def canonical_key(config: "Configuration | Mapping[str, Any]") -> str:
    """
    Return the order-independent cache key for a configuration.

    Two configurations with the same content collide regardless of key
    insertion order, an explicit None is the same as an absent entry, and
    integral floats are written as integers.
    """
    data = config.to_dict() if isinstance(config, Configuration) else config
    return json.dumps(_sorted_recursively(data), sort_keys=True, separators=(",", ":"))


class Configuration(Mapping[str, Mapping[str, Any]]):
    """Immutable nested mapping of section -> {parameter: value}."""

    __slots__ = ("_sections",)

    def __init__(self, sections: Optional[Mapping[str, Mapping[str, Any]]] = None):
        frozen: Dict[str, Mapping[str, Any]] = {}
        for section, params in (sections or {}).items():
            if not isinstance(params, Mapping):
                raise TypeError(f"section {section!r} must be a mapping, got {type(params).__name__}")
            frozen[str(section)] = MappingProxyType(dict(params))
        self._sections = frozen

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Configuration":
        return cls(data)

    # Mapping interface
    def __getitem__(self, section: str) -> Mapping[str, Any]:
        return self._sections[section]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Configuration):
            return canonical_key(self) == canonical_key(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(canonical_key(self))

    def __repr__(self) -> str:
        return f"Configuration({self.to_dict()!r})"

    def get_value(self, section: str, name: str) -> Any:
        return self._sections.get(section, {}).get(name)

    def with_value(self, section: str, name: str, value: Any) -> "Configuration":
        data = self.to_dict()
        data.setdefault(section, {})[name] = value
        return Configuration(data)

    def with_values(self, updates: Iterable[Tuple[str, str, Any]]) -> "Configuration":
        data = self.to_dict()
        for section, name, value in updates:
            data.setdefault(section, {})[name] = value
        return Configuration(data)

    def flatten(self) -> Dict[str, Any]:
        """Merge all sections into one parameter -> value dict."""
        flat: Dict[str, Any] = {}
        for params in self._sections.values():
            flat.update(params)
        return flat

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain, independent nested dict copy."""
        return {section: dict(params) for section, params in self._sections.items()}


# -------------------------
# Registry
# -------------------------

class ParameterRegistry:
    """Known parameters, their rules, and the min/max pairings between them."""

    def __init__(
        self,
        rules: Mapping[str, ParamRule],
        min_max_pairs: Sequence[Tuple[str, str]] = (),
        constraints: Optional[Mapping[str, Tuple[float, float]]] = None,
    ):
        self.rules: Dict[str, ParamRule] = dict(rules)
        self.min_max_pairs: List[Tuple[str, str]] = [tuple(p) for p in min_max_pairs]  # type: ignore[misc]
        self.constraints: Dict[str, Tuple[float, float]] = dict(constraints or {})

    @classmethod
    def from_config(cls, cfg: SearchConfig) -> "ParameterRegistry":
        return cls(cfg.parameters, cfg.min_max_pairs, cfg.search.constraints)

    def __contains__(self, name: object) -> bool:
        return name in self.rules

    def names(self) -> List[str]:
        return list(self.rules)

    def numeric_names(self) -> List[str]:
        return [n for n, r in self.rules.items() if r.is_numeric]

    def section_of(self, name: str) -> str:
        return self.rules[name].section

    def bounds(self, name: str) -> Tuple[float, float]:
        """Rule bounds narrowed by any static constraint."""
        rule = self.rules[name]
        lo, hi = float(rule.min), float(rule.max)  # type: ignore[arg-type]
        if name in self.constraints:
            c_lo, c_hi = self.constraints[name]
            lo, hi = max(lo, float(c_lo)), min(hi, float(c_hi))
            if lo > hi:
                lo = hi = min(max(float(c_lo), float(rule.min)), float(rule.max))  # type: ignore[arg-type]
        return lo, hi

    def snap(self, name: str, value: float) -> float | int:
        """Clamp into bounds and round onto the rule's step grid."""
        rule = self.rules[name]
        lo, hi = self.bounds(name)
        step = float(rule.step)  # type: ignore[arg-type]
        base = float(rule.min)  # type: ignore[arg-type]
        snapped = base + round((float(value) - base) / step) * step
        snapped = min(hi, max(lo, snapped))
        return self.coerce(name, snapped)

    def coerce(self, name: str, value: float) -> float | int:
        if self.rules[name].type == "int":
            return int(round(value))
        return round(float(value), 6)

    def value_of(self, config: Configuration, name: str) -> Any:
        return config.get_value(self.section_of(name), name)

    def set_value(self, config: Configuration, name: str, value: Any) -> Configuration:
        return config.with_value(self.section_of(name), name, value)

    def set_values(self, config: Configuration, values: Mapping[str, Any]) -> Configuration:
        return config.with_values((self.section_of(n), n, v) for n, v in values.items())

    def min_max_violations(self, config: Configuration) -> List[str]:
        flat = config.flatten()
        out: List[str] = []
        for lo_name, hi_name in self.min_max_pairs:
            lo, hi = flat.get(lo_name), flat.get(hi_name)
            if _is_number(lo) and _is_number(hi) and lo > hi:
                out.append(f"{lo_name} ({lo}) > {hi_name} ({hi})")
        return out

    def satisfies_min_max(self, config: Configuration) -> bool:
        return not self.min_max_violations(config)

    def validate(self, config: Configuration) -> List[str]:
        """
        Return every rule violation in a configuration (empty list = valid).

        Checks: known parameter, matching section, finite in-range numbers,
        booleans for bool rules, and min <= max for paired parameters.
        """
        violations: List[str] = []
        for section, params in config.items():
            for name, value in params.items():
                if value is None:
                    continue
                rule = self.rules.get(name)
                if rule is None:
                    violations.append(f"unknown parameter {section}.{name}")
                    continue
                if rule.section != section:
                    violations.append(f"{name} belongs to section {rule.section!r}, not {section!r}")
                if rule.type == "bool":
                    if not isinstance(value, bool):
                        violations.append(f"{name} must be a boolean, got {value!r}")
                    continue
                if not _is_number(value) or not math.isfinite(value):
                    violations.append(f"{name} must be a finite number, got {value!r}")
                    continue
                if value < rule.min or value > rule.max:  # type: ignore[operator]
                    violations.append(f"{name}={value} outside [{rule.min:g}, {rule.max:g}]")
        violations.extend(self.min_max_violations(config))
        return violations


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
