from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .models import SearchConfig

_YAML_SUFFIXES = {".yaml", ".yml"}


def load_data(path: Path) -> Any:
    """
    Parse a JSON or YAML file. An empty YAML document loads as {}.
    """
    suffix = path.suffix.lower()
    if suffix != ".json" and suffix not in _YAML_SUFFIXES:
        raise ValueError(f"Unsupported config format: {path.suffix} (expected .yaml/.yml/.json)")

    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text) or {}


def load_search_config(path: str | Path) -> SearchConfig:
    """
    Load a SearchConfig and run the full pydantic validation: parameter
    rules, scoring weights and every cross-reference to parameter names.

    source_path is set so relative command paths resolve against the
    config's directory.
    """
    path = Path(path).expanduser().resolve()
    data = load_data(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level config must be a mapping, got {type(data).__name__}")

    cfg = SearchConfig.model_validate(data)
    cfg.source_path = path
    return cfg
