"""input.json / output.json files of the command transport."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .models import ServiceResponse


def write_input_json(
    path: str | Path,
    *,
    run_id: str,
    candidate_id: str,
    params: Mapping[str, Any],
    config: Mapping[str, Mapping[str, Any]],
    context: Optional[Mapping[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "run_id": run_id,
        "candidate_id": candidate_id,
        "params": dict(params),
        "config": {section: dict(values) for section, values in config.items()},
        "context": dict(context or {}),
    }
    Path(path).write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def read_output_json(path: str | Path) -> ServiceResponse:
    """Decode output.json; malformed JSON or fields raise pydantic.ValidationError."""
    return ServiceResponse.model_validate_json(Path(path).read_text(encoding="utf-8"))
