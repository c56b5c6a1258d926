from __future__ import annotations

from pathlib import Path
from typing import Optional

from cfgsearch.config.models import SearchConfig

from .base import ScoringService, ScoringServiceError
from .external import CommandRunResult, CommandScoringService, run_scoring_command
from .http import HttpScoringService
from .models import EvaluationMetrics, ServiceResponse


def make_service(cfg: SearchConfig, *, outdir: str | Path, run_id: str) -> ScoringService:
    svc = cfg.service
    if svc.kind == "http":
        assert svc.http is not None
        return HttpScoringService(svc.http)
    if svc.kind == "command":
        assert svc.command is not None
        base_dir: Optional[Path] = cfg.source_path.parent if cfg.source_path is not None else None
        return CommandScoringService(
            svc.command,
            outdir=outdir,
            run_id=run_id,
            context=cfg.context,
            base_dir=base_dir,
        )
    raise ValueError(f"Unknown service kind: {svc.kind}")


__all__ = [
    "CommandRunResult",
    "CommandScoringService",
    "EvaluationMetrics",
    "HttpScoringService",
    "ScoringService",
    "ScoringServiceError",
    "ServiceResponse",
    "make_service",
    "run_scoring_command",
]
