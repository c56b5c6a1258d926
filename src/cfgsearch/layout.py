from __future__ import annotations

from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def _norm(p: PathLike) -> Path:
    """Expand '~' and resolve to an absolute path."""
    return Path(p).expanduser().resolve()


def run_root(outdir: PathLike, run_id: str) -> Path:
    """
    Root directory for one chained search.

    Layout:
      <outdir>/runs/<run_id>/
    """
    return _norm(outdir) / "runs" / str(run_id)


def candidate_workdir(outdir: PathLike, run_id: str, candidate_id: str) -> Path:
    """
    Working directory for a command-transport evaluation.

    Layout:
      <outdir>/runs/<run_id>/<candidate_id>/
    """
    return run_root(outdir, run_id) / str(candidate_id)


def results_path(outdir: PathLike) -> Path:
    return _norm(outdir) / "results.jsonl"


def progress_path(outdir: PathLike, run_id: str) -> Path:
    return run_root(outdir, run_id) / "progress.jsonl"
