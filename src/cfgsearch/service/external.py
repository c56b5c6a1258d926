"""Command transport: score a configuration by running a local program.

Contract, per candidate work directory:

    <command...> --input input.json --output output.json [extra args]

input.json carries the run/candidate ids, the flattened parameters, the
sectioned configuration and free-form context. output.json must decode to a
ServiceResponse.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from cfgsearch.config.models import CommandServiceConfig
from cfgsearch.configuration import Configuration
from cfgsearch.layout import candidate_workdir

from .base import ScoringServiceError
from .io import read_output_json, write_input_json
from .models import ServiceResponse

logger = logging.getLogger(__name__)

TIMEOUT_RETURNCODE = 124


@dataclass(frozen=True)
class CommandRunResult:
    response: ServiceResponse
    returncode: int
    wall_time_s: float
    workdir: Path
    input_path: Path
    output_path: Path
    stdout_path: Path
    stderr_path: Path


def _merged_env(overrides: Optional[Mapping[str, str]]) -> Dict[str, str]:
    merged = dict(os.environ)
    for k, v in (overrides or {}).items():
        merged[str(k)] = str(v)
    return merged


def run_scoring_command(
    *,
    command: List[str],
    workdir: str | Path,
    run_id: str,
    candidate_id: str,
    config: Configuration,
    context: Optional[Dict[str, Any]] = None,
    timeout_s: int = 600,
    extra_args: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandRunResult:
    """
    Run one scoring command in `workdir` and decode its output.json.

    A timeout or a missing output.json yields an unsuccessful response; an
    unstartable command or an undecodable output.json raises
    ScoringServiceError.
    """
    if not isinstance(command, list) or not command:
        raise ValueError("command must be a non-empty list of strings")

    root = Path(workdir)
    root.mkdir(parents=True, exist_ok=True)
    paths = {
        "input": root / "input.json",
        "output": root / "output.json",
        "stdout": root / "stdout.txt",
        "stderr": root / "stderr.txt",
    }

    write_input_json(
        paths["input"],
        run_id=run_id,
        candidate_id=candidate_id,
        params=config.flatten(),
        config=config.to_dict(),
        context=context,
    )

    argv = [*command, "--input", paths["input"].name, "--output", paths["output"].name, *(extra_args or [])]

    def _result(response: ServiceResponse, returncode: int, started: float) -> CommandRunResult:
        return CommandRunResult(
            response=response,
            returncode=returncode,
            wall_time_s=time.monotonic() - started,
            workdir=root,
            input_path=paths["input"],
            output_path=paths["output"],
            stdout_path=paths["stdout"],
            stderr_path=paths["stderr"],
        )

    started = time.monotonic()
    try:
        with paths["stdout"].open("w", encoding="utf-8") as out, paths["stderr"].open("w", encoding="utf-8") as err:
            proc = subprocess.run(
                argv,
                cwd=root,
                env=_merged_env(env),
                stdout=out,
                stderr=err,
                timeout=timeout_s,
                check=False,
            )
    except subprocess.TimeoutExpired:
        logger.warning("%s: scoring command timed out after %ss", candidate_id, timeout_s)
        failed = ServiceResponse(success=False, error=f"Scoring command timed out after {timeout_s} seconds")
        return _result(failed, TIMEOUT_RETURNCODE, started)
    except OSError as exc:
        raise ScoringServiceError(f"could not start scoring command {argv[0]!r}: {exc}") from exc

    if not paths["output"].exists():
        missing = ServiceResponse(
            success=False,
            error=f"Scoring command did not produce output.json. Return code: {proc.returncode}",
        )
        return _result(missing, proc.returncode, started)

    try:
        response = read_output_json(paths["output"])
    except ValidationError as exc:
        raise ScoringServiceError(f"unreadable output.json for {candidate_id}: {exc}") from exc
    return _result(response, proc.returncode, started)


def resolve_command(command: List[str], base_dir: Optional[Path] = None) -> List[str]:
    """
    Substitute {python} with the running interpreter; relative tokens that
    name an existing file under base_dir become absolute paths.
    """
    resolved: List[str] = []
    for token in command:
        if token == "{python}":
            resolved.append(sys.executable)
            continue
        if base_dir is not None and not Path(token).is_absolute() and (base_dir / token).exists():
            token = str((base_dir / token).resolve())
        resolved.append(token)
    return resolved


class CommandScoringService:
    """Scores each candidate by running a local command in its own work directory."""

    def __init__(
        self,
        config: CommandServiceConfig,
        *,
        outdir: str | Path,
        run_id: str,
        context: Optional[Dict[str, Any]] = None,
        base_dir: Optional[Path] = None,
    ):
        self.config = config
        self.outdir = Path(outdir)
        self.run_id = run_id
        self.context = dict(context or {})
        self.command = resolve_command(list(config.command), base_dir)
        self.last_result: Optional[CommandRunResult] = None

    def evaluate(self, config: Configuration, *, candidate_id: str) -> ServiceResponse:
        run = run_scoring_command(
            command=self.command,
            workdir=candidate_workdir(self.outdir, self.run_id, candidate_id),
            run_id=self.run_id,
            candidate_id=candidate_id,
            config=config,
            context=self.context,
            timeout_s=self.config.timeout_s,
            extra_args=self.config.extra_args,
            env=self.config.env,
        )
        self.last_result = run
        if run.returncode != 0:
            logger.debug("Scoring command for %s exited with %d", candidate_id, run.returncode)
        return run.response
