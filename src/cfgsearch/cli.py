# src/cfgsearch/cli.py
from __future__ import annotations

import json
import os
import signal
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import typer
from pydantic import ValidationError

from cfgsearch.config import SearchConfig, load_data, load_search_config
from cfgsearch.configuration import Configuration, ParameterRegistry, canonical_key
from cfgsearch.context import SearchContext
from cfgsearch.evaluation import Success
from cfgsearch.layout import run_root
from cfgsearch.logging_config import setup_logging
from cfgsearch.output.jsonl import iter_jsonl
from cfgsearch.run import build_context, build_evaluator, run_chain_search
from cfgsearch.service import make_service

app = typer.Typer(help="Rate-limited configuration search (cfgsearch)")

ENV_OUTDIR = "CFGSEARCH_OUTDIR"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _default_run_id() -> str:
    return str(uuid.uuid4())


def _resolve_results_dir(config: Path, outdir: Path | None) -> Path:
    """
    Resolution order:
      1) explicit --outdir
      2) env var CFGSEARCH_OUTDIR
      3) <config_dir>/results
    """
    if outdir is not None:
        return outdir.expanduser().resolve()

    env = os.environ.get(ENV_OUTDIR)
    if env:
        return Path(env).expanduser().resolve()

    return config.expanduser().resolve().parent / "results"


def _load_config(config: Path) -> SearchConfig:
    try:
        return load_search_config(config)
    except (ValidationError, ValueError) as exc:
        raise typer.BadParameter(f"{config}: {exc}") from exc


def _parse_value(v: str) -> Any:
    if v.lower() in {"true", "false"}:
        return v.lower() == "true"
    if v.lower() in {"none", "null", ""}:
        return None
    try:
        return int(v)
    except ValueError:
        pass
    try:
        return float(v)
    except ValueError:
        pass
    raise typer.BadParameter(f"Value {v!r} is not a number, boolean or none.")


def _parse_kv_params(items: list[str], registry: ParameterRegistry) -> list[tuple[str, str, Any]]:
    """Parse NAME=VALUE or SECTION.NAME=VALUE into (section, name, value) updates."""
    out: list[tuple[str, str, Any]] = []
    for item in items:
        if "=" not in item:
            raise typer.BadParameter(f"Invalid --param '{item}'. Use NAME=VALUE or SECTION.NAME=VALUE.")
        k, v = item.split("=", 1)
        k = k.strip()
        if "." in k:
            section, name = k.split(".", 1)
        elif k in registry:
            section, name = registry.section_of(k), k
        else:
            raise typer.BadParameter(f"Unknown parameter '{k}'; prefix it with its section.")
        out.append((section, name, _parse_value(v.strip())))
    return out


def _load_configuration(path: Path) -> Configuration:
    data = load_data(path.expanduser().resolve())
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a mapping of sections.")
    try:
        return Configuration.from_mapping(data)
    except TypeError as exc:
        raise typer.BadParameter(f"{path}: {exc}") from exc


def _pick_best(records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    good: list[dict[str, Any]] = []
    for r in records:
        if (r or {}).get("kind") != "success" or r.get("cached"):
            continue
        score = r.get("score")
        if score is None:
            continue
        try:
            float(score)
        except (TypeError, ValueError):
            continue
        good.append(r)
    good.sort(key=lambda x: float(x["score"]), reverse=True)
    return good


@contextmanager
def _cancel_on_sigint(ctx: SearchContext) -> Iterator[None]:
    """First Ctrl-C sets the cancellation flag so partial results are still written."""

    def _handler(signum, frame):
        typer.echo("Cancelling... (finishing current candidate)", err=True)
        ctx.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------
@app.command("run")
def run_cmd(
    config: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Path to search config (YAML/JSON).",
    ),
    outdir: Path | None = typer.Option(
        None,
        "--outdir",
        "-o",
        help=(
            "Results directory. Resolution order: "
            "explicit --outdir, else $CFGSEARCH_OUTDIR, else <config_dir>/results."
        ),
    ),
    run_id: str | None = typer.Option(None, "--run-id", help="Optional run id (defaults to a UUID)."),
    runs: int | None = typer.Option(None, "--runs", min=1, help="Override chain.run_count."),
    minutes: float | None = typer.Option(None, "--minutes", min=0.01, help="Override chain.minutes_per_run."),
    initial_config: Path | None = typer.Option(
        None, "--initial-config", exists=True, dir_okay=False, help="Seed configuration for the first run."
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
):
    """
    Run a chained search.

    Outputs:
      <outdir>/results.jsonl
      <outdir>/summary.json
      <outdir>/runs/<run_id>/...
    """
    setup_logging(log_level)
    config_abs = config.expanduser().resolve()
    results_dir = _resolve_results_dir(config_abs, outdir)
    cfg = _load_config(config_abs)
    run_id_val = run_id or _default_run_id()

    seed = _load_configuration(initial_config) if initial_config is not None else None

    ctx = build_context(cfg, outdir=results_dir, run_id=run_id_val)
    with _cancel_on_sigint(ctx):
        result = run_chain_search(
            cfg,
            outdir=results_dir,
            run_id=run_id_val,
            run_count=runs,
            minutes_per_run=minutes,
            initial_config=seed,
            context=ctx,
        )

    typer.echo(f"Results: {results_dir / 'results.jsonl'}")
    typer.echo(f"Summary: {results_dir / 'summary.json'}")
    typer.echo(f"Best score: {result.global_best_score:.3f}  (tests: {result.total_tests})")
    if result.global_best_config is not None:
        typer.echo(json.dumps(result.global_best_config.to_dict(), indent=2, sort_keys=True))
    if result.cancelled:
        typer.echo("Search was cancelled; results are partial.")


@app.command("info")
def info():
    typer.echo("cfgsearch is installed and commands are registered correctly.")


@app.command("evaluate")
def evaluate_cmd(
    config: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Path to search config (YAML/JSON).",
    ),
    outdir: Path | None = typer.Option(
        None,
        "--outdir",
        "-o",
        help=(
            "Results directory. Resolution order: "
            "explicit --outdir, else $CFGSEARCH_OUTDIR, else <config_dir>/results."
        ),
    ),
    run_id: str = typer.Option("manual", "--run-id", help="Run id used to build the workdir path."),
    param: list[str] = typer.Option([], "--param", "-p", help="Override as [SECTION.]NAME=VALUE (repeatable)."),
    params_file: Path | None = typer.Option(
        None, "--params-file", help="JSON/YAML configuration applied on top of the baseline."
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
):
    """
    Evaluate a single configuration through the limiter and scorer (useful for debugging services).
    """
    setup_logging(log_level)
    config_abs = config.expanduser().resolve()
    results_dir = _resolve_results_dir(config_abs, outdir)
    cfg = _load_config(config_abs)
    registry = ParameterRegistry.from_config(cfg)

    candidate = Configuration.from_mapping(cfg.baseline)
    if params_file is not None:
        overrides = _load_configuration(params_file)
        candidate = candidate.with_values(
            (section, name, value) for section, params in overrides.items() for name, value in params.items()
        )
    candidate = candidate.with_values(_parse_kv_params(param, registry))

    ctx = build_context(cfg, outdir=results_dir, run_id=run_id)
    evaluator = build_evaluator(cfg, service=make_service(cfg, outdir=results_dir, run_id=run_id), context=ctx)
    with _cancel_on_sigint(ctx):
        result = evaluator.evaluate(candidate, "manual", phase="manual")

    entry = evaluator.last_entry
    typer.echo(f"Candidate: {entry.candidate_id if entry else '-'}")
    typer.echo(f"Outcome: {result.kind}")
    if isinstance(result, Success):
        typer.echo(f"Score:   {result.score:.3f}{'  (rejected: ' + str(result.reason) + ')' if result.rejected else ''}")
        typer.echo(f"Metrics: {result.metrics.to_dict()}")
    elif entry is not None:
        typer.echo(f"Error:   {entry.to_record()['error']}")


@app.command("best")
def best_cmd(
    results_dir: Path = typer.Argument(..., exists=True, file_okay=False, readable=True, help="Results dir (<outdir>)."),
    top: int = typer.Option(1, "--top", "-n", min=1, help="Show top N candidates."),
    run_id: str | None = typer.Option(None, "--run-id", help="If set, read runs/<run_id>/results.jsonl instead of <outdir>/results.jsonl."),
):
    """
    Show the best-scoring candidate(s).
    """
    if run_id is not None:
        path = run_root(results_dir, run_id) / "results.jsonl"
    else:
        path = results_dir.expanduser().resolve() / "results.jsonl"

    if not path.exists():
        raise typer.BadParameter(f"No results file found: {path}")

    best = _pick_best(iter_jsonl(path))
    if not best:
        typer.echo("No successful candidates found.")
        raise typer.Exit(code=1)

    for r in best[:top]:
        typer.echo(f"{r.get('candidate_id')}  score={float(r['score']):.3f}  phase={r.get('phase')}  {r.get('label')}")
        typer.echo(json.dumps(r.get("config", {}), sort_keys=True))


@app.command("key")
def key_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Configuration file (YAML/JSON)."),
):
    """
    Print the canonical cache key of a configuration file.
    """
    typer.echo(canonical_key(_load_configuration(path)))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
