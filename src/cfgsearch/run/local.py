from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from cfgsearch.cache import ResultCache
from cfgsearch.clock import Clock
from cfgsearch.config import SearchConfig
from cfgsearch.configuration import Configuration, ParameterRegistry
from cfgsearch.context import SearchContext
from cfgsearch.evaluation import Evaluator, HistoryEntry
from cfgsearch.layout import progress_path, results_path, run_root
from cfgsearch.optimizer import Optimizer
from cfgsearch.output.jsonl import append_jsonl_line
from cfgsearch.scoring import ScoringEngine
from cfgsearch.service import ScoringService, make_service
from cfgsearch.telemetry import CompositeTelemetry, JsonlTelemetry, LoggingTelemetry

from .chain import ChainResult, ChainRunner

logger = logging.getLogger(__name__)


def _default_run_id() -> str:
    return str(uuid.uuid4())


def build_context(
    cfg: SearchConfig,
    *,
    outdir: str | Path,
    run_id: str,
    clock: Optional[Clock] = None,
) -> SearchContext:
    """Context whose telemetry goes to the log and to runs/<run_id>/progress.jsonl."""
    telemetry = CompositeTelemetry([LoggingTelemetry(), JsonlTelemetry(progress_path(outdir, run_id))])
    return SearchContext.create(cfg.rate_limit, clock=clock, telemetry=telemetry)


def build_evaluator(
    cfg: SearchConfig,
    *,
    service: ScoringService,
    context: SearchContext,
    recorder=None,
) -> Evaluator:
    return Evaluator(
        service,
        registry=ParameterRegistry.from_config(cfg),
        scoring=ScoringEngine.from_config(cfg.scoring),
        context=context,
        cache=ResultCache(cfg.cache.capacity),
        retry=cfg.retry,
        recorder=recorder,
    )


def run_chain_search(
    cfg: SearchConfig,
    *,
    outdir: str | Path = "results",
    run_id: Optional[str] = None,
    run_count: Optional[int] = None,
    minutes_per_run: Optional[float] = None,
    initial_config: Optional[Configuration] = None,
    context: Optional[SearchContext] = None,
    service: Optional[ScoringService] = None,
) -> ChainResult:
    """
    Run a chained search and write its outputs.

    Outputs:
      <outdir>/results.jsonl
      <outdir>/summary.json
      <outdir>/runs/<run_id>/{results.jsonl,progress.jsonl,summary.json}
    """
    outdir = Path(outdir).expanduser().resolve()
    run_id_val = run_id or _default_run_id()
    root = run_root(outdir, run_id_val)

    outdir.mkdir(parents=True, exist_ok=True)
    root.mkdir(parents=True, exist_ok=True)

    search_results_path = results_path(outdir)
    run_results_path = root / "results.jsonl"

    ctx = context or build_context(cfg, outdir=outdir, run_id=run_id_val)
    svc = service or make_service(cfg, outdir=outdir, run_id=run_id_val)

    def record(entry: HistoryEntry) -> None:
        row = {"search_id": cfg.id, "run_id": run_id_val, **entry.to_record()}
        append_jsonl_line(run_results_path, row)
        append_jsonl_line(search_results_path, row)

    evaluator = build_evaluator(cfg, service=svc, context=ctx, recorder=record)
    registry = evaluator.registry
    baseline = Configuration.from_mapping(cfg.baseline)

    def make_optimizer(seed_config: Optional[Configuration], run_index: int) -> Optimizer:
        return Optimizer(evaluator, registry, ctx, cfg.search, baseline=baseline, run_index=run_index)

    runner = ChainRunner(
        make_optimizer,
        ctx,
        target_score=cfg.search.target_score,
        initial_config=initial_config,
    )
    result = runner.run(
        run_count if run_count is not None else cfg.chain.run_count,
        minutes_per_run if minutes_per_run is not None else cfg.chain.minutes_per_run,
    )

    summary: Dict[str, Any] = {
        "search_id": cfg.id,
        "run_id": run_id_val,
        "chain": result.to_dict(),
        "rate_limiter": ctx.rate_limiter.stats(),
        "results_file": str(search_results_path),
        "run_results_file": str(run_results_path),
        "run_root": str(root),
        "outdir": str(outdir),
    }

    (root / "summary.json").write_text(json.dumps(summary, indent=2, sort_keys=True), encoding="utf-8")
    (outdir / "summary.json").write_text(json.dumps(summary, indent=2, sort_keys=True), encoding="utf-8")

    logger.info(
        "Chain finished: best=%.3f over %d tests (%d ok / %d failed runs)",
        result.global_best_score,
        result.total_tests,
        result.successful_runs,
        result.failed_runs,
    )
    return result
