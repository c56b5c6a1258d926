"""Progress events and the sinks that consume them."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from cfgsearch.output.jsonl import append_jsonl_line

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    kind: str  # "evaluation" | "phase" | "run"
    phase_label: str
    test_count: int
    failed_count: int
    rate_limit_failure_count: int
    current_best_score: Optional[float]
    current_best_metrics: Optional[Dict[str, Any]] = None
    run_index: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TelemetrySink(Protocol):
    def emit(self, event: ProgressEvent) -> None: ...


class NullTelemetry:
    def emit(self, event: ProgressEvent) -> None:
        return


class LoggingTelemetry:
    """Phase and run transitions at INFO, per-candidate events at DEBUG."""

    def emit(self, event: ProgressEvent) -> None:
        level = logging.DEBUG if event.kind == "evaluation" else logging.INFO
        best = "n/a" if event.current_best_score is None else f"{event.current_best_score:.2f}"
        logger.log(
            level,
            "[%s] %s tests=%d failed=%d rate_limited=%d best=%s",
            event.kind,
            event.phase_label,
            event.test_count,
            event.failed_count,
            event.rate_limit_failure_count,
            best,
        )


class JsonlTelemetry:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def emit(self, event: ProgressEvent) -> None:
        append_jsonl_line(self.path, event.to_dict())


class CompositeTelemetry:
    def __init__(self, sinks: List[TelemetrySink]):
        self.sinks = list(sinks)

    def emit(self, event: ProgressEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)
