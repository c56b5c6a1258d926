"""JSON Lines helpers for the results and progress files of a search.

Writers hold a sidecar ``<file>.lock`` so concurrent processes appending to
the same results file never interleave lines.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping

from filelock import FileLock


def jsonl_dumps(obj: Mapping[str, Any]) -> str:
    """One compact, key-sorted JSON line; unknown objects fall back to str()."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def append_jsonl_line(path: str | Path, record: Mapping[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    line = jsonl_dumps(record) + "\n"
    with FileLock(f"{p}.lock"):
        with p.open("a", encoding="utf-8", newline="\n") as f:
            f.write(line)


def iter_jsonl(path: str | Path) -> Iterable[dict[str, Any]]:
    """Yield records, skipping blank lines."""
    with Path(path).open("r", encoding="utf-8") as f:
        for raw in f:
            if raw.strip():
                yield json.loads(raw)
