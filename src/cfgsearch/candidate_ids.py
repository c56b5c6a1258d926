"""Candidate identifier formatting.

Ids are fixed-width so that lexicographic order matches evaluation order
in logs, work directories and results files.
"""

from __future__ import annotations


def format_candidate_id(run_index: int, test_index: int) -> str:
    """Return the canonical candidate id.

    Args:
        run_index: One-based chain run number.
        test_index: Zero-based evaluation counter within the run.

    Returns:
        Candidate id string, e.g. ``r001_t000042``.
    """
    if run_index < 0:
        raise ValueError(f"run_index must be >= 0, got {run_index}")
    if test_index < 0:
        raise ValueError(f"test_index must be >= 0, got {test_index}")
    return f"r{run_index:03d}_t{test_index:06d}"
