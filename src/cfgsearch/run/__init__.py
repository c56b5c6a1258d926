from .chain import ChainResult, ChainRunner, RunSummary
from .local import build_context, build_evaluator, run_chain_search

__all__ = [
    "ChainResult",
    "ChainRunner",
    "RunSummary",
    "build_context",
    "build_evaluator",
    "run_chain_search",
]
