from .annealing import SimulatedAnnealing
from .base import SearchPhase
from .correlated import CorrelatedPhase
from .latin_hypercube import LatinHypercubePhase
from .registry import make_phase, make_phases
from .session import NO_RESULT_SCORE, OptimizationResult, OptimizationState, Optimizer
from .starts import MultipleStartingPoints
from .sweep import DeepDive, SingleParameterSweep

__all__ = [
    "CorrelatedPhase",
    "DeepDive",
    "LatinHypercubePhase",
    "MultipleStartingPoints",
    "NO_RESULT_SCORE",
    "OptimizationResult",
    "OptimizationState",
    "Optimizer",
    "SearchPhase",
    "SimulatedAnnealing",
    "SingleParameterSweep",
    "make_phase",
    "make_phases",
]
