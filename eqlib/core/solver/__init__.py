"""Nonlinear minimization and line searches."""

from .evaluator import Evaluator
from .line_search import ArmijoLineSearch, LineSearchResult
from .more_thuente import (
    BracketState,
    LineSearchParameters,
    MoreThuenteLineSearch,
    TerminationCode,
    TrialObservation,
)
from .levenberg_marquardt import LevenbergMarquardt
from .diagnostics import SolveDiagnostics

__all__ = [
    "Evaluator",
    "ArmijoLineSearch",
    "LineSearchResult",
    "BracketState",
    "LineSearchParameters",
    "MoreThuenteLineSearch",
    "TerminationCode",
    "TrialObservation",
    "LevenbergMarquardt",
    "SolveDiagnostics",
]
