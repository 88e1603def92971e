"""Settings and result models for eqlib."""

from .settings import SolverSettings, SolveResult, SolveStatus, SystemSettings

__all__ = [
    "SolverSettings",
    "SolveResult",
    "SolveStatus",
    "SystemSettings",
]
