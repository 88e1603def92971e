"""eqlib - Sparse assembly and nonlinear least-squares minimization.

Elements contribute dense local residual blocks that are scattered into a
shared sparse system and minimized with a Levenberg-Marquardt solver.
"""

__version__ = "0.1.0"

# Sparse patterns
from .core.sparse.structure import NOT_FOUND, InvalidStructureError, SparseStructure

# Assembly
from .core.assembly.problem_data import ProblemData
from .core.assembly.element import Dof, Element, FunctionElement, LinearElement, Parameter
from .core.assembly.system import System

# Solver
from .core.models.settings import SolverSettings, SolveResult, SolveStatus, SystemSettings
from .core.solver.line_search import ArmijoLineSearch
from .core.solver.more_thuente import MoreThuenteLineSearch, TerminationCode
from .core.solver.levenberg_marquardt import LevenbergMarquardt

__all__ = [
    # Version
    "__version__",
    # Sparse
    "NOT_FOUND",
    "InvalidStructureError",
    "SparseStructure",
    # Assembly
    "ProblemData",
    "Dof",
    "Element",
    "FunctionElement",
    "LinearElement",
    "Parameter",
    "System",
    # Solver
    "SolverSettings",
    "SolveResult",
    "SolveStatus",
    "SystemSettings",
    "ArmijoLineSearch",
    "MoreThuenteLineSearch",
    "TerminationCode",
    "LevenbergMarquardt",
]
