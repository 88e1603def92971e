"""Assembly of element contributions into global sparse storage."""

from .element import Dof, Element, FunctionElement, LinearElement, Parameter
from .problem_data import ProblemData
from .system import System

__all__ = [
    "Dof",
    "Element",
    "FunctionElement",
    "LinearElement",
    "Parameter",
    "ProblemData",
    "System",
]
