"""Interface between the nonlinear solver and the assembled system."""

import numpy as np
from abc import ABC, abstractmethod
from scipy.sparse import spmatrix


class Evaluator(ABC):
    """Evaluates an objective and its derivatives at a point ``x``."""

    @abstractmethod
    def nb_dofs(self) -> int:
        """Get length of the unknown vector."""
        pass

    @abstractmethod
    def x(self) -> np.ndarray:
        """Get a copy of the current evaluation point."""
        pass

    @abstractmethod
    def set_x(self, x: np.ndarray) -> None:
        """Move the evaluation point to ``x``."""
        pass

    @abstractmethod
    def assemble(self, order: int, parallel: bool = False) -> None:
        """Recompute results at the current point.

        Args:
            order: 0 for the value, 1 adds the gradient, 2 adds the Hessian
            parallel: Allow parallel evaluation
        """
        pass

    @abstractmethod
    def f(self) -> float:
        """Objective value of the last assembly."""
        pass

    @abstractmethod
    def g(self) -> np.ndarray:
        """Gradient of the last assembly with order >= 1."""
        pass

    @abstractmethod
    def h(self) -> spmatrix:
        """Symmetric Hessian of the last assembly with order 2."""
        pass
