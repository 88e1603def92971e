"""Backtracking line search with the Armijo sufficient-decrease condition."""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class LineSearchResult:
    """Outcome of a line search."""

    step: float
    f: float
    nfev: int
    success: bool
    message: str = ""
    code: Optional[int] = None


class ArmijoLineSearch:
    """Shrink the step by ``rho`` until ``f(a) <= f0 + c * a * dg0`` holds."""

    def __init__(
        self,
        c: float = 0.2,
        rho: float = 0.9,
        max_iterations: int = 200,
        min_step: float = 1e-12,
    ):
        """Initialize line search.

        Args:
            c: Sufficient decrease constant
            rho: Contraction factor
            max_iterations: Maximum number of contractions
            min_step: Smallest step that is tried
        """
        if not 0.0 < c < 1.0:
            raise ValueError(f"Sufficient decrease constant must be in (0, 1), got {c}")
        if not 0.0 < rho < 1.0:
            raise ValueError(f"Contraction factor must be in (0, 1), got {rho}")

        self.c = c
        self.rho = rho
        self.max_iterations = max_iterations
        self.min_step = min_step
        self.logger = logging.getLogger(__name__)

    def search(
        self,
        phi: Callable[[float], float],
        f0: float,
        dg0: float,
        step: float = 1.0,
    ) -> LineSearchResult:
        """Search along a direction.

        Args:
            phi: Objective value at step length ``a``
            f0: Objective value at step 0
            dg0: Directional derivative at step 0
            step: Initial trial step

        Returns:
            Line search result with the accepted step
        """
        cache = self.c * dg0

        f = phi(step)
        nfev = 1

        for _ in range(self.max_iterations):
            if math.isfinite(f) and f <= f0 + step * cache:
                return LineSearchResult(step=step, f=f, nfev=nfev, success=True,
                                        message="Sufficient decrease")

            if step * self.rho < self.min_step:
                break

            step *= self.rho
            f = phi(step)
            nfev += 1

        accepted = math.isfinite(f) and f <= f0 + step * cache

        if not accepted:
            self.logger.warning(f"Armijo line search failed after {nfev} evaluations (step={step:.3e})")

        return LineSearchResult(
            step=step,
            f=f,
            nfev=nfev,
            success=accepted,
            message="Sufficient decrease" if accepted else "No sufficient decrease",
        )
