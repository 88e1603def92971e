"""Levenberg-Marquardt minimizer with line search."""

import logging
import time
import warnings
import numpy as np
from typing import Any, Dict, List, Optional, Tuple
from scipy.sparse import identity, spmatrix
from scipy.sparse.linalg import MatrixRankWarning, spsolve

from ..models.settings import SolverSettings, SolveResult, SolveStatus
from .diagnostics import SolveDiagnostics
from .evaluator import Evaluator
from .line_search import ArmijoLineSearch, LineSearchResult
from .more_thuente import MoreThuenteLineSearch


_REASONS = {
    SolveStatus.GRADIENT_CONVERGED: "Converged: gradient tolerance satisfied",
    SolveStatus.STEP_CONVERGED: "Converged: step tolerance satisfied",
    SolveStatus.MAX_ITERATIONS: "Failed: maximum number of iterations reached",
    SolveStatus.LINE_SEARCH_FAILED: "Failed: no decrease along the damped search direction",
    SolveStatus.NO_DOFS: "No free variables",
}


class LevenbergMarquardt:
    """Minimize the objective of an evaluator.

    Every iteration solves ``(H + damping * I) s = -g`` for the search
    direction and selects the step length with the configured line search.
    The damping is lowered after a successful step and raised otherwise.
    """

    def __init__(self, system: Evaluator, settings: Optional[SolverSettings] = None):
        """Initialize solver.

        Args:
            system: Evaluator providing objective, gradient and Hessian
            settings: Solver settings
        """
        self.system = system
        self.settings = settings or SolverSettings()
        self.logger = logging.getLogger(__name__)
        self.diagnostics = SolveDiagnostics()

        self.armijo = ArmijoLineSearch()
        self.more_thuente = MoreThuenteLineSearch()

        self.iteration_count = 0
        self.cost_history: List[float] = []

    def minimize(
        self,
        maxiter: Optional[int] = None,
        rtol: Optional[float] = None,
        xtol: Optional[float] = None,
    ) -> SolveResult:
        """Minimize starting from the current point of the system.

        Args:
            maxiter: Maximum number of iterations (settings default if None)
            rtol: Gradient tolerance relative to the initial gradient norm
            xtol: Step tolerance relative to the norm of x

        Returns:
            Solve result; the system is left at the best point found
        """
        maxiter = self.settings.max_iterations if maxiter is None else maxiter
        rtol = self.settings.rtol if rtol is None else rtol
        xtol = self.settings.xtol if xtol is None else xtol
        parallel = self.settings.parallel

        self.logger.info("==> Minimizing nonlinear system...")
        self.logger.debug(f"Using LM minimizer with {self.settings.line_search} line search")

        start_time = time.time()
        self.iteration_count = 0
        self.cost_history = []

        system = self.system

        if system.nb_dofs() == 0:
            system.assemble(0, parallel)
            return SolveResult(
                success=True,
                status=SolveStatus.NO_DOFS,
                iterations=0,
                final_cost=system.f(),
                convergence_reason=_REASONS[SolveStatus.NO_DOFS],
                computation_time=time.time() - start_time,
            )

        x = system.x()
        system.assemble(2, parallel)

        f = system.f()
        g = system.g()
        H = system.h()
        dirty = False

        self.cost_history.append(f)

        gtol = rtol * max(1.0, float(np.linalg.norm(g)))
        damping = self.settings.damping
        status = SolveStatus.MAX_ITERATIONS

        for iteration in range(maxiter):
            if np.linalg.norm(g) <= gtol:
                status = SolveStatus.GRADIENT_CONVERGED
                break

            direction, damping = self._search_direction(H, g, damping)
            dg0 = float(g @ direction)

            result = self._line_search(x, direction, f, dg0, parallel)
            self.iteration_count += 1
            dirty = True

            if not (np.isfinite(result.f) and result.f < f):
                damping = self._increase(damping)

                self.logger.debug(
                    f"Iteration {iteration}: rejected step, damping raised to {damping:.3e}"
                )

                if damping >= self.settings.max_damping:
                    status = SolveStatus.LINE_SEARCH_FAILED
                    break

                continue

            step = result.step * direction
            x = x + step
            damping = max(damping * self.settings.damping_decrease, self.settings.min_damping)

            system.set_x(x)
            system.assemble(2, parallel)
            dirty = False

            f = system.f()
            g = system.g()
            H = system.h()

            self.cost_history.append(f)

            self.logger.debug(
                f"Iteration {iteration}: f={f:.6e}, |g|={np.linalg.norm(g):.3e}, "
                f"step={result.step:.3e}, damping={damping:.3e}"
            )

            if np.linalg.norm(step) <= xtol * (np.linalg.norm(x) + xtol):
                status = SolveStatus.STEP_CONVERGED
                break
        else:
            if np.linalg.norm(g) <= gtol:
                status = SolveStatus.GRADIENT_CONVERGED

        if dirty:
            system.set_x(x)
            system.assemble(2, parallel)

        update_dof_residuals = getattr(system, "update_dof_residuals", None)

        if update_dof_residuals is not None:
            update_dof_residuals()

        if status in (SolveStatus.MAX_ITERATIONS, SolveStatus.LINE_SEARCH_FAILED):
            self.logger.warning(f"Minimization stopped: {_REASONS[status]}")

        diagnostics = self.diagnostics.compute_diagnostics(system)
        elapsed = time.time() - start_time

        self.logger.info(f"System minimized in {elapsed:.3f} sec")

        return SolveResult(
            success=status in (SolveStatus.GRADIENT_CONVERGED, SolveStatus.STEP_CONVERGED),
            status=status,
            iterations=self.iteration_count,
            final_cost=f,
            gradient_norm=float(np.linalg.norm(g)),
            convergence_reason=_REASONS[status],
            residuals=diagnostics["residuals"],
            largest_residuals=diagnostics["largest_residuals"],
            computation_time=elapsed,
        )

    def _increase(self, damping: float) -> float:
        damping = max(
            damping * self.settings.damping_increase,
            self.settings.min_damping,
            np.finfo(float).eps,
        )
        return min(damping, self.settings.max_damping)

    def _search_direction(self, H: spmatrix, g: np.ndarray, damping: float) -> Tuple[np.ndarray, float]:
        """Solve the damped system, raising the damping until the step descends."""
        eye = identity(len(g), format="csc")

        while True:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", MatrixRankWarning)
                direction = np.atleast_1d(spsolve((H + damping * eye).tocsc(), -g))

            if np.all(np.isfinite(direction)) and g @ direction < 0.0:
                return direction, damping

            if damping >= self.settings.max_damping:
                self.logger.warning("Damped system gives no descent direction, using steepest descent")
                return -g, damping

            damping = self._increase(damping)

    def _line_search(
        self, x: np.ndarray, direction: np.ndarray, f0: float, dg0: float, parallel: bool
    ) -> LineSearchResult:
        system = self.system

        def value(alpha: float) -> float:
            system.set_x(x + alpha * direction)
            system.assemble(0, parallel)
            return system.f()

        def value_and_slope(alpha: float) -> Tuple[float, float]:
            system.set_x(x + alpha * direction)
            system.assemble(1, parallel)
            return system.f(), float(system.g() @ direction)

        if self.settings.line_search == "more_thuente":
            return self.more_thuente.search(value_and_slope, f0, dg0)

        if self.settings.line_search == "armijo":
            return self.armijo.search(value, f0, dg0)

        f = value(1.0)
        return LineSearchResult(step=1.0, f=f, nfev=1, success=bool(f < f0), message="Full step")

    def analyze_convergence(self) -> Dict[str, Any]:
        """Analyze convergence properties of the last solve.

        Returns:
            Dictionary with convergence analysis
        """
        if not self.cost_history:
            return {"error": "No solve history available"}

        costs = np.array(self.cost_history)

        analysis = {
            "initial_cost": float(costs[0]),
            "final_cost": float(costs[-1]),
            "cost_reduction": float(costs[0] - costs[-1]),
            "relative_cost_reduction": float((costs[0] - costs[-1]) / (abs(costs[0]) + 1e-12)),
            "iterations": len(costs) - 1,
            "cost_history": costs.tolist(),
        }

        if len(costs) > 2:
            cost_reductions = -np.diff(costs)
            analysis["mean_cost_reduction_per_iter"] = float(np.mean(cost_reductions))
            analysis["convergence_stagnant"] = bool(cost_reductions[-1] < 1e-12)

        return analysis
