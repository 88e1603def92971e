"""Solver diagnostics and analysis tools."""

import numpy as np
from typing import Any, Dict, List, Tuple

from .evaluator import Evaluator


class SolveDiagnostics:
    """Per-element residual analysis after a solve."""

    def __init__(self, nb_largest: int = 10):
        """Initialize diagnostics.

        Args:
            nb_largest: Number of largest residuals to report
        """
        self.nb_largest = nb_largest

    def compute_diagnostics(self, evaluator: Evaluator) -> Dict[str, Any]:
        """Compute diagnostics for the last assembly of ``evaluator``.

        Evaluators without element residuals (anything but a ``System``)
        produce empty diagnostics.

        Returns:
            Dictionary with "residuals", "largest_residuals" and "statistics"
        """
        element_residuals = getattr(evaluator, "element_residuals", None)

        if element_residuals is None:
            return {"residuals": {}, "largest_residuals": [], "statistics": {}}

        grouped = element_residuals()

        residuals = self._compute_per_element_residuals(grouped)

        all_residuals = np.concatenate([r for _, r in grouped]) if grouped else np.zeros(0)

        return {
            "residuals": residuals,
            "largest_residuals": self._find_largest_residuals(residuals),
            "statistics": self._compute_statistics(all_residuals),
        }

    def _compute_per_element_residuals(self, grouped) -> Dict[str, float]:
        per_element = {}

        for i, (element, residual) in enumerate(grouped):
            key = getattr(element, "name", "") or f"element_{i}"
            if key in per_element:
                key = f"{key}_{i}"
            rms = float(np.sqrt(np.mean(residual**2))) if len(residual) else 0.0
            per_element[key] = rms

        return per_element

    def _find_largest_residuals(self, residuals: Dict[str, float]) -> List[Tuple[str, float]]:
        ranked = sorted(residuals.items(), key=lambda item: item[1], reverse=True)
        return ranked[:self.nb_largest]

    def _compute_statistics(self, residuals: np.ndarray) -> Dict[str, float]:
        if len(residuals) == 0:
            return {}

        abs_residuals = np.abs(residuals)

        return {
            "rms": float(np.sqrt(np.mean(residuals**2))),
            "mean_abs": float(np.mean(abs_residuals)),
            "max_abs": float(np.max(abs_residuals)),
            "median_abs": float(np.median(abs_residuals)),
        }
