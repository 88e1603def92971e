"""Solver and assembly settings and solve results."""

import math
from enum import Enum
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class SystemSettings(BaseModel):
    """Assembly configuration settings."""

    parallel: bool = Field(default=False, description="Assemble element partitions in worker threads")
    max_workers: Optional[int] = Field(default=None, gt=0, description="Number of worker threads")
    index_map: bool = Field(default=True, description="Materialize per-line lookup maps")


class SolverSettings(BaseModel):
    """Solver configuration settings."""

    max_iterations: int = Field(default=100, ge=0, description="Maximum solver iterations")
    rtol: float = Field(default=1e-6, gt=0, description="Relative gradient tolerance")
    xtol: float = Field(default=1e-6, gt=0, description="Relative step tolerance")
    line_search: Literal["more_thuente", "armijo", "none"] = Field(
        default="more_thuente",
        description="Step length selection"
    )
    damping: float = Field(default=1e-3, ge=0, description="Initial Levenberg-Marquardt damping")
    damping_increase: float = Field(default=10.0, gt=1, description="Damping factor after a failed step")
    damping_decrease: float = Field(default=0.1, gt=0, lt=1, description="Damping factor after a successful step")
    min_damping: float = Field(default=1e-12, ge=0, description="Lower bound for the damping")
    max_damping: float = Field(default=1e12, gt=0, description="Upper bound for the damping")
    parallel: bool = Field(default=False, description="Request parallel assembly from the evaluator")

    @model_validator(mode="after")
    def validate_damping_bounds(self):
        """Ensure damping bounds are ordered."""
        if self.min_damping > self.max_damping:
            raise ValueError("min_damping must not exceed max_damping")
        return self


class SolveStatus(str, Enum):
    """Reasons for the outer iteration to stop."""

    GRADIENT_CONVERGED = "gradient_converged"
    STEP_CONVERGED = "step_converged"
    MAX_ITERATIONS = "max_iterations"
    LINE_SEARCH_FAILED = "line_search_failed"
    NO_DOFS = "no_dofs"


class SolveResult(BaseModel):
    """Results from optimization solve."""

    success: bool = Field(description="Whether solve succeeded")
    status: SolveStatus = Field(description="Termination status")
    iterations: int = Field(description="Number of iterations performed")
    final_cost: float = Field(description="Final objective value")
    gradient_norm: float = Field(default=0.0, description="Gradient norm at the final iterate")
    convergence_reason: str = Field(description="Reason for convergence/termination")
    residuals: Dict[str, float] = Field(
        default_factory=dict,
        description="Per-element residual magnitudes"
    )
    largest_residuals: List[tuple[str, float]] = Field(
        default_factory=list,
        description="Largest residuals by element"
    )
    computation_time: Optional[float] = Field(
        default=None,
        description="Solve time in seconds"
    )

    @field_validator('final_cost', 'gradient_norm')
    @classmethod
    def validate_finite(cls, v):
        """Ensure costs are JSON serializable."""
        if math.isinf(v) or math.isnan(v):
            return 1e10
        return v

    @field_validator('computation_time')
    @classmethod
    def validate_computation_time(cls, v):
        """Ensure computation_time is JSON serializable."""
        if v is not None and (math.isinf(v) or math.isnan(v)):
            return None
        return v
