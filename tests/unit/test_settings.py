"""Tests for settings and result models."""

import math

import pytest
from pydantic import ValidationError

from eqlib.core.models.settings import SolverSettings, SolveResult, SolveStatus, SystemSettings


class TestSolverSettings:
    """Test solver configuration."""

    def test_defaults(self):
        """Test default values."""
        settings = SolverSettings()

        assert settings.max_iterations == 100
        assert settings.rtol == 1e-6
        assert settings.xtol == 1e-6
        assert settings.line_search == "more_thuente"
        assert not settings.parallel

    def test_invalid_line_search(self):
        """Test unknown line search names are rejected."""
        with pytest.raises(ValidationError):
            SolverSettings(line_search="wolfe")

    def test_invalid_tolerance(self):
        """Test non-positive tolerances are rejected."""
        with pytest.raises(ValidationError):
            SolverSettings(rtol=0.0)

    def test_damping_bounds(self):
        """Test inverted damping bounds are rejected."""
        with pytest.raises(ValidationError):
            SolverSettings(min_damping=1.0, max_damping=0.1)

    def test_damping_factors(self):
        """Test damping factors must shrink and grow."""
        with pytest.raises(ValidationError):
            SolverSettings(damping_increase=0.5)

        with pytest.raises(ValidationError):
            SolverSettings(damping_decrease=2.0)


class TestSystemSettings:
    """Test assembly configuration."""

    def test_defaults(self):
        """Test default values."""
        settings = SystemSettings()

        assert not settings.parallel
        assert settings.max_workers is None
        assert settings.index_map

    def test_invalid_workers(self):
        """Test worker count must be positive."""
        with pytest.raises(ValidationError):
            SystemSettings(max_workers=0)


class TestSolveResult:
    """Test result sanitizing."""

    def test_non_finite_values(self):
        """Test non-finite numbers are replaced."""
        result = SolveResult(
            success=False,
            status=SolveStatus.LINE_SEARCH_FAILED,
            iterations=3,
            final_cost=math.inf,
            gradient_norm=math.nan,
            convergence_reason="failed",
            computation_time=math.nan,
        )

        assert result.final_cost == 1e10
        assert result.gradient_norm == 1e10
        assert result.computation_time is None

    def test_serialization(self):
        """Test results serialize to plain data."""
        result = SolveResult(
            success=True,
            status=SolveStatus.GRADIENT_CONVERGED,
            iterations=2,
            final_cost=0.5,
            convergence_reason="ok",
            residuals={"a": 0.1},
            largest_residuals=[("a", 0.1)],
        )

        data = result.model_dump()

        assert data["status"] == SolveStatus.GRADIENT_CONVERGED
        assert data["residuals"] == {"a": 0.1}
        assert result.model_dump_json()
