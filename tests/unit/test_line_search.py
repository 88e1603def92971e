"""Tests for backtracking line search."""

import pytest

from eqlib.core.solver.line_search import ArmijoLineSearch


def quadratic_along(x0, direction):
    """Restriction of f(x) = x^2 to the ray x0 + a * direction."""
    return lambda a: (x0 + a * direction) ** 2


class TestArmijoLineSearch:
    """Test Armijo backtracking."""

    def test_descent_step(self):
        """Test sufficient decrease along the negative gradient of x^2."""
        x0 = 2.0
        direction = -2.0 * x0
        f0 = x0 ** 2
        dg0 = 2.0 * x0 * direction

        result = ArmijoLineSearch().search(quadratic_along(x0, direction), f0, dg0)

        assert result.success
        assert result.f < f0
        assert result.f <= f0 + 0.2 * result.step * dg0
        assert result.step == pytest.approx(0.9 ** 3)
        assert result.nfev == 4

    def test_full_step_accepted(self):
        """Test the initial step is kept when it satisfies the condition."""
        x0 = 2.0
        direction = -x0
        dg0 = 2.0 * x0 * direction

        result = ArmijoLineSearch().search(quadratic_along(x0, direction), x0 ** 2, dg0)

        assert result.success
        assert result.step == 1.0
        assert result.f == 0.0
        assert result.nfev == 1

    def test_ascent_direction_fails(self):
        """Test failure when no step decreases the function."""
        x0 = 2.0
        direction = 2.0 * x0
        dg0 = 2.0 * x0 * direction

        search = ArmijoLineSearch(max_iterations=50)
        result = search.search(quadratic_along(x0, direction), x0 ** 2, dg0)

        assert not result.success
        assert result.nfev == 51

    def test_min_step_guard(self):
        """Test contraction stops at the minimum step."""
        calls = []

        def phi(a):
            calls.append(a)
            return 1.0

        result = ArmijoLineSearch(rho=0.5, min_step=0.1).search(phi, 0.0, -1.0)

        assert not result.success
        assert min(calls) >= 0.1
        assert result.step == pytest.approx(0.125)

    def test_non_finite_values_rejected(self):
        """Test non-finite trial values are never accepted."""
        def phi(a):
            return float("nan") if a > 0.5 else (1.0 - a) ** 2

        result = ArmijoLineSearch(rho=0.5).search(phi, 1.0, -2.0)

        assert result.success
        assert result.step == 0.5

    @pytest.mark.parametrize("c,rho", [(0.0, 0.5), (1.0, 0.5), (0.2, 0.0), (0.2, 1.5)])
    def test_invalid_constants(self, c, rho):
        """Test error for constants outside (0, 1)."""
        with pytest.raises(ValueError):
            ArmijoLineSearch(c=c, rho=rho)
