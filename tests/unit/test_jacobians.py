"""Tests for finite-difference Jacobians."""

import numpy as np
import pytest

from eqlib.core.math.jacobians import check_jacobian, finite_difference_jacobian


def residual(x):
    return np.array([x[0] ** 2 + x[1], np.sin(x[0]) * x[1], 3.0 * x[1]])


def jacobian(x):
    return np.array([
        [2.0 * x[0], 1.0],
        [np.cos(x[0]) * x[1], np.sin(x[0])],
        [0.0, 3.0],
    ])


class TestFiniteDifferenceJacobian:
    """Test numeric differentiation."""

    @pytest.mark.parametrize("method,atol", [("central", 1e-7), ("forward", 1e-5), ("backward", 1e-5)])
    def test_methods(self, method, atol):
        """Test all difference schemes against the analytic Jacobian."""
        x = np.array([0.7, -1.3])

        J = finite_difference_jacobian(residual, x, h=1e-6, method=method)

        assert J.shape == (3, 2)
        np.testing.assert_allclose(J, jacobian(x), atol=atol)

    def test_scalar_residual(self):
        """Test scalar functions give a single row."""
        J = finite_difference_jacobian(lambda x: x[0] * x[1], np.array([2.0, 3.0]))

        np.testing.assert_allclose(J, [[3.0, 2.0]], atol=1e-6)

    def test_unknown_method(self):
        """Test error for unknown schemes."""
        with pytest.raises(ValueError):
            finite_difference_jacobian(residual, np.zeros(2), method="complex")


class TestCheckJacobian:
    """Test Jacobian validation."""

    def test_correct_jacobian(self):
        """Test analytic Jacobian passes the check."""
        is_correct, max_error, error = check_jacobian(
            residual, jacobian, np.array([0.3, 0.4]), atol=1e-5
        )

        assert is_correct
        assert max_error < 1e-5
        assert error.shape == (3, 2)

    def test_wrong_jacobian(self):
        """Test wrong entries are detected."""
        def wrong(x):
            J = jacobian(x)
            J[2, 1] = 2.0
            return J

        is_correct, max_error, _ = check_jacobian(residual, wrong, np.array([0.3, 0.4]))

        assert not is_correct
        assert max_error == pytest.approx(1.0, abs=1e-5)
