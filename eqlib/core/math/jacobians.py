"""Finite-difference derivatives of residual functions."""

import numpy as np
from typing import Callable, Tuple


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-8,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian using finite differences.

    Args:
        func: Function that takes x and returns residual vector
        x: Input parameters
        h: Step size for finite differences
        method: Finite difference method ("forward", "backward", "central")

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    m, n = len(f0), len(x)
    J = np.zeros((m, n))

    if method not in ("forward", "backward", "central"):
        raise ValueError(f"Unknown finite difference method: {method}")

    for j in range(n):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[j] += h
        x_minus[j] -= h

        if method == "forward":
            J[:, j] = (np.atleast_1d(func(x_plus)) - f0) / h
        elif method == "backward":
            J[:, j] = (f0 - np.atleast_1d(func(x_minus))) / h
        else:
            J[:, j] = (np.atleast_1d(func(x_plus)) - np.atleast_1d(func(x_minus))) / (2 * h)

    return J


def check_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    jacobian_func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6,
    atol: float = 1e-6,
    rtol: float = 1e-6
) -> Tuple[bool, float, np.ndarray]:
    """Compare an analytic Jacobian with central differences at ``x``.

    An entry passes when ``|J - J_fd| <= atol + rtol * |J_fd|``.

    Returns:
        Tuple of (is_correct, max_error, error) where ``error`` is the
        entry-wise absolute deviation
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    expected = finite_difference_jacobian(func, x, h)
    actual = np.asarray(jacobian_func(x), dtype=float).reshape(expected.shape)

    error = np.abs(actual - expected)
    tolerance = atol + rtol * np.abs(expected)

    return bool(np.all(error <= tolerance)), float(error.max(initial=0.0)), error
