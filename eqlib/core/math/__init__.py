"""Math utilities for eqlib."""

from .jacobians import finite_difference_jacobian, check_jacobian

__all__ = [
    "finite_difference_jacobian",
    "check_jacobian",
]
