"""Degrees of freedom and elements contributing to the global system."""

import numpy as np
from typing import Callable, List, Optional, Sequence
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..math.jacobians import check_jacobian, finite_difference_jacobian


@dataclass(eq=False)
class Parameter:
    """Scalar model quantity behind a ``Dof``.

    ``ref_value`` is the reference state and ``act_value`` the actual state
    the solver moves. ``target`` and ``result`` hold the prescribed and the
    computed value of the quantity; after a solve ``result`` carries the
    gradient entry of the objective with respect to this parameter.

    Copies and pickles carry the values only, so a copy is a new unknown.
    """

    ref_value: float = 0.0
    act_value: float = 0.0
    target: float = 0.0
    result: float = 0.0
    is_fixed: bool = False
    name: str = ""
    _dof: Optional["Dof"] = field(default=None, init=False, repr=False)

    @classmethod
    def from_value(cls, value: float, target: float = 0.0, **kwargs) -> "Parameter":
        """Create a parameter whose reference and actual values coincide."""
        return cls(ref_value=value, act_value=value, target=target, **kwargs)

    @property
    def dof(self) -> "Dof":
        """The unique ``Dof`` of this parameter."""
        if self._dof is None:
            Dof(parameter=self)
        return self._dof

    def _state(self):
        return (self.ref_value, self.act_value, self.target, self.result, self.is_fixed, self.name)

    def __reduce__(self):
        return (type(self), self._state())

    def __copy__(self) -> "Parameter":
        return type(self)(*self._state())

    def __deepcopy__(self, memo) -> "Parameter":
        return type(self)(*self._state())


class Dof:
    """Scalar unknown shared between elements.

    A dof is a handle on a ``Parameter``: dofs compare and hash by the
    parameter they refer to, so two elements referring to the same parameter
    couple through it.
    """

    def __init__(
        self,
        value: float = 0.0,
        is_fixed: bool = False,
        name: str = "",
        parameter: Optional[Parameter] = None,
    ):
        """Initialize dof.

        Args:
            value: Initial value (ignored if ``parameter`` is given)
            is_fixed: Keep the value constant (ignored if ``parameter`` is given)
            name: Label used in messages (ignored if ``parameter`` is given)
            parameter: Existing parameter to refer to
        """
        if parameter is None:
            parameter = Parameter.from_value(float(value), is_fixed=is_fixed, name=name)

        self.parameter = parameter

        if parameter._dof is None:
            parameter._dof = self

    @property
    def value(self) -> float:
        return self.parameter.act_value

    @value.setter
    def value(self, value: float) -> None:
        self.parameter.act_value = float(value)

    @property
    def is_fixed(self) -> bool:
        return self.parameter.is_fixed

    @is_fixed.setter
    def is_fixed(self, is_fixed: bool) -> None:
        self.parameter.is_fixed = bool(is_fixed)

    @property
    def name(self) -> str:
        return self.parameter.name

    @property
    def delta(self) -> float:
        """Displacement of the actual value from the reference value."""
        return self.parameter.act_value - self.parameter.ref_value

    @delta.setter
    def delta(self, delta: float) -> None:
        self.parameter.act_value = self.parameter.ref_value + float(delta)

    @property
    def residual(self) -> float:
        return self.parameter.result

    @residual.setter
    def residual(self, residual: float) -> None:
        self.parameter.result = float(residual)

    def set_value(self, value: float) -> None:
        """Set dof value unless it is fixed."""
        if self.is_fixed:
            raise ValueError(f"Dof {self.name or id(self)} is fixed")
        self.value = value

    def __eq__(self, other) -> bool:
        if not isinstance(other, Dof):
            return NotImplemented
        return self.parameter is other.parameter

    def __hash__(self) -> int:
        return hash(id(self.parameter))

    def __reduce__(self):
        return (type(self), (self.value, self.is_fixed, self.name, self.parameter))

    def __repr__(self) -> str:
        return f"Dof(name={self.name!r}, value={self.value}, is_fixed={self.is_fixed})"


class Element(ABC):
    """Abstract base class for elements.

    An element owns ``residual_dimension()`` residual equations that depend on
    the dofs returned by ``dofs()``.
    """

    name: str = ""

    @abstractmethod
    def dofs(self) -> List[Dof]:
        """Get the dofs this element depends on, in local order."""
        pass

    @abstractmethod
    def residual_dimension(self) -> int:
        """Get number of residual equations."""
        pass

    @abstractmethod
    def compute(
        self,
        x: np.ndarray,
        order: int,
        r: np.ndarray,
        jac: np.ndarray,
        hess: np.ndarray,
    ) -> None:
        """Compute local residuals and derivatives.

        The output arrays are zeroed before the call and must be filled in
        place.

        Args:
            x: Local dof values
            order: 0 for residuals, 1 adds the Jacobian, 2 adds second derivatives
            r: Residuals, shape (m,)
            jac: Jacobian, shape (m, n), written for order >= 1
            hess: Second derivatives of every residual, shape (m, n, n),
                  written for order >= 2; leaving it zero yields the
                  Gauss-Newton approximation
        """
        pass


class FunctionElement(Element):
    """Element defined by residual callables."""

    def __init__(
        self,
        dofs: Sequence[Dof],
        residual: Callable[[np.ndarray], np.ndarray],
        jacobian: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        hessian: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        residual_dim: Optional[int] = None,
        name: str = "",
        check_derivatives: bool = False,
    ):
        """Initialize function element.

        Args:
            dofs: Dofs the residuals depend on
            residual: Function mapping local dof values to residuals
            jacobian: Analytic Jacobian (finite differences if None)
            hessian: Second derivatives with shape (m, n, n) (Gauss-Newton if None)
            residual_dim: Number of residuals (evaluated from ``residual`` if None)
            name: Label used in diagnostics
            check_derivatives: Compare the analytic Jacobian with finite
                differences on every evaluation and raise on mismatch
        """
        self.name = name
        self._dofs = list(dofs)
        self._residual = residual
        self._jacobian = jacobian
        self._hessian = hessian
        self.check_derivatives = check_derivatives

        if residual_dim is None:
            x = np.array([dof.value for dof in self._dofs])
            residual_dim = len(np.atleast_1d(residual(x)))

        self._residual_dim = residual_dim

    def dofs(self) -> List[Dof]:
        return self._dofs

    def residual_dimension(self) -> int:
        return self._residual_dim

    def compute(self, x, order, r, jac, hess):
        r[:] = self._residual(x)

        if order < 1:
            return

        if self._jacobian is None:
            jac[:] = finite_difference_jacobian(self._residual, x, h=1e-7)
        else:
            if self.check_derivatives:
                is_correct, max_error, _ = check_jacobian(self._residual, self._jacobian, x)
                if not is_correct:
                    raise ValueError(
                        f"Jacobian of element {self.name or id(self)} deviates from "
                        f"finite differences by {max_error:.3e}"
                    )
            jac[:] = self._jacobian(x)

        if order > 1 and self._hessian is not None:
            hess[:] = self._hessian(x)


class LinearElement(Element):
    """Affine residuals ``r = A x - b``."""

    def __init__(self, dofs: Sequence[Dof], A: np.ndarray, b: np.ndarray, name: str = ""):
        self.name = name
        self._dofs = list(dofs)
        self.A = np.atleast_2d(np.asarray(A, dtype=float))
        self.b = np.atleast_1d(np.asarray(b, dtype=float))

        if self.A.shape != (len(self.b), len(self._dofs)):
            raise ValueError(
                f"Matrix shape {self.A.shape} does not match "
                f"{len(self.b)} residuals and {len(self._dofs)} dofs"
            )

    def dofs(self) -> List[Dof]:
        return self._dofs

    def residual_dimension(self) -> int:
        return len(self.b)

    def compute(self, x, order, r, jac, hess):
        r[:] = self.A @ x - self.b

        if order > 0:
            jac[:] = self.A
