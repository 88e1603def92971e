"""Flat storage for the results of one assembly pass."""

import numpy as np
from typing import Optional, Tuple


class ProblemData:
    """Objective, residuals, gradient and sparse derivative values in one buffer.

    The owned buffer is laid out as ``[f | g(m) | df(n) | dg(nnz_dg) | hm(nnz_hm)]``.
    Views are sliced from the buffer on every access using offsets computed in
    ``resize``, so they always refer to the current allocation.
    """

    def __init__(self):
        """Initialize empty problem data."""
        self._n = 0
        self._m = 0
        self._nb_nonzeros_dg = 0
        self._nb_nonzeros_hm = 0
        self._max_element_n = 0
        self._max_element_m = 0

        self._g_offset = 1
        self._df_offset = 1
        self._dg_offset = 1
        self._hm_offset = 1

        self._values = np.zeros(1)
        self.buffer = np.zeros(0)

        self.computation_time = 0.0
        self.assemble_time = 0.0

    @classmethod
    def with_sizes(
        cls,
        n: int,
        m: int,
        nb_nonzeros_dg: int,
        nb_nonzeros_hm: int,
        max_element_n: int,
        max_element_m: int,
    ) -> "ProblemData":
        data = cls()
        data.resize(n, m, nb_nonzeros_dg, nb_nonzeros_hm, max_element_n, max_element_m)
        return data

    @property
    def sizes(self) -> Tuple[int, int, int, int, int, int]:
        """Arguments of the last ``resize``."""
        return (
            self._n,
            self._m,
            self._nb_nonzeros_dg,
            self._nb_nonzeros_hm,
            self._max_element_n,
            self._max_element_m,
        )

    def resize(
        self,
        n: int,
        m: int,
        nb_nonzeros_dg: int,
        nb_nonzeros_hm: int,
        max_element_n: int,
        max_element_m: int,
    ) -> None:
        """Recompute the layout for new problem sizes and zero all entries.

        Args:
            n: Number of unknowns
            m: Number of residual equations
            nb_nonzeros_dg: Number of stored Jacobian entries
            nb_nonzeros_hm: Number of stored Hessian entries
            max_element_n: Largest number of unknowns of a single element
            max_element_m: Largest number of equations of a single element
        """
        sizes = (n, m, nb_nonzeros_dg, nb_nonzeros_hm, max_element_n, max_element_m)

        if any(size < 0 for size in sizes):
            raise ValueError(f"Problem sizes must be non-negative, got {sizes}")

        self._n = n
        self._m = m
        self._nb_nonzeros_dg = nb_nonzeros_dg
        self._nb_nonzeros_hm = nb_nonzeros_hm
        self._max_element_n = max_element_n
        self._max_element_m = max_element_m

        self._g_offset = 1
        self._df_offset = self._g_offset + m
        self._dg_offset = self._df_offset + n
        self._hm_offset = self._dg_offset + nb_nonzeros_dg

        self._values = np.zeros(self._hm_offset + nb_nonzeros_hm)

        element_m = max(1, max_element_m)
        self.buffer = np.zeros(
            element_m * max_element_n + element_m * max_element_n * max_element_n
        )

        self.set_zero()

    def set_zero(self) -> None:
        """Zero values, scratch buffer and timers."""
        self._values.fill(0.0)
        self.buffer.fill(0.0)
        self.computation_time = 0.0
        self.assemble_time = 0.0

    @property
    def f(self) -> float:
        return float(self._values[0])

    @f.setter
    def f(self, value: float) -> None:
        self._values[0] = value

    def _check_index(self, i: int, size: int, view: str) -> None:
        if not 0 <= i < size:
            raise IndexError(f"Index {i} out of range for {view} of size {size}")

    def g(self, i: Optional[int] = None):
        """Residual ``i``, or a writable view of all residuals."""
        if i is None:
            return self._values[self._g_offset:self._df_offset]
        if __debug__:
            self._check_index(i, self._m, "g")
        return self._values[self._g_offset + i]

    def df(self, i: Optional[int] = None):
        """Gradient entry ``i``, or a writable view of the gradient."""
        if i is None:
            return self._values[self._df_offset:self._dg_offset]
        if __debug__:
            self._check_index(i, self._n, "df")
        return self._values[self._df_offset + i]

    def dg_value(self, i: int) -> float:
        if __debug__:
            self._check_index(i, self._nb_nonzeros_dg, "dg")
        return self._values[self._dg_offset + i]

    def dg_values(self) -> np.ndarray:
        return self._values[self._dg_offset:self._hm_offset]

    def hm_value(self, i: int) -> float:
        if __debug__:
            self._check_index(i, self._nb_nonzeros_hm, "hm")
        return self._values[self._hm_offset + i]

    def hm_values(self) -> np.ndarray:
        return self._values[self._hm_offset:]

    def values(self) -> np.ndarray:
        return self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iadd__(self, other: "ProblemData") -> "ProblemData":
        if len(self._values) != len(other._values):
            raise ValueError(
                f"Cannot accumulate problem data of size {len(other._values)} "
                f"into size {len(self._values)}"
            )

        self._values += other._values

        self.computation_time += other.computation_time
        self.assemble_time += other.assemble_time

        return self

    def __repr__(self) -> str:
        return (
            f"ProblemData(n={self._n}, m={self._m}, "
            f"nb_nonzeros_dg={self._nb_nonzeros_dg}, nb_nonzeros_hm={self._nb_nonzeros_hm})"
        )
