"""Global least-squares system assembled from elements."""

import logging
import time
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from scipy.sparse import csc_matrix, csr_matrix

from .element import Dof, Element
from .problem_data import ProblemData
from ..models.settings import SystemSettings
from ..solver.evaluator import Evaluator
from ..sparse.structure import NOT_FOUND, InvalidStructureError, SparseStructure


@dataclass
class ElementIndex:
    """Precomputed mapping from local element storage into global storage."""

    element: Element
    row_offset: int
    m: int
    n: int
    dof_indices: np.ndarray     # global index per local dof, -1 if fixed
    free: np.ndarray            # local positions of free dofs
    fixed: np.ndarray           # local positions of fixed dofs
    dg_offsets: np.ndarray      # jacobian storage offsets, shape (m, len(free))
    hm_local_a: np.ndarray
    hm_local_b: np.ndarray
    hm_offsets: np.ndarray      # hessian storage offsets for (hm_local_a, hm_local_b)


class System(Evaluator):
    """Sum of squared element residuals ``f = 1/2 sum r.r`` over free dofs.

    Residuals and the Jacobian are stored row-major (one line per equation),
    the Gauss-Newton/Newton Hessian as the upper triangle in column-major
    order.
    """

    def __init__(self, elements: Sequence[Element], settings: Optional[SystemSettings] = None):
        """Initialize system.

        Args:
            elements: Elements contributing residuals
            settings: Assembly settings
        """
        self.settings = settings or SystemSettings()
        self.logger = logging.getLogger(__name__)
        self.elements = list(elements)

        self._dofs: List[Dof] = []
        dof_index: Dict[Dof, int] = {}

        for element in self.elements:
            for dof in element.dofs():
                if dof.is_fixed or dof in dof_index:
                    continue
                dof_index[dof] = len(self._dofs)
                self._dofs.append(dof)

        n = len(self._dofs)

        jacobian_pattern: List[List[int]] = []
        hessian_pattern: List[set] = [set() for _ in range(n)]
        element_dof_indices = []

        max_element_n = 0
        max_element_m = 0

        for element in self.elements:
            dofs = element.dofs()
            indices = np.array([dof_index.get(dof, -1) for dof in dofs], dtype=np.int64)
            free_indices = indices[indices >= 0].tolist()
            m_e = element.residual_dimension()

            jacobian_pattern.extend([free_indices] * m_e)

            for j in free_indices:
                hessian_pattern[j].update(i for i in free_indices if i <= j)

            element_dof_indices.append(indices)

            max_element_n = max(max_element_n, len(dofs))
            max_element_m = max(max_element_m, m_e)

        m = len(jacobian_pattern)

        self.jacobian_structure = SparseStructure.from_pattern(
            m, n, jacobian_pattern, row_major=True, index_map=self.settings.index_map
        )
        self.hessian_structure = SparseStructure.from_pattern(
            n, n, hessian_pattern, row_major=False, index_map=self.settings.index_map
        )
        self._hessian_general, self._hessian_value_indices = self.hessian_structure.to_general()

        self._element_indices: List[ElementIndex] = []
        row_offset = 0

        for element, indices in zip(self.elements, element_dof_indices):
            self._element_indices.append(self._index_element(element, indices, row_offset))
            row_offset += element.residual_dimension()

        self._data = ProblemData.with_sizes(
            n,
            m,
            self.jacobian_structure.nb_nonzeros,
            self.hessian_structure.nb_nonzeros,
            max_element_n,
            max_element_m,
        )

        self.logger.debug(
            f"System with {len(self.elements)} elements, {n} dofs, {m} equations, "
            f"jacobian density {self.jacobian_structure.density():.3g}"
        )

    def _index_element(self, element: Element, indices: np.ndarray, row_offset: int) -> ElementIndex:
        m_e = element.residual_dimension()
        free = np.flatnonzero(indices >= 0)
        fixed = np.flatnonzero(indices < 0)

        dg_offsets = np.array(
            [[self.jacobian_structure.get_index(row_offset + k, int(indices[a])) for a in free]
             for k in range(m_e)],
            dtype=np.int64,
        ).reshape(m_e, len(free))

        hm_local_a = []
        hm_local_b = []
        hm_offsets = []

        for a in free:
            for b in free:
                i = int(indices[a])
                j = int(indices[b])
                if i > j:
                    continue
                hm_local_a.append(a)
                hm_local_b.append(b)
                hm_offsets.append(self.hessian_structure.get_index(i, j))

        if NOT_FOUND in hm_offsets or np.any(dg_offsets == NOT_FOUND):
            raise InvalidStructureError(
                f"Element {element.name or id(element)} has entries outside the system pattern"
            )

        return ElementIndex(
            element=element,
            row_offset=row_offset,
            m=m_e,
            n=len(indices),
            dof_indices=indices,
            free=free,
            fixed=fixed,
            dg_offsets=dg_offsets,
            hm_local_a=np.array(hm_local_a, dtype=np.int64),
            hm_local_b=np.array(hm_local_b, dtype=np.int64),
            hm_offsets=np.array(hm_offsets, dtype=np.int64),
        )

    @property
    def dofs(self) -> List[Dof]:
        return list(self._dofs)

    @property
    def data(self) -> ProblemData:
        return self._data

    @property
    def computation_time(self) -> float:
        return self._data.computation_time

    @property
    def assemble_time(self) -> float:
        return self._data.assemble_time

    def nb_dofs(self) -> int:
        return len(self._dofs)

    def nb_equations(self) -> int:
        return self.jacobian_structure.rows

    def x(self) -> np.ndarray:
        return np.array([dof.value for dof in self._dofs], dtype=float)

    def set_x(self, x: np.ndarray) -> None:
        x = np.asarray(x, dtype=float)

        if len(x) != len(self._dofs):
            raise ValueError(f"Parameter vector size mismatch: {len(x)} vs {len(self._dofs)}")

        for dof, value in zip(self._dofs, x.tolist()):
            dof.value = value

    def assemble(self, order: int, parallel: Optional[bool] = None) -> None:
        """Evaluate all elements and scatter their contributions.

        Args:
            order: 0 for residuals, 1 adds gradient and Jacobian, 2 adds Hessian
            parallel: Assemble partitions in worker threads (settings default if None)
        """
        if order not in (0, 1, 2):
            raise ValueError(f"Invalid order {order}, expected 0, 1 or 2")

        if parallel is None:
            parallel = self.settings.parallel

        x = self.x()

        if not parallel or len(self._element_indices) < 2:
            self._data.set_zero()
            self._assemble_partition(order, x, self._element_indices, self._data)
            return

        nb_partitions = min(self.settings.max_workers or 4, len(self._element_indices))
        bounds = np.linspace(0, len(self._element_indices), nb_partitions + 1).astype(int)
        partitions = [self._element_indices[lo:hi] for lo, hi in zip(bounds[:-1], bounds[1:])]

        def run(items: List[ElementIndex]) -> ProblemData:
            data = ProblemData.with_sizes(*self._data.sizes)
            self._assemble_partition(order, x, items, data)
            return data

        with ThreadPoolExecutor(max_workers=nb_partitions) as executor:
            results = list(executor.map(run, partitions))

        self._data.set_zero()

        for data in results:
            self._data += data

    def _assemble_partition(
        self, order: int, x: np.ndarray, items: List[ElementIndex], data: ProblemData
    ) -> None:
        residuals = data.g()
        gradient = data.df()
        dg_values = data.dg_values()
        hm_values = data.hm_values()

        for item in items:
            start_time = time.time()

            m_e, n_e = item.m, item.n

            jac = data.buffer[:m_e * n_e].reshape(m_e, n_e)
            hess = data.buffer[m_e * n_e:m_e * n_e * (1 + n_e)].reshape(m_e, n_e, n_e)
            jac.fill(0.0)
            hess.fill(0.0)

            r = residuals[item.row_offset:item.row_offset + m_e]

            x_local = np.empty(n_e)
            x_local[item.free] = x[item.dof_indices[item.free]]
            if len(item.fixed):
                dofs = item.element.dofs()
                x_local[item.fixed] = [dofs[a].value for a in item.fixed]

            item.element.compute(x_local, order, r, jac, hess)

            compute_end = time.time()

            data.f = data.f + 0.5 * float(r @ r)

            if order > 0:
                jac_free = jac[:, item.free]
                np.add.at(gradient, item.dof_indices[item.free], jac_free.T @ r)
                np.add.at(dg_values, item.dg_offsets.ravel(), jac_free.ravel())

            if order > 1:
                h_local = jac.T @ jac + np.einsum("k,kab->ab", r, hess)
                np.add.at(hm_values, item.hm_offsets, h_local[item.hm_local_a, item.hm_local_b])

            data.computation_time += compute_end - start_time
            data.assemble_time += time.time() - compute_end

    def f(self) -> float:
        return self._data.f

    def g(self) -> np.ndarray:
        return self._data.df().copy()

    def h(self) -> csc_matrix:
        """Full symmetric Hessian as CSC matrix."""
        values = self._data.hm_values()[self._hessian_value_indices]
        return self._hessian_general.to_scipy(values)

    def hessian_upper(self) -> csc_matrix:
        """Upper triangle of the Hessian as CSC matrix."""
        return self.hessian_structure.to_scipy(self._data.hm_values().copy())

    def residuals(self) -> np.ndarray:
        return self._data.g().copy()

    def update_dof_residuals(self) -> None:
        """Store the gradient of the last assembly in ``Dof.residual``."""
        for dof, value in zip(self._dofs, self._data.df().tolist()):
            dof.residual = value

    def jacobian(self) -> csr_matrix:
        return self.jacobian_structure.to_scipy(self._data.dg_values().copy())

    def element_residuals(self) -> List[Tuple[Element, np.ndarray]]:
        """Get residuals of the last assembly grouped by element."""
        residuals = self._data.g()
        return [
            (item.element, residuals[item.row_offset:item.row_offset + item.m].copy())
            for item in self._element_indices
        ]
