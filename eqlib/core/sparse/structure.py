"""Compressed sparse nonzero patterns without numeric values."""

import numpy as np
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from scipy.sparse import csc_matrix, csr_matrix


NOT_FOUND = -1


class InvalidStructureError(ValueError):
    """Raised when a sparse pattern is malformed."""


class SparseStructure:
    """Nonzero pattern of an ``rows x cols`` matrix in compressed form.

    A *line* is a row for row-major structures and a column for column-major
    structures. ``ia[k]`` is the storage offset of the first entry of line
    ``k`` and ``ja`` holds the secondary index of every stored entry, sorted
    within each line.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        ia: Sequence[int],
        ja: Sequence[int],
        row_major: bool = False,
        index_map: bool = True,
        index_dtype=np.int64,
    ):
        """Initialize structure.

        Args:
            rows: Number of rows
            cols: Number of columns
            ia: Line offsets of length ``size_i + 1``
            ja: Secondary index of every stored entry
            row_major: Store rows (True) or columns (False) as lines
            index_map: Build per-line maps for O(1) lookup
            index_dtype: Integer dtype of ``ia`` and ``ja``
        """
        self._rows = int(rows)
        self._cols = int(cols)
        self._row_major = bool(row_major)
        self._index_dtype = np.dtype(index_dtype)
        self._ia = np.asarray(ia, dtype=self._index_dtype).ravel()
        self._ja = np.asarray(ja, dtype=self._index_dtype).ravel()

        size_i, size_j = self._sizes()

        if len(self._ia) != size_i + 1:
            raise InvalidStructureError("Vector ia has an invalid size")

        if self._ia[0] != 0 or self._ia[-1] != len(self._ja) or np.any(np.diff(self._ia) < 0):
            raise InvalidStructureError("Vector ia has invalid offsets")

        if len(self._ja) > 0:
            if self._ja.max() >= size_j or self._ja.min() < 0:
                raise InvalidStructureError("Vector ja has invalid entries")

        self._indices: Optional[List[Dict[int, int]]] = None

        if index_map:
            ia_list = self._ia.tolist()
            ja_list = self._ja.tolist()
            self._indices = [
                {ja_list[k]: k for k in range(ia_list[i], ia_list[i + 1])}
                for i in range(size_i)
            ]

    def _sizes(self) -> Tuple[int, int]:
        if self._row_major:
            return self._rows, self._cols
        return self._cols, self._rows

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def row_major(self) -> bool:
        return self._row_major

    @property
    def has_index_map(self) -> bool:
        return self._indices is not None

    @property
    def index_dtype(self) -> np.dtype:
        return self._index_dtype

    @property
    def nb_nonzeros(self) -> int:
        return int(self._ia[-1])

    @property
    def ia(self) -> np.ndarray:
        """Line offsets (read-only view)."""
        view = self._ia.view()
        view.flags.writeable = False
        return view

    @property
    def ja(self) -> np.ndarray:
        """Secondary indices (read-only view)."""
        view = self._ja.view()
        view.flags.writeable = False
        return view

    def density(self) -> float:
        """Fraction of stored entries, 0 for empty matrices."""
        if self._rows == 0 or self._cols == 0:
            return 0.0
        return self.nb_nonzeros / self._rows / self._cols

    def get_first_index(self, i: int) -> int:
        return int(self._ia[i])

    def get_index_bounded(self, j: int, lo: int, hi: int) -> int:
        """Binary search for secondary index ``j`` in storage offsets ``[lo, hi)``.

        Returns:
            Storage offset of the entry or ``NOT_FOUND``
        """
        k = lo + int(np.searchsorted(self._ja[lo:hi], j))

        if k == hi or self._ja[k] != j:
            return NOT_FOUND

        return k

    def get_index(self, row: int, col: int) -> int:
        """Get storage offset of entry ``(row, col)``.

        Returns:
            Storage offset of the entry or ``NOT_FOUND``
        """
        i, j = (row, col) if self._row_major else (col, row)

        if self._indices is not None:
            return self._indices[i].get(j, NOT_FOUND)

        return self.get_index_bounded(j, int(self._ia[i]), int(self._ia[i + 1]))

    def for_each(self, action: Callable[[int, int, int], None]) -> None:
        """Call ``action(row, col, offset)`` for every stored entry in line order."""
        size_i, _ = self._sizes()
        ia = self._ia.tolist()
        ja = self._ja.tolist()

        for i in range(size_i):
            for k in range(ia[i], ia[i + 1]):
                if self._row_major:
                    action(i, ja[k], k)
                else:
                    action(ja[k], i, k)

    @classmethod
    def from_pattern(
        cls,
        rows: int,
        cols: int,
        pattern: Sequence[Iterable[int]],
        row_major: bool = False,
        index_map: bool = True,
        index_dtype=np.int64,
    ) -> "SparseStructure":
        """Build a structure from the secondary indices of every line.

        Args:
            rows: Number of rows
            cols: Number of columns
            pattern: One iterable of secondary indices per line, in any order
            row_major: Orientation of the result
            index_map: Build per-line maps for the result
            index_dtype: Integer dtype of the result

        Returns:
            Structure with sorted, unique lines
        """
        size_i = rows if row_major else cols

        if len(pattern) != size_i:
            raise InvalidStructureError(
                f"Pattern has {len(pattern)} lines, expected {size_i}"
            )

        lines = [sorted(set(line)) for line in pattern]

        ia = np.zeros(size_i + 1, dtype=index_dtype)
        ia[1:] = np.cumsum([len(line) for line in lines], dtype=index_dtype)

        ja = np.fromiter(
            (j for line in lines for j in line),
            dtype=index_dtype,
            count=int(ia[-1]),
        )

        return cls(rows, cols, ia, ja, row_major=row_major, index_map=index_map, index_dtype=index_dtype)

    def _mirrored_lines(self) -> Tuple[List[List[int]], List[List[int]]]:
        if self._rows != self._cols:
            raise InvalidStructureError(
                f"Structure must be square, got {self._rows}x{self._cols}"
            )

        n = self._rows
        ia = self._ia.tolist()
        ja = self._ja.tolist()

        pattern: List[List[int]] = [[] for _ in range(n)]
        indices: List[List[int]] = [[] for _ in range(n)]

        for i in range(n):
            for k in range(ia[i], ia[i + 1]):
                j = ja[k]

                pattern[i].append(j)
                indices[i].append(k)

                if i == j:
                    continue

                pattern[j].append(i)
                indices[j].append(k)

        # lines are not sorted when the input is not a single triangle
        for i in range(n):
            if any(a > b for a, b in zip(pattern[i], pattern[i][1:])):
                order = sorted(range(len(pattern[i])), key=pattern[i].__getitem__)
                pattern[i] = [pattern[i][o] for o in order]
                indices[i] = [indices[i][o] for o in order]

        return pattern, indices

    def to_general(
        self, values: Optional[np.ndarray] = None
    ) -> Tuple["SparseStructure", np.ndarray]:
        """Expand a triangular pattern of a symmetric matrix to the full pattern.

        Args:
            values: Optional values of the triangular pattern

        Returns:
            Tuple of (full structure, value_indices) where ``value_indices[k]``
            is the source offset of new offset ``k``, or (full structure,
            new_values) when ``values`` is given
        """
        pattern, indices = self._mirrored_lines()

        result = type(self).from_pattern(
            self._rows,
            self._cols,
            pattern,
            row_major=self._row_major,
            index_map=self.has_index_map,
            index_dtype=self._index_dtype,
        )

        if result.nb_nonzeros != sum(len(line) for line in indices):
            raise InvalidStructureError("Pattern is not triangular, mirrored entries overlap")

        value_indices = np.fromiter(
            (k for line in indices for k in line),
            dtype=np.int64,
            count=result.nb_nonzeros,
        )

        if values is None:
            return result, value_indices

        values = np.asarray(values, dtype=float)

        if len(values) != self.nb_nonzeros:
            raise ValueError(
                f"Values size {len(values)} != number of nonzeros {self.nb_nonzeros}"
            )

        return result, values[value_indices]

    @classmethod
    def convert_from(
        cls,
        other: "SparseStructure",
        values: np.ndarray,
        index_map: Optional[bool] = None,
    ) -> "SparseStructure":
        """Transpose the storage orientation of ``other``.

        Counting sort over the target lines: count entries per target line,
        prefix-sum the counts into offsets, scatter. ``values`` is permuted in
        place so that it matches the returned structure.

        Args:
            other: Structure to convert
            values: Values of ``other`` (modified in place)
            index_map: Build per-line maps for the result (default: as ``other``)

        Returns:
            Structure with the same entries and the opposite orientation
        """
        if other.rows != other.cols:
            raise InvalidStructureError(
                f"Structure must be square, got {other.rows}x{other.cols}"
            )

        if not isinstance(values, np.ndarray):
            raise ValueError(
                f"Values are permuted in place and must be a numpy array, got {type(values).__name__}"
            )

        nb_nonzeros = other.nb_nonzeros

        if len(values) != nb_nonzeros:
            raise ValueError(
                f"Values size {len(values)} != number of nonzeros {nb_nonzeros}"
            )

        row_major = not other.row_major
        n, m = other._sizes()

        other_ia = other._ia.tolist()
        other_ja = other._ja.tolist()

        ia = [0] * (m + 1)
        ja = [0] * nb_nonzeros

        for k in range(nb_nonzeros):
            ia[other_ja[k]] += 1

        cumsum = 0

        for j in range(m):
            temp = ia[j]
            ia[j] = cumsum
            cumsum += temp

        ia[m] = nb_nonzeros

        a_values = np.array(values, copy=True)
        dest_of = [0] * nb_nonzeros

        for i in range(n):
            for k in range(other_ia[i], other_ia[i + 1]):
                j = other_ja[k]
                dest = ia[j]

                ja[dest] = i
                dest_of[k] = dest

                ia[j] += 1

        values[dest_of] = a_values

        last = 0

        for j in range(m + 1):
            temp = ia[j]
            ia[j] = last
            last = temp

        return cls(
            other.rows,
            other.cols,
            ia,
            ja,
            row_major=row_major,
            index_map=other.has_index_map if index_map is None else index_map,
            index_dtype=other.index_dtype,
        )

    def to_scipy(self, values: Optional[np.ndarray] = None) -> Union[csr_matrix, csc_matrix]:
        """Build a scipy sparse matrix with this pattern.

        Args:
            values: Values in storage order (ones if omitted)

        Returns:
            ``csr_matrix`` for row-major, ``csc_matrix`` for column-major structures
        """
        if values is None:
            values = np.ones(self.nb_nonzeros)

        matrix_type = csr_matrix if self._row_major else csc_matrix

        return matrix_type(
            (np.asarray(values, dtype=float), self._ja.copy(), self._ia.copy()),
            shape=(self._rows, self._cols),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, SparseStructure):
            return NotImplemented
        return (
            self._rows == other._rows
            and self._cols == other._cols
            and self._row_major == other._row_major
            and np.array_equal(self._ia, other._ia)
            and np.array_equal(self._ja, other._ja)
        )

    __hash__ = None

    def __repr__(self) -> str:
        orientation = "row-major" if self._row_major else "column-major"
        return (
            f"SparseStructure({self._rows}x{self._cols}, {orientation}, "
            f"nb_nonzeros={self.nb_nonzeros})"
        )
